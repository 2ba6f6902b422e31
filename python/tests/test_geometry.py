"""Tests for selection geometry normalization."""

import pytest

from blueberry.client.geometry import Anchor, Rect, denormalize, normalize, overlay_rect


def assert_rect_close(actual: Rect, expected: Rect) -> None:
    assert actual.left == pytest.approx(expected.left)
    assert actual.top == pytest.approx(expected.top)
    assert actual.right == pytest.approx(expected.right)
    assert actual.bottom == pytest.approx(expected.bottom)


class TestNormalize:
    def test_round_trip_at_same_scale(self):
        raw = Rect(120.0, 240.0, 360.0, 264.0)
        for scale in (0.5, 1.0, 1.2, 3.0):
            assert_rect_close(denormalize(normalize(raw, scale, page=3), scale), raw)

    def test_cross_scale_is_linear(self):
        raw = Rect(120.0, 240.0, 360.0, 264.0)
        anchor = normalize(raw, 1.5, page=1)
        assert_rect_close(
            denormalize(anchor, 3.0),
            Rect(raw.left * 2, raw.top * 2, raw.right * 2, raw.bottom * 2),
        )

    def test_divides_by_scale(self):
        anchor = normalize(Rect(20, 40, 60, 80), 2.0, page=7, start_offset=3, end_offset=9)
        assert anchor == Anchor(7, 10.0, 20.0, 30.0, 40.0, 3, 9)

    def test_zero_size_is_empty(self):
        assert normalize(Rect(10, 10, 10, 30), 1.0, page=1).is_empty
        assert normalize(Rect(10, 10, 30, 10), 1.0, page=1).is_empty
        assert not normalize(Rect(10, 10, 30, 30), 1.0, page=1).is_empty

    def test_inverted_rect_is_empty(self):
        assert normalize(Rect(30, 30, 10, 10), 1.0, page=1).is_empty

    @pytest.mark.parametrize("scale", [0, -1.0])
    def test_non_positive_scale_rejected(self, scale):
        with pytest.raises(ValueError):
            normalize(Rect(0, 0, 1, 1), scale, page=1)
        with pytest.raises(ValueError):
            denormalize(Anchor(1, 0, 0, 1, 1), scale)


class TestRect:
    def test_relative_to_page(self):
        selection = Rect(150, 300, 250, 320)
        page = Rect(50, 100, 650, 900)
        assert Rect.relative_to(selection, page) == Rect(100, 200, 200, 220)

    def test_dimensions(self):
        rect = Rect(10, 20, 40, 25)
        assert rect.width == 30
        assert rect.height == 5


class TestAnchorSerialization:
    def test_json_uses_camel_keys(self):
        anchor = Anchor(2, 1.0, 2.0, 3.0, 4.0, 5, 6)
        assert '"startX"' in anchor.to_json()
        assert Anchor.from_json(anchor.to_json()) == anchor

    def test_offsets_default_to_zero(self):
        anchor = Anchor.from_json('{"page": 1, "startX": 0, "startY": 0, "endX": 1, "endY": 1}')
        assert (anchor.start_offset, anchor.end_offset) == (0, 0)

    @pytest.mark.parametrize("value", ["not json", "[]", '{"page": 1}'])
    def test_invalid_anchor_rejected(self, value):
        with pytest.raises(ValueError):
            Anchor.from_json(value)


class TestOverlayRect:
    def test_small_anchor_gets_minimum_size(self):
        rect = overlay_rect(Anchor(1, 10.0, 10.0, 12.0, 11.0), scale=2.0)
        assert rect.width == pytest.approx(20.0)
        assert rect.height == pytest.approx(20.0)
        assert (rect.left, rect.top) == (20.0, 20.0)

    def test_large_anchor_unchanged(self):
        anchor = Anchor(1, 10.0, 10.0, 110.0, 40.0)
        assert_rect_close(overlay_rect(anchor, 1.5), denormalize(anchor, 1.5))
