"""Page-relative selection geometry.

A selection is captured in on-screen pixels relative to the top-left corner
of its rendered page at the current zoom level. Anchors store those
coordinates divided by the render scale, so a highlight captured at one zoom
level renders in the right place at any other.

    anchor = normalize(Rect(120, 240, 360, 264), scale=1.2, page=3)
    rect = denormalize(anchor, scale=2.0)  # same passage at 200%
"""

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in page-relative screen pixels."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @classmethod
    def relative_to(cls, selection: "Rect", page: "Rect") -> "Rect":
        """Translate a viewport-relative selection box into page coordinates."""
        return cls(
            left=selection.left - page.left,
            top=selection.top - page.top,
            right=selection.right - page.left,
            bottom=selection.bottom - page.top,
        )


@dataclass(frozen=True)
class Anchor:
    """Scale-normalized, page-relative descriptor of a text selection.

    start_offset/end_offset are the text-node character offsets of the
    selection. They are kept for reference and never used for identity.
    """

    page: int
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    start_offset: int = 0
    end_offset: int = 0

    @property
    def is_empty(self) -> bool:
        """True for zero-width or zero-height anchors, which mean "no selection"."""
        return self.end_x <= self.start_x or self.end_y <= self.start_y

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "startX": self.start_x,
            "startY": self.start_y,
            "endX": self.end_x,
            "endY": self.end_y,
            "startOffset": self.start_offset,
            "endOffset": self.end_offset,
        }

    def to_json(self) -> str:
        """Serialize to the opaque string stored with a highlight."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, value: str) -> "Anchor":
        """Parse a stored anchor string.

        Raises:
            ValueError: If the string is not an anchor object.
        """
        try:
            data = json.loads(value)
            return cls(
                page=int(data["page"]),
                start_x=float(data["startX"]),
                start_y=float(data["startY"]),
                end_x=float(data["endX"]),
                end_y=float(data["endY"]),
                start_offset=int(data.get("startOffset", 0)),
                end_offset=int(data.get("endOffset", 0)),
            )
        except (TypeError, KeyError, AttributeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid anchor: {e}") from e


def _check_scale(scale: float) -> None:
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")


def normalize(
    raw_rect: Rect,
    scale: float,
    page: int,
    start_offset: int = 0,
    end_offset: int = 0,
) -> Anchor:
    """Convert a page-relative selection box at `scale` into an Anchor.

    Degenerate rectangles produce a zero-size anchor (see Anchor.is_empty).
    """
    _check_scale(scale)
    right = max(raw_rect.right, raw_rect.left)
    bottom = max(raw_rect.bottom, raw_rect.top)
    return Anchor(
        page=page,
        start_x=raw_rect.left / scale,
        start_y=raw_rect.top / scale,
        end_x=right / scale,
        end_y=bottom / scale,
        start_offset=start_offset,
        end_offset=end_offset,
    )


def denormalize(anchor: Anchor, scale: float) -> Rect:
    """Project an anchor back onto the page at the current scale."""
    _check_scale(scale)
    return Rect(
        left=anchor.start_x * scale,
        top=anchor.start_y * scale,
        right=anchor.end_x * scale,
        bottom=anchor.end_y * scale,
    )


def overlay_rect(anchor: Anchor, scale: float, min_size: float = 10) -> Rect:
    """Rectangle to draw for a highlight, never smaller than min_size (unscaled) per side."""
    _check_scale(scale)
    width = max(anchor.end_x - anchor.start_x, min_size)
    height = max(anchor.end_y - anchor.start_y, min_size)
    left = anchor.start_x * scale
    top = anchor.start_y * scale
    return Rect(left=left, top=top, right=left + width * scale, bottom=top + height * scale)
