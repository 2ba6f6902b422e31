"""Log guard utilities.

Never-log policy:
- API keys
- Rendered prompts and system instructions
- Message content (user or assistant)
- Selected passage text

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
- Token counts, identifiers, outcomes
"""

import hashlib
import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "content",
        "message",
        "api_key",
        "secret",
        "selected_text",
        "system_prompt",
        "delta_text",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """Stable SHA-256 hex digest used for log correlation without exposing text."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used.
    In production, logs a warning instead and passes the kwargs through.

    Usage:
        logger.info("chat.turn.started", **safe_kv(
            highlight_id=str(highlight_id),
            message_chars=len(message),  # OK: _chars suffix
            # message=message,            # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for BLUEBERRY_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("BLUEBERRY_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger("blueberry.services.redact").warning(
            "safe_kv_violation", forbidden_keys=violations
        )

    return kwargs
