"""Structured logging for the server and the client core.

Both sides log through structlog via get_logger(__name__). Events are
snake_case (or dotted for the LLM layer, e.g. "llm.request.started") and
carry whichever correlation fields are bound in the current context:

- request_id, path, method: bound per HTTP request by RequestIDMiddleware
- turn_id: bound for the duration of one chat turn, on either side

    configure_logging(json_format=False)
    logger = get_logger(__name__)
    logger.info("highlight_created", highlight_id=str(highlight.id))

Never pass message text, prompts or keys as log fields; see
blueberry.services.redact.safe_kv.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

_CONTEXT: dict[str, ContextVar[str | None]] = {
    name: ContextVar(name, default=None) for name in ("request_id", "path", "method", "turn_id")
}

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "multipart", "sqlalchemy.engine")


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor that copies every bound correlation field into the event."""
    for name, var in _CONTEXT.items():
        value = var.get()
        if value:
            event_dict[name] = value
    return event_dict


def configure_logging(json_format: bool = True, cache_loggers: bool = True) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Args:
        json_format: JSON lines when True, the colored console renderer otherwise.
        cache_loggers: Freeze each logger on first use. Turn off when the
            configuration is swapped at runtime, e.g. by structlog.testing.capture_logs.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=cache_loggers,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_context(
    request_id: str | None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Bind the correlation fields of the current request. path never includes the query."""
    _CONTEXT["request_id"].set(request_id)
    if path is not None:
        _CONTEXT["path"].set(path)
    if method is not None:
        _CONTEXT["method"].set(method)


def set_turn_id(turn_id: str | None) -> None:
    """Bind (or with None, unbind) the id of the chat turn being processed."""
    _CONTEXT["turn_id"].set(turn_id)


def clear_request_context() -> None:
    for var in _CONTEXT.values():
        var.set(None)


def get_request_id() -> str | None:
    return _CONTEXT["request_id"].get()
