"""FastAPI application creation and configuration.

Registers exception handlers, the malformed-JSON guard, routes and the
lifespan that owns the LLM HTTP client.

Middleware Ordering:
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST (add_request_id_middleware) so it runs
  FIRST and every response carries X-Request-ID

LLM Client Lifecycle:
- httpx.AsyncClient is created at startup and stored in app.state
- LLMRouter wraps the shared client for connection pooling
- Client is closed at shutdown
- A router already present on app.state (tests) is left untouched

Database:
- app.state.session_factory holds the sessionmaker used by get_db and by
  the chat stream; tests pass their own bound to an isolated database
"""

import json
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from blueberry.api.routes import create_api_router
from blueberry.config import get_settings
from blueberry.db.session import create_session_factory
from blueberry.errors import ApiError, ApiErrorCode
from blueberry.logging import configure_logging, get_logger
from blueberry.middleware.request_id import RequestIDMiddleware
from blueberry.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
    validation_error_handler,
)
from blueberry.services.llm import LLMRouter

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared LLM client and router; close the client on shutdown."""
    settings = get_settings()

    httpx_client = None
    if getattr(app.state, "llm_router", None) is None:
        httpx_client = httpx.AsyncClient(
            timeout=httpx.Timeout(float(settings.llm_timeout_s), connect=10.0),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
        app.state.llm_router = LLMRouter(httpx_client)

    logger.info(
        "llm_router_initialized",
        provider=settings.llm_provider,
        model_name=settings.llm_model,
        configured=settings.llm_configured,
    )

    yield

    if httpx_client is not None:
        await httpx_client.aclose()
        logger.info("httpx_client_closed")


def create_app(
    session_factory: sessionmaker[Session] | None = None,
    llm_router: LLMRouter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_factory: Session factory for all database access. Defaults to
            one bound to DATABASE_URL.
        llm_router: LLM router to use instead of the one built at startup.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(json_format=settings.log_json)

    app = FastAPI(
        title="Blueberry API",
        description="Read PDF papers, highlight passages and ask an AI model about them",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory or create_session_factory()
    app.state.llm_router = llm_router

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware. Call after all other middleware so it runs first."""
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
