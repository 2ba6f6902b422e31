"""FastAPI dependencies for route handlers."""

from fastapi import Request

from blueberry.db.session import get_db, get_session_factory
from blueberry.services.llm import LLMRouter

__all__ = ["get_db", "get_llm_router", "get_session_factory"]


def get_llm_router(request: Request) -> LLMRouter:
    """Get the shared LLM router created in the app lifespan."""
    return request.app.state.llm_router
