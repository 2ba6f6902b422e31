"""Database module for Blueberry.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from blueberry.db.engine import create_db_engine, get_engine
from blueberry.db.models import Base, Conversation, Document, Highlight, Message
from blueberry.db.session import create_session_factory, get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Models
    "Document",
    "Highlight",
    "Conversation",
    "Message",
]
