"""Blueberry: read PDF papers, highlight passages, and chat with an AI model about them.

The server half lives in blueberry.app / blueberry.api / blueberry.services;
the reader-side state machines live in blueberry.client.
"""

__version__ = "0.1.0"
