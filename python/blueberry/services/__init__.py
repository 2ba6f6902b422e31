"""Service layer. Route handlers call exactly one service function each."""
