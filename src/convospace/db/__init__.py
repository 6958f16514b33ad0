"""Database access: engine, sessions and repositories."""
