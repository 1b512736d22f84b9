"""Async services over an injected SQLAlchemy session."""
