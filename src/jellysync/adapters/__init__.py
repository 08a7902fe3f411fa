"""Adapters: HTTP, OAuth, integration registry and the SQLAlchemy contract store."""
