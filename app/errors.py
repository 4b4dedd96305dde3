# app/errors.py
"""
Domain exceptions shared by services and routes.
"""


class InvalidOwner(ValueError):
    """Owner identity is missing or malformed."""


class StoreUnavailable(RuntimeError):
    """A read or write against the transaction store failed."""
