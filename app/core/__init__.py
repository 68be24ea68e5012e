"""Core utilities for the application."""

from .security import hash_password, needs_password_rehash, verify_password

__all__ = ["hash_password", "verify_password", "needs_password_rehash"]
