# app/auth/__init__.py
"""
Authentication module for Kafi's admin endpoints.
"""

from .middleware import require_admin_key, AuthResult

__all__ = [
    "require_admin_key",
    "AuthResult",
]
