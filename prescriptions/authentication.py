"""
Custom authentication backend for token-based auth.

Kept in its own module so REST framework can import it during
initialisation without pulling in any view code.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword."""

    keyword = 'Token'
