# session_gateway/utils/__init__.py

"""
Utility module initialization file.

Helpers for generating key material used by the gateway.
"""

from .keys import generate_session_secret

__all__ = ["generate_session_secret"]
