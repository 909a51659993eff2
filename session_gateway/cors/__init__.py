# session_gateway/cors/__init__.py
"""
Cross-origin policy for the gateway.

The decision logic is a pure function of the request's Origin header and the
immutable allow-list, so it can be exercised without any HTTP transport.
"""

from .origin_policy import OriginDecision, OriginPolicy, RejectedOriginLog

__all__ = [
    "OriginDecision",
    "OriginPolicy",
    "RejectedOriginLog",
]
