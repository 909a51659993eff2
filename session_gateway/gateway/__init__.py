# session_gateway/gateway/__init__.py
from .pipeline import GatewayMiddleware, error_response

__all__ = ["GatewayMiddleware", "error_response"]
