# session_gateway/__init__.py
"""Session Gateway: origin policy, server-side sessions and identity for a FastAPI application."""

__version__ = "0.1.0"
