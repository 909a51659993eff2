# session_gateway/utils/keys.py
import secrets


def generate_session_secret(num_bytes: int = 48) -> str:
    """Return a random URL-safe string suitable for SESSION_SECRET."""
    return secrets.token_urlsafe(num_bytes)
