"""JWT operations.

Identity lives elsewhere; this app only needs to know which owner a bearer
token speaks for.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta

import jwt

from ..config import WebConfig

_config: WebConfig | None = None


def _get_config() -> WebConfig:
    global _config
    if _config is None:
        _config = WebConfig.load()
    return _config


def init_auth(config: WebConfig | None = None) -> None:
    global _config
    _config = config or WebConfig.load()


def create_token(user_id: str, username: str = "") -> str:
    """Create a JWT token for a user."""
    config = _get_config()
    payload = {
        "sub": user_id,
        "username": username or user_id,
        "exp": datetime.now(UTC) + timedelta(hours=config.jwt_expire_hours),
        "iat": datetime.now(UTC),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises jwt.InvalidTokenError on failure."""
    config = _get_config()
    return jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
