"""Web server configuration."""

from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class WebConfig:
    """Configuration for the web server."""

    db_path: str = ".goalgrid/cards.db"
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24
    cors_origins: list[str] | None = None
    debug: bool = False

    @classmethod
    def load(cls) -> WebConfig:
        config = cls()
        config.db_path = os.environ.get("GOALGRID_DB_PATH", config.db_path)
        config.jwt_secret = os.environ.get("GOALGRID_JWT_SECRET", "")
        config.jwt_algorithm = os.environ.get("GOALGRID_JWT_ALGORITHM", config.jwt_algorithm)
        config.jwt_expire_hours = int(
            os.environ.get("GOALGRID_JWT_EXPIRE_HOURS", config.jwt_expire_hours)
        )
        config.debug = os.environ.get("GOALGRID_DEBUG", "").lower() in ("1", "true")
        origins = os.environ.get("GOALGRID_CORS_ORIGINS")
        if origins:
            config.cors_origins = [o.strip() for o in origins.split(",")]

        if not config.jwt_secret:
            # Tokens won't survive a restart, which is fine for local development.
            config.jwt_secret = secrets.token_hex(32)
            logger.warning(
                "GOALGRID_JWT_SECRET not set -- using random ephemeral secret. "
                "Set GOALGRID_JWT_SECRET for persistent sessions."
            )

        return config
