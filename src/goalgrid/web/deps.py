"""FastAPI dependency injection."""

from __future__ import annotations

from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request

from ..store.base import CardStore
from .db.database import get_store


async def _get_store() -> CardStore:
    return await get_store()


Store = Annotated[CardStore, Depends(_get_store)]


async def _get_current_user(request: Request) -> dict:
    """Extract and validate JWT from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")

    token = auth_header.removeprefix("Bearer ").strip()
    try:
        from .auth.service import decode_token

        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token") from None

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


CurrentUser = Annotated[dict, Depends(_get_current_user)]
