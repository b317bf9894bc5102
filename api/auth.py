"""Caller identity: HMAC-SHA256 signed user tokens.

Tokens look like ``<user_id>.<hex hmac-sha256(auth_secret, user_id)>`` and are
issued by the app that owns the user session.
"""

import hashlib
import hmac
import logging
import uuid

from fastapi import HTTPException, Request

from src.core.config import settings

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-User-Token"


def sign_user_token(user_id: uuid.UUID | str, secret: str | None = None) -> str:
    key = (secret if secret is not None else settings.auth_secret).encode()
    signature = hmac.new(key, str(user_id).encode(), hashlib.sha256).hexdigest()
    return f"{user_id}.{signature}"


def verify_user_token(token: str, secret: str | None = None) -> uuid.UUID:
    """Return the user id carried by *token*; raises ValueError if it does not verify."""
    user_part, sep, received = token.rpartition(".")
    if not sep or not user_part or not received:
        raise ValueError("Malformed token")
    user_id = uuid.UUID(user_part)
    expected = sign_user_token(user_id, secret).rpartition(".")[2]
    if not hmac.compare_digest(expected, received):
        raise ValueError("Invalid signature")
    return user_id


async def get_current_user_id(request: Request) -> uuid.UUID:
    """FastAPI dependency. Raises HTTPException 401 if the token is missing or invalid."""
    token = request.headers.get(TOKEN_HEADER, "")
    if not token:
        raise HTTPException(status_code=401, detail="Missing user token")
    if not settings.auth_secret:
        logger.error("AUTH_SECRET is not configured, rejecting request")
        raise HTTPException(status_code=401, detail="Authentication not configured")
    try:
        return verify_user_token(token)
    except ValueError as e:
        logger.warning("User token rejected: %s", e)
        raise HTTPException(status_code=401, detail="Invalid user token")
