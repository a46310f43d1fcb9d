"""Token issuing and the `token` header dependencies for user and admin routes."""
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import APIKeyHeader

import config
from errors import Unauthenticated

logger = structlog.get_logger(__name__)

token_header = APIKeyHeader(name="token", auto_error=False)

ADMIN_ROLE = "admin"


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def create_token(payload: dict) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=config.TOKEN_TTL_DAYS)
    to_encode = {**payload, "exp": exp}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def create_admin_token() -> str:
    return create_token({"email": config.ADMIN_EMAIL, "role": ADMIN_ROLE})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired. Please login again.")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token. Please login again.")


def require_user(token: Optional[str] = Depends(token_header)) -> str:
    """Resolve the calling user's id from the `token` header."""
    if not token:
        raise Unauthenticated("No token provided. Please login.")
    payload = decode_token(token)
    user_id = payload.get("id")
    if not user_id:
        raise Unauthenticated("Authentication failed. Please login again.")
    return str(user_id)


def require_admin(token: Optional[str] = Depends(token_header)) -> dict:
    if not token:
        raise Unauthenticated("Not Authorized Login Again")
    payload = decode_token(token)
    if payload.get("role") != ADMIN_ROLE or payload.get("email") != config.ADMIN_EMAIL:
        logger.warning("Rejected admin token", email=payload.get("email"))
        raise Unauthenticated("Unauthorized access")
    return payload
