# -*- coding: utf-8 -*-
"""security
~~~~~~~~~~~
JWT bearer helpers.

* Uses *python-jose* to sign and verify HS256 tokens.
* Exposes **create_access_token**, **verify_token**, the **authenticated**
  dependency and **get_current_user** / **get_current_user_id**.

Issuing tokens to end users happens elsewhere; this service only needs the
``sub`` claim (user id) of a valid access token.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from attempt_engine.config.logger import configure_logger
from attempt_engine.config.settings import settings

logger = configure_logger(__name__)

# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "token_type": "access"})
    if "sub" in to_encode and not isinstance(to_encode["sub"], str):
        to_encode["sub"] = str(to_encode["sub"])
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(token: str, expected_type: str = "access") -> dict:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError as exc:
        logger.warning(f"JWT verification failed: {exc}")
        raise _unauthorized("Invalid or expired token") from exc

    token_type = payload.get("token_type")
    if token_type != expected_type:
        raise _unauthorized(
            f"Wrong token type: expected {expected_type}, got {token_type}"
        )
    if payload.get("sub") is None:
        raise _unauthorized("Token has no subject")
    return payload


def _extract_token(request: Request) -> str:
    auth: str | None = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise _unauthorized("Missing bearer token")
    return auth.split(" ", 1)[1]


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


async def authenticated(request: Request) -> dict:
    """Reject requests without a valid access token."""
    return verify_token(_extract_token(request), "access")


def get_current_user(request: Request) -> dict:
    """
    Claims of the caller's access token.

    Raises:
        HTTPException: 401 when the token is missing or invalid
    """
    return verify_token(_extract_token(request), "access")


def get_current_user_id(request: Request) -> int:
    payload = get_current_user(request)
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise _unauthorized("Token subject is not a user id") from exc
