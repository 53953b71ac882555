"""
app/api/dependencies.py

Shared FastAPI dependencies: bearer-token authentication, workspace
resolution and domain error translation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import jwt
from fastapi import Depends, Header, HTTPException, status

from app.config import AuthSettings, get_auth_settings
from app.domain.workspace import WorkspaceContext
from app.errors import OrgPulseError
from app.services.authorization import get_workspace_context

logger = logging.getLogger(__name__)

HS_ALGORITHM = "HS256"
RS_ALGORITHM = "RS256"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part) or (self.email or self.id)


@lru_cache(maxsize=4)
def _jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url)


def decode_access_token(token: str, settings: AuthSettings | None = None) -> dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises HTTP 401 when the token is invalid or no verifier is configured.
    """

    resolved = settings or get_auth_settings()
    options = {"verify_aud": resolved.audience is not None}
    try:
        if resolved.jwks_url:
            signing_key = _jwks_client(resolved.jwks_url).get_signing_key_from_jwt(token)
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=[RS_ALGORITHM],
                audience=resolved.audience,
                issuer=resolved.issuer,
                options=options,
            )
        if resolved.jwt_secret:
            return jwt.decode(
                token,
                resolved.jwt_secret,
                algorithms=[HS_ALGORITHM],
                audience=resolved.audience,
                issuer=resolved.issuer,
                options=options,
            )
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    logger.error("No token verifier configured; set AUTH_JWKS_URL or AUTH_JWT_SECRET")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication is not configured")


def get_current_user(authorization: str | None = Header(None)) -> CurrentUser:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = authorization.split(" ", 1)[1].strip()
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return CurrentUser(
        id=str(user_id),
        email=payload.get("email"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
    )


def get_current_user_id(user: CurrentUser = Depends(get_current_user)) -> str:
    return user.id


def get_workspace(user: CurrentUser = Depends(get_current_user)) -> WorkspaceContext:
    try:
        return get_workspace_context(user.id)
    except OrgPulseError as exc:
        raise http_error(exc) from exc


def http_error(exc: OrgPulseError) -> HTTPException:
    """
    Map a domain error to the HTTP status it carries.
    """

    return HTTPException(status_code=exc.status_code, detail=exc.message)
