"""
Request authentication: resolves the bearer token into an Identity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from automate.config import Settings
from automate.dependencies import get_app_settings, get_identity_verifier
from automate.identity import IdentityVerifier

logger = logging.getLogger(__name__)

DEV_EMAIL = "dev@example.com"


@dataclass
class Identity:
    """Authenticated caller, as asserted by the identity provider."""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_identity(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    verifier: Optional[IdentityVerifier] = Depends(get_identity_verifier),
) -> Identity:
    """
    Dependency for protected routes.

    With SKIP_AUTH enabled a fixed development identity is returned without
    calling Firebase. Otherwise the `Authorization: Bearer <token>` header is
    required and the token is verified once; any rejection is a 401 with a
    generic message.
    """
    if settings.skip_auth:
        return Identity(uid=settings.dev_uid, email=DEV_EMAIL)

    header = request.headers.get("Authorization")
    if not header or not header.startswith("Bearer "):
        raise _unauthorized("No token")
    token = header.split(" ", 1)[1].strip()
    if not token:
        raise _unauthorized("No token")

    if verifier is None:
        logger.error("Token verification unavailable: Firebase not initialized")
        raise _unauthorized("Token inválido")
    try:
        claims = verifier.verify(token)
    except Exception as exc:
        logger.warning("Token inválido: %s", exc)
        raise _unauthorized("Token inválido") from exc

    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        logger.warning("Verified token carries no uid")
        raise _unauthorized("Token inválido")
    return Identity(
        uid=uid,
        email=claims.get("email"),
        name=claims.get("name"),
    )
