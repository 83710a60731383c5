"""
Identity provider clients used to verify bearer tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from firebase_admin import App, auth as firebase_auth


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> dict:
        """Return the decoded claims or raise if the token is rejected."""
        ...


@dataclass
class FirebaseIdentityVerifier:
    app: Optional[App] = None

    def verify(self, token: str) -> dict:
        return firebase_auth.verify_id_token(token, app=self.app)


@dataclass
class StaticIdentityVerifier:
    """Maps known tokens to claims; anything else is rejected."""

    tokens: dict = field(default_factory=dict)

    def verify(self, token: str) -> dict:
        claims = self.tokens.get(token)
        if claims is None:
            raise ValueError("Unknown token")
        return claims
