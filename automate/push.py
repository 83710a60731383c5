"""
Push notification clients: Firebase Cloud Messaging and an in-memory double.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from firebase_admin import App, exceptions as firebase_exceptions, messaging

from automate.errors import PushError


@dataclass
class MulticastResult:
    success_count: int
    failure_count: int


class PushClient(Protocol):
    """Sends one notification to a group of device tokens."""

    def send_multicast(
        self, tokens: list[str], title: str, body: str
    ) -> MulticastResult:
        ...


@dataclass
class InMemoryPushClient:
    """Records every multicast instead of delivering it."""

    sent: list[dict] = field(default_factory=list)
    failing_tokens: set[str] = field(default_factory=set)

    def send_multicast(
        self, tokens: list[str], title: str, body: str
    ) -> MulticastResult:
        self.sent.append({"tokens": list(tokens), "title": title, "body": body})
        failures = sum(1 for token in tokens if token in self.failing_tokens)
        return MulticastResult(
            success_count=len(tokens) - failures, failure_count=failures
        )


@dataclass
class FirebasePushClient:
    """Delivers notifications through Firebase Cloud Messaging."""

    app: Optional[App] = None

    def send_multicast(
        self, tokens: list[str], title: str, body: str
    ) -> MulticastResult:
        message = messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            tokens=tokens,
        )
        try:
            response = messaging.send_each_for_multicast(message, app=self.app)
        except (firebase_exceptions.FirebaseError, ValueError) as exc:
            raise PushError(str(exc)) from exc
        return MulticastResult(
            success_count=response.success_count,
            failure_count=response.failure_count,
        )
