"""
Dependency wiring for the FastAPI app and the notifier job.

Clients are constructed once by `build_services` and carried on
`app.state.services`; route dependencies read them from the request so
tests can inject in-memory doubles through `create_app(services=...)`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from fastapi import Request
from firebase_admin import credentials

from automate.config import Settings
from automate.db import DbClient, InMemoryDbClient, PostgresDbClient
from automate.errors import ConfigurationError
from automate.identity import FirebaseIdentityVerifier, IdentityVerifier
from automate.push import FirebasePushClient, PushClient
from automate.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)


@dataclass
class Services:
    db: DbClient
    storage: StorageClient
    verifier: Optional[IdentityVerifier] = None
    push: Optional[PushClient] = None


def init_firebase(settings: Settings) -> Optional[firebase_admin.App]:
    """
    Initialize the default Firebase app from the configured service account.

    Returns None (with a warning) when no credential is configured.
    """
    source = settings.firebase_credential_source()
    if source is None:
        logger.warning(
            "Falta FIREBASE_SERVICE_ACCOUNT_PATH o FIREBASE_SERVICE_ACCOUNT_JSON; "
            "Firebase admin no inicializado (usar SKIP_AUTH=true para dev)."
        )
        return None
    try:
        return firebase_admin.get_app()
    except ValueError:
        return firebase_admin.initialize_app(credentials.Certificate(source))


def build_services(settings: Settings) -> Services:
    """Construct every external client; raises ConfigurationError if the store is unset."""
    if settings.use_in_memory_backends:
        logger.warning("Using in-memory store and storage backends")
        db: DbClient = InMemoryDbClient()
        storage: StorageClient = InMemoryStorageClient(
            base_url=settings.storage_public_base_url
        )
    else:
        if not settings.store_configured:
            raise ConfigurationError(
                "Falta DATABASE_URL o las credenciales de STORAGE_* en variables de entorno."
            )
        db = PostgresDbClient(settings.database_url)
        storage = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint,
            access_key_id=settings.storage_access_key_id,
            secret_access_key=settings.storage_secret_access_key,
            public_base_url=settings.storage_public_base_url,
        )

    firebase_app = init_firebase(settings)
    if firebase_app is None:
        return Services(db=db, storage=storage)
    return Services(
        db=db,
        storage=storage,
        verifier=FirebaseIdentityVerifier(app=firebase_app),
        push=FirebasePushClient(app=firebase_app),
    )


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_db_client(request: Request) -> DbClient:
    return get_services(request).db


def get_storage_client(request: Request) -> StorageClient:
    return get_services(request).storage


def get_identity_verifier(request: Request) -> Optional[IdentityVerifier]:
    return get_services(request).verifier
