"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from imob_api.auth import AuthClient, FirebaseAuthClient, InMemoryAuthClient
from imob_api.config import get_settings
from imob_api.db import BatchLedger, InMemoryBatchLedger, PostgresBatchLedger
from imob_api.documents import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore
from imob_api.firebase import get_firebase_app
from imob_api.mailer import InMemoryMailer, Mailer, SmtpMailer
from imob_api.queue import BatchQueue, InMemoryBatchQueue, RedisBatchQueue
from imob_api.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_document_store: DocumentStore | None = None
_auth_client: AuthClient | None = None
_batch_ledger: BatchLedger | None = None
_queue_client: BatchQueue | None = None
_storage_client: StorageClient | None = None
_mailer: Mailer | None = None


def _use_firebase() -> bool:
    settings = get_settings()
    return not settings.use_in_memory_backends and bool(settings.firebase_project_id)


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so in-memory state persists across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if _use_firebase():
        app = get_firebase_app(
            settings.firebase_project_id, settings.google_application_credentials
        )
        _document_store = FirestoreDocumentStore(
            app=app, database_id=settings.firestore_database_id
        )
    else:
        _document_store = InMemoryDocumentStore()
    return _document_store


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if _use_firebase():
        app = get_firebase_app(
            settings.firebase_project_id, settings.google_application_credentials
        )
        _auth_client = FirebaseAuthClient(
            app=app, web_api_key=settings.firebase_web_api_key
        )
    else:
        _auth_client = InMemoryAuthClient()
    return _auth_client


def get_batch_ledger() -> BatchLedger:
    global _batch_ledger
    if _batch_ledger:
        return _batch_ledger

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _batch_ledger = InMemoryBatchLedger()
    else:
        _batch_ledger = PostgresBatchLedger(settings.database_url)
    return _batch_ledger


def get_queue_client() -> BatchQueue:
    """
    Return a singleton queue client for dispatching import batches to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisBatchQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryBatchQueue()
    return _queue_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region,
            endpoint=settings.storage_endpoint,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    return _storage_client


def get_mailer() -> Mailer:
    global _mailer
    if _mailer:
        return _mailer

    settings = get_settings()
    if settings.use_in_memory_backends:
        _mailer = InMemoryMailer()
    else:
        _mailer = SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.email_from,
            from_name=settings.email_from_name,
        )
    return _mailer
