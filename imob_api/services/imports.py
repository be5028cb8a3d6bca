"""
Property import batches: accept uploaded feed files, persist them, and queue
the batch for the worker.
"""

from __future__ import annotations

import logging
import os
import uuid
from typing import Optional

from imob_api.db import BatchLedger, BatchRecord
from imob_api.documents import DocumentStore
from imob_api.errors import NotFoundError, ValidationError
from imob_api.queue import BatchQueue
from imob_api.services.activity_log import record_activity
from imob_api.services.common import get_tenant, parse_enum
from imob_api.storage import StorageClient
from shared.types import ActorType, ImportSource

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    "xml": (".xml",),
    "xls": (".xls", ".xlsx"),
}
CONTENT_TYPES = {
    ".xml": "application/xml",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def batch_file_path(tenant_id: str, batch_id: str, field_name: str, extension: str) -> str:
    return f"imports/{tenant_id}/{batch_id}/{field_name}{extension}"


def _extension(field_name: str, filename: Optional[str]) -> str:
    extension = os.path.splitext(filename or "")[1].lower()
    if extension not in ALLOWED_EXTENSIONS[field_name]:
        allowed = " or ".join(ALLOWED_EXTENSIONS[field_name])
        raise ValidationError(f"{field_name} file must have extension {allowed}")
    return extension


def create_import_batch(
    store: DocumentStore,
    ledger: BatchLedger,
    storage: StorageClient,
    queue: BatchQueue,
    tenant_id: str,
    *,
    files: dict[str, tuple[str, bytes]],
    source: str = ImportSource.UNION,
    created_by: str = "",
) -> BatchRecord:
    """
    `files` maps the form field ("xml" or "xls") to (filename, content).
    Files are stored before the batch row exists so a worker never sees a
    batch whose inputs are missing.
    """
    get_tenant(store, tenant_id)
    source = parse_enum(ImportSource, source or ImportSource.UNION, "source").value
    files = {name: value for name, value in files.items() if value and value[1]}
    if not files:
        raise ValidationError("at least one file (xml or xls) is required")
    unknown = set(files) - set(ALLOWED_EXTENSIONS)
    if unknown:
        raise ValidationError(f"unexpected file fields: {', '.join(sorted(unknown))}")

    batch_id = uuid.uuid4().hex
    stored = {}
    for field_name, (filename, content) in files.items():
        extension = _extension(field_name, filename)
        path = batch_file_path(tenant_id, batch_id, field_name, extension)
        storage.upload_bytes(path, content, CONTENT_TYPES[extension])
        stored[field_name] = {"path": path, "filename": filename, "size": len(content)}

    batch = ledger.create_batch(tenant_id, source, created_by, stored, batch_id=batch_id)
    queue.enqueue(batch.batch_id)
    logger.info(
        "Queued import batch %s for tenant %s (%s)", batch.batch_id, tenant_id, ", ".join(stored)
    )
    record_activity(
        store,
        tenant_id,
        "import_batch_created",
        actor_type=ActorType.USER if created_by else ActorType.SYSTEM,
        actor_id=created_by,
        metadata={"batch_id": batch.batch_id, "source": source, "files": sorted(stored)},
    )
    return batch


def get_tenant_batch(ledger: BatchLedger, tenant_id: str, batch_id: str) -> BatchRecord:
    batch = ledger.get_batch(batch_id)
    if not batch or batch.tenant_id != tenant_id:
        raise NotFoundError("import batch not found")
    return batch


def batch_file_links(storage: StorageClient, batch: BatchRecord, expires_in: int = 3600) -> dict:
    """Uploaded files of a batch with short-lived download URLs."""
    return {
        field_name: {
            "filename": info.get("filename"),
            "size": info.get("size"),
            "url": storage.presign_get(info["path"], expires_in=expires_in),
        }
        for field_name, info in (batch.files or {}).items()
    }
