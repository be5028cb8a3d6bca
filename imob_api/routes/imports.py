"""
Property import uploads and batch status polling.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from imob_api.db import BatchLedger
from imob_api.dependencies import (
    get_batch_ledger,
    get_document_store,
    get_queue_client,
    get_storage_client,
)
from imob_api.documents import DocumentStore
from imob_api.queue import BatchQueue
from imob_api.schemas import ImportBatchResponse, ImportErrorItem, ImportErrorsResponse
from imob_api.security import CurrentUser, require_permission, require_tenant_access
from imob_api.services import imports
from imob_api.storage import StorageClient

router = APIRouter(prefix="/admin/{tenant_id}/import", tags=["imports"])


@router.post("/properties", response_model=ImportBatchResponse, status_code=202)
async def import_properties(
    tenant_id: str,
    xml: Optional[UploadFile] = File(None),
    xls: Optional[UploadFile] = File(None),
    source: str = Form("union"),
    created_by: Optional[str] = Form(None),
    user: CurrentUser = Depends(require_permission("properties.create")),
    store: DocumentStore = Depends(get_document_store),
    ledger: BatchLedger = Depends(get_batch_ledger),
    storage: StorageClient = Depends(get_storage_client),
    queue: BatchQueue = Depends(get_queue_client),
):
    """
    Store the uploaded feed files and queue a batch. The worker does the import.
    """
    files = {}
    for field_name, upload in (("xml", xml), ("xls", xls)):
        if upload is not None and upload.filename:
            files[field_name] = (upload.filename, await upload.read())
    batch = imports.create_import_batch(
        store,
        ledger,
        storage,
        queue,
        tenant_id,
        files=files,
        source=source,
        created_by=created_by or user.actor_id,
    )
    return ImportBatchResponse(batch_id=batch.batch_id, status=batch.status.value)


@router.get("/batches")
def list_batches(
    tenant_id: str,
    limit: int = Query(20, ge=1, le=100),
    _: CurrentUser = Depends(require_tenant_access),
    ledger: BatchLedger = Depends(get_batch_ledger),
):
    batches = ledger.list_batches(tenant_id, limit=limit)
    return {"batches": [batch.as_dict() for batch in batches], "count": len(batches)}


@router.get("/batches/{batch_id}")
def get_batch(
    tenant_id: str,
    batch_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    ledger: BatchLedger = Depends(get_batch_ledger),
    storage: StorageClient = Depends(get_storage_client),
):
    batch = imports.get_tenant_batch(ledger, tenant_id, batch_id)
    return {**batch.as_dict(), "files": imports.batch_file_links(storage, batch)}


@router.get("/batches/{batch_id}/errors", response_model=ImportErrorsResponse)
def get_batch_errors(
    tenant_id: str,
    batch_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    ledger: BatchLedger = Depends(get_batch_ledger),
):
    imports.get_tenant_batch(ledger, tenant_id, batch_id)
    errors = [
        ImportErrorItem(
            error_type=error.error_type,
            error_message=error.error_message,
            record_reference=error.record_reference,
            row_number=error.row_number,
        )
        for error in ledger.list_batch_errors(batch_id)
    ]
    return ImportErrorsResponse(errors=errors, count=len(errors))
