"""
Public owner confirmation routes. The page route is served outside the API
prefix because the link in the owner's email points at it directly.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from imob_api.errors import ValidationError
from imob_api.middleware import strict_rate_limit
from imob_api.routes.common import message
from imob_api.schemas import ConfirmationSubmit
from imob_api.services import owner_confirmations

page_router = APIRouter(tags=["owner-confirmations"])
router = APIRouter(prefix="/owner-confirmations", tags=["owner-confirmations"])


def _require_tenant(tenant_id: Optional[str]) -> str:
    if not tenant_id:
        raise ValidationError("tenant_id is required")
    return tenant_id


@page_router.get("/confirmar/{token}")
def confirmation_page(
    token: str,
    tenant_id: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_document_store),
):
    data = owner_confirmations.get_confirmation_page(store, _require_tenant(tenant_id), token)
    return {"success": True, "data": data}


@router.post("/{token}/submit", dependencies=[Depends(strict_rate_limit)])
def submit_confirmation(
    token: str,
    body: ConfirmationSubmit,
    tenant_id: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_document_store),
):
    owner_confirmations.submit_confirmation(
        store, _require_tenant(tenant_id), token, body.action, body.price_amount
    )
    return message(owner_confirmations.THANK_YOU_MESSAGE)
