"""
Audit trail of tenant events.

Events are deduplicated: the document id is derived from the tenant, the
entity the event is about, the event type and a 5-minute time bucket, so a
retried request inside the bucket writes nothing new.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from datetime import datetime
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ConflictError, ImobError
from imob_api.logging_utils import current_request_id
from imob_api.services.common import Pagination, get_tenant, require, to_record
from shared.firebase_constants import ACTIVITY_LOGS_COLLECTION, tenant_collection, tenant_document
from shared.types import ActivityLog, ActorType

logger = logging.getLogger(__name__)

BUCKET_SECONDS = 5 * 60
ENTITY_KEYS = (
    "property_id",
    "lead_id",
    "broker_id",
    "user_id",
    "owner_id",
    "listing_id",
    "invitation_id",
    "batch_id",
)


def entity_id_from_metadata(metadata: dict) -> str:
    for key in ENTITY_KEYS:
        value = metadata.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def generate_event_id(tenant_id: str, event_type: str, metadata: dict, timestamp: datetime) -> str:
    bucket = int(timestamp.timestamp()) // BUCKET_SECONDS * BUCKET_SECONDS
    entity_id = entity_id_from_metadata(metadata)
    combined = f"{tenant_id}|{entity_id}|{event_type}|{bucket}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:32]


def generate_event_hash(
    tenant_id: str, event_type: str, actor_type: str, actor_id: str, metadata: dict
) -> str:
    payload = json.dumps(
        {
            "tenant_id": tenant_id,
            "event_type": event_type,
            "actor_type": actor_type,
            "actor_id": actor_id,
            "metadata": metadata,
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def log_activity(
    store: DocumentStore,
    tenant_id: str,
    event_type: str,
    *,
    actor_type: ActorType = ActorType.SYSTEM,
    actor_id: str = "",
    metadata: Optional[dict] = None,
    request_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ActivityLog:
    require(tenant_id, "tenant_id is required")
    require(event_type, "event_type is required")
    get_tenant(store, tenant_id)

    metadata = dict(metadata or {})
    timestamp = timestamp or utc_now()
    event_id = generate_event_id(tenant_id, event_type, metadata, timestamp)
    data = {
        "tenant_id": tenant_id,
        "event_id": event_id,
        "event_hash": generate_event_hash(
            tenant_id, event_type, str(actor_type), actor_id, metadata
        ),
        "request_id": request_id or current_request_id() or str(uuid.uuid4()),
        "event_type": event_type,
        "actor_type": str(actor_type),
        "actor_id": actor_id,
        "entity_id": entity_id_from_metadata(metadata),
        "metadata": metadata,
        "timestamp": timestamp,
    }
    collection = tenant_collection(tenant_id, ACTIVITY_LOGS_COLLECTION)
    try:
        doc = store.create(collection, data, doc_id=event_id)
    except ConflictError:
        logger.debug("Duplicate activity %s for tenant %s ignored", event_type, tenant_id)
        doc = store.get(tenant_document(tenant_id, ACTIVITY_LOGS_COLLECTION, event_id))
    return to_record(ActivityLog, doc)


def record_activity(store: DocumentStore, tenant_id: str, event_type: str, **kwargs) -> None:
    """Best-effort variant used by services: a failed audit write never fails the caller."""
    try:
        log_activity(store, tenant_id, event_type, **kwargs)
    except ImobError as exc:
        logger.warning(
            "Failed to log activity %s for tenant %s: %s", event_type, tenant_id, exc.message
        )


def list_activity_logs(
    store: DocumentStore,
    tenant_id: str,
    *,
    event_type: Optional[str] = None,
    actor_type: Optional[str] = None,
    actor_id: Optional[str] = None,
    entity_id: Optional[str] = None,
    request_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: Optional[Pagination] = None,
) -> list[ActivityLog]:
    require(tenant_id, "tenant_id is required")
    page = page or Pagination(order_by="timestamp")
    filters = []
    if event_type:
        filters.append(("event_type", "==", event_type))
    if actor_type:
        filters.append(("actor_type", "==", actor_type))
    if actor_id:
        filters.append(("actor_id", "==", actor_id))
    if entity_id:
        filters.append(("entity_id", "==", entity_id))
    if request_id:
        filters.append(("request_id", "==", request_id))
    if start:
        filters.append(("timestamp", ">=", start))
    if end:
        filters.append(("timestamp", "<=", end))
    docs = store.query(
        tenant_collection(tenant_id, ACTIVITY_LOGS_COLLECTION),
        filters,
        order_by="timestamp",
        descending=True,
        limit=page.limit,
        offset=page.offset,
    )
    return [to_record(ActivityLog, doc) for doc in docs]


def entity_timeline(
    store: DocumentStore, tenant_id: str, entity_id: str, page: Optional[Pagination] = None
) -> list[ActivityLog]:
    require(entity_id, "entity_id is required")
    return list_activity_logs(store, tenant_id, entity_id=entity_id, page=page)
