# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from imob_api.documents import DocumentStore
from imob_api.errors import ImobError, ValidationError
from imob_api.services import owners, properties, property_broker_roles, users
from import_pipeline.normalize import (
    OWNER_ERROR,
    SAVE_ERROR,
    VALIDATION_ERROR,
    FeedError,
    ImportIssue,
    NormalizedRecord,
    RecordError,
    normalize_record,
    record_reference,
)
from import_pipeline.spreadsheet import parse_spreadsheet
from import_pipeline.xml_feed import parse_xml_feed
from shared import validators
from shared.types import BrokerPropertyRole, ImportSource, Property, PropertyStatus, PropertyVisibility

logger = logging.getLogger(__name__)

OWNER_PLACEHOLDER_NAME = "Proprietário {reference}"
IMPORT_CONSENT_ORIGIN = "import"

ProgressCallback = Callable[[int, int], None]


@dataclass
class ImportSummary:
    total_records: int = 0
    created: int = 0
    matched_existing: int = 0
    issues: List[ImportIssue] = field(default_factory=list)

    @property
    def errors(self) -> int:
        return len(self.issues)


def merge_records(xml_records: List[dict], sheet_rows: List[dict], source: str) -> List[dict]:
    """
    Combines parsed XML listings and spreadsheet rows into the records to import.

    For `union` imports the spreadsheet complements the XML listing with the
    same reference: values missing from the listing are taken from the row and
    the row number is kept for error reporting. Rows without a listing are
    imported on their own. For `other` imports every row is its own record.
    """
    if source != ImportSource.UNION or not xml_records:
        return list(xml_records) + list(sheet_rows)

    rows_by_reference = {}
    for row in sheet_rows:
        rows_by_reference.setdefault(record_reference(row), row)
    merged = []
    used = set()
    for listing in xml_records:
        reference = record_reference(listing)
        row = rows_by_reference.get(reference) if reference else None
        if row is None:
            merged.append(listing)
            continue
        used.add(reference)
        combined = dict(row)
        combined.update({key: value for key, value in listing.items() if value not in (None, "", [])})
        combined["row_number"] = row.get("row_number")
        merged.append(combined)
    merged.extend(row for row in sheet_rows if record_reference(row) not in used)
    return merged


def _resolve_owner(
    store: DocumentStore,
    tenant_id: str,
    record: NormalizedRecord,
    existing: Optional[Property],
    created_by: str,
) -> Optional[str]:
    contact = record.owner
    if not contact:
        return None
    try:
        phone = validators.validate_phone(contact["phone"]) if contact.get("phone") else ""
        email = validators.validate_email(contact["email"]) if contact.get("email") else ""
    except ValueError as exc:
        raise RecordError(OWNER_ERROR, str(exc)) from exc
    if phone or email:
        match = owners.find_owner_by_contact(store, tenant_id, phone=phone, email=email)
        if match:
            return match.id
    elif existing and existing.owner_id:
        return existing.owner_id

    data = {
        "name": contact.get("name") or OWNER_PLACEHOLDER_NAME.format(reference=record.reference),
        "phone": phone,
        "email": email,
        "consent_origin": IMPORT_CONSENT_ORIGIN,
    }
    try:
        owner = owners.create_owner(
            store, tenant_id, {k: v for k, v in data.items() if v}, actor_id=created_by
        )
    except ValidationError as exc:
        raise RecordError(OWNER_ERROR, exc.message) from exc
    return owner.id


def _assign_originating_broker(
    store: DocumentStore, tenant_id: str, property_id: str, broker_id: str, created_by: str
) -> None:
    if property_broker_roles.get_originating_broker(store, tenant_id, property_id):
        return
    property_broker_roles.assign_broker(
        store,
        tenant_id,
        property_id,
        broker_id,
        BrokerPropertyRole.ORIGINATING,
        actor_id=created_by,
    )


def import_record(
    store: DocumentStore,
    tenant_id: str,
    raw: dict,
    *,
    created_by: str = "",
    batch_id: str = "",
    issues: Optional[List[ImportIssue]] = None,
) -> bool:
    """
    Creates or updates the property for one raw record.

    Owner problems do not stop the property from being saved; they are
    appended to `issues` instead.

    Returns:
        bool: True if a new property was created, False if an existing one
        was updated.

    Raises:
        RecordError: If the record cannot be imported.
    """
    record = normalize_record(raw, require_title=False)
    existing = properties.get_property_by_reference(store, tenant_id, record.reference)
    if existing is None and not record.property.get("title"):
        raise RecordError(VALIDATION_ERROR, "record has no title")

    data = dict(record.property)
    try:
        owner_id = _resolve_owner(store, tenant_id, record, existing, created_by)
    except RecordError as exc:
        owner_id = None
        if issues is not None:
            issues.append(ImportIssue(exc.error_type, exc.message, record.reference, record.row_number))
    if owner_id:
        data["owner_id"] = owner_id

    broker = None
    if record.captador_name:
        data["captador_name"] = record.captador_name
        broker = users.find_broker_by_name(store, tenant_id, record.captador_name)
        if broker:
            data["captador_id"] = broker.id
            data["captador_name"] = broker.name
        else:
            logger.debug("No broker named %r in tenant %s", record.captador_name, tenant_id)

    if existing:
        data.pop("reference", None)
        saved = properties.update_property(
            store,
            tenant_id,
            existing.id,
            data,
            actor_id=created_by,
        )
    else:
        data.update(
            {
                "visibility": PropertyVisibility.PRIVATE.value,
                "status": PropertyStatus.AVAILABLE.value,
                "import_batch_id": batch_id,
            }
        )
        saved = properties.create_property(
            store,
            tenant_id,
            data,
            actor_id=created_by,
        )
    if broker:
        _assign_originating_broker(store, tenant_id, saved.id, broker.id, created_by)
    return existing is None


def run_import(
    store: DocumentStore,
    tenant_id: str,
    xml_bytes: Optional[bytes] = None,
    xls_bytes: Optional[bytes] = None,
    source: str = ImportSource.UNION,
    created_by: str = "",
    batch_id: str = "",
    on_progress: Optional[ProgressCallback] = None,
) -> ImportSummary:
    """
    Imports a listings feed and/or spreadsheet into a tenant.

    Args:
        store (DocumentStore): Document store holding the tenant data.
        tenant_id (str): The tenant receiving the properties.
        xml_bytes (bytes): Contents of the XML feed, if uploaded.
        xls_bytes (bytes): Contents of the .xlsx spreadsheet, if uploaded.
        source (str): "union" or "other".
        created_by (str): Actor recorded on the created documents.
        batch_id (str): Stored on new properties as `import_batch_id`.
        on_progress (Callable[[int, int], None]): Called with (done, total)
            after each record.

    Returns:
        ImportSummary: Counters and per-record issues.

    Raises:
        FeedError: If no input file could be read at all.
    """
    summary = ImportSummary()
    xml_records: List[dict] = []
    sheet_rows: List[dict] = []
    if xml_bytes:
        xml_records = parse_xml_feed(xml_bytes)
    if xls_bytes:
        try:
            sheet_rows = parse_spreadsheet(xls_bytes)
        except FeedError as exc:
            if not xml_records:
                raise
            logger.warning("Ignoring spreadsheet for tenant %s: %s", tenant_id, exc.message)
            summary.issues.append(ImportIssue(exc.error_type, exc.message))

    records = merge_records(xml_records, sheet_rows, source)
    summary.total_records = len(records)
    logger.info(
        "Importing %d records into tenant %s (batch %s)", len(records), tenant_id, batch_id or "-"
    )

    for index, raw in enumerate(records, start=1):
        reference = record_reference(raw) or None
        row_number = raw.get("row_number")
        try:
            created = import_record(
                store,
                tenant_id,
                raw,
                created_by=created_by,
                batch_id=batch_id,
                issues=summary.issues,
            )
        except RecordError as exc:
            summary.issues.append(ImportIssue(exc.error_type, exc.message, reference, row_number))
        except ValidationError as exc:
            summary.issues.append(ImportIssue(VALIDATION_ERROR, exc.message, reference, row_number))
        except ValueError as exc:
            summary.issues.append(ImportIssue(VALIDATION_ERROR, str(exc), reference, row_number))
        except ImobError as exc:
            summary.issues.append(ImportIssue(SAVE_ERROR, exc.message, reference, row_number))
        else:
            if created:
                summary.created += 1
            else:
                summary.matched_existing += 1
        if on_progress:
            on_progress(index, len(records))

    logger.info(
        "Import finished for tenant %s: %d created, %d matched, %d errors",
        tenant_id,
        summary.created,
        summary.matched_existing,
        summary.errors,
    )
    return summary
