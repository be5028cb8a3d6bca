"""
HTTP client for the property import endpoints.

Uploads a feed, then polls the batch until the worker reports a terminal
state and collects the per-record errors.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed")
DEFAULT_POLL_INTERVAL = 2.0


class ImportClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class ImportResult:
    success: bool
    total: int = 0
    imported: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)
    duration: Optional[float] = None
    batch_id: str = ""


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def batch_duration(batch: dict) -> Optional[float]:
    """Seconds between started_at and completed_at, when both are known."""
    started = _parse_timestamp(batch.get("started_at"))
    completed = _parse_timestamp(batch.get("completed_at"))
    if not started or not completed:
        return None
    return (completed - started).total_seconds()


class ImportClient:
    def __init__(
        self,
        base_url: str,
        id_token: str,
        *,
        api_prefix: str = "/api/v1",
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {id_token}"})
        self.timeout = timeout

    def _url(self, tenant_id: str, path: str) -> str:
        return f"{self.base_url}{self.api_prefix}/admin/{tenant_id}/import{path}"

    def _json(self, response: requests.Response) -> dict:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not response.ok:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise ImportClientError(
                message or f"HTTP {response.status_code}", status_code=response.status_code
            )
        return payload

    def upload(
        self,
        tenant_id: str,
        xml_path: Optional[str] = None,
        xls_path: Optional[str] = None,
        source: str = "union",
        created_by: Optional[str] = None,
    ) -> str:
        """Uploads the files and returns the id of the queued batch."""
        if not xml_path and not xls_path:
            raise ImportClientError("at least one file (xml or xls) is required")
        handles = {}
        try:
            for field_name, path in (("xml", xml_path), ("xls", xls_path)):
                if path:
                    handles[field_name] = (os.path.basename(path), open(path, "rb"))
            data = {"source": source}
            if created_by:
                data["created_by"] = created_by
            response = self.session.post(
                self._url(tenant_id, "/properties"),
                files=handles,
                data=data,
                timeout=self.timeout,
            )
        finally:
            for _, handle in handles.values():
                handle.close()
        payload = self._json(response)
        logger.info("Queued import batch %s", payload["batch_id"])
        return payload["batch_id"]

    def get_batch(self, tenant_id: str, batch_id: str) -> dict:
        response = self.session.get(self._url(tenant_id, f"/batches/{batch_id}"), timeout=self.timeout)
        return self._json(response)

    def get_errors(self, tenant_id: str, batch_id: str) -> list[dict]:
        response = self.session.get(
            self._url(tenant_id, f"/batches/{batch_id}/errors"), timeout=self.timeout
        )
        return self._json(response).get("errors", [])

    def wait_for_batch(
        self,
        tenant_id: str,
        batch_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> dict:
        """
        Polls the batch until it is completed or failed.

        A failed poll is logged and retried on the next interval. Raises
        ImportClientError when `timeout` seconds pass without a terminal state.
        """
        deadline = clock() + timeout if timeout is not None else None
        while True:
            try:
                batch = self.get_batch(tenant_id, batch_id)
                status = batch.get("status")
                logger.info(
                    "Batch %s: %s (%s%%)", batch_id, status, batch.get("progress_percent", 0)
                )
                if status in TERMINAL_STATUSES:
                    return batch
            except (requests.RequestException, ImportClientError) as exc:
                logger.warning("Polling batch %s failed: %s", batch_id, exc)
            if deadline is not None and clock() >= deadline:
                raise ImportClientError(f"timed out waiting for batch {batch_id}")
            sleep(poll_interval)

    def import_properties(
        self,
        tenant_id: str,
        xml_path: Optional[str] = None,
        xls_path: Optional[str] = None,
        source: str = "union",
        created_by: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
    ) -> ImportResult:
        batch_id = self.upload(tenant_id, xml_path, xls_path, source, created_by)
        batch = self.wait_for_batch(tenant_id, batch_id, poll_interval, timeout)
        errors = []
        if batch.get("total_errors"):
            try:
                errors = [
                    {"field": error.get("error_type"), "message": error.get("error_message")}
                    for error in self.get_errors(tenant_id, batch_id)
                ]
            except (requests.RequestException, ImportClientError) as exc:
                logger.warning("Fetching errors for batch %s failed: %s", batch_id, exc)
        return ImportResult(
            success=batch.get("status") == "completed",
            total=batch.get("total_xml_records", 0),
            imported=batch.get("total_properties_created", 0),
            updated=batch.get("total_properties_matched_existing", 0),
            failed=batch.get("total_errors", 0),
            errors=errors,
            duration=batch_duration(batch),
            batch_id=batch_id,
        )
