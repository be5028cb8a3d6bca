"""
Import batch ledger for Postgres and an in-memory test implementation.

Firestore holds the business documents; the ledger tracks the lifecycle of
property import batches so workers can claim them with row locks.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from sqlalchemy import JSON, Column, Float, Integer, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.types import ImportBatchStatus

COUNTER_FIELDS = (
    "total_xml_records",
    "total_properties_created",
    "total_properties_matched_existing",
    "total_errors",
)


def _iso(timestamp: Optional[float]) -> Optional[str]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class BatchLedger(Protocol):
    """Interface for import batch bookkeeping."""

    def create_batch(
        self,
        tenant_id: str,
        source: str,
        created_by: str,
        files: dict,
        batch_id: Optional[str] = None,
    ) -> "BatchRecord":
        ...

    def get_batch(self, batch_id: str) -> Optional["BatchRecord"]:
        ...

    def list_batches(self, tenant_id: str, limit: int = 20) -> list["BatchRecord"]:
        ...

    def claim_next_pending_batch(self) -> Optional["BatchRecord"]:
        ...

    def claim_batch(self, batch_id: str) -> Optional["BatchRecord"]:
        ...

    def update_batch_progress(
        self,
        batch_id: str,
        *,
        status: Optional[ImportBatchStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        counters: Optional[dict] = None,
        started_at: Optional[float] = None,
        completed_at: Optional[float] = None,
    ) -> None:
        ...

    def add_batch_error(self, batch_id: str, error: "BatchErrorRecord") -> None:
        ...

    def list_batch_errors(self, batch_id: str) -> list["BatchErrorRecord"]:
        ...

    def requeue_stale_locks(self, lock_timeout_seconds: float = 900) -> int:
        ...


@dataclass
class BatchRecord:
    batch_id: str
    tenant_id: str
    source: str
    created_by: str
    status: ImportBatchStatus
    files: dict = field(default_factory=dict)
    stage: str = "PENDING"
    progress_percent: float = 0.0
    total_xml_records: int = 0
    total_properties_created: int = 0
    total_properties_matched_existing: int = 0
    total_errors: int = 0
    locked_at: Optional[float] = None
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    @property
    def is_terminal(self) -> bool:
        return self.status in (ImportBatchStatus.COMPLETED, ImportBatchStatus.FAILED)

    def as_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "tenant_id": self.tenant_id,
            "source": self.source,
            "created_by": self.created_by,
            "status": self.status.value,
            "stage": self.stage,
            "progress_percent": self.progress_percent,
            "total_xml_records": self.total_xml_records,
            "total_properties_created": self.total_properties_created,
            "total_properties_matched_existing": self.total_properties_matched_existing,
            "total_errors": self.total_errors,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class BatchErrorRecord:
    error_type: str
    error_message: str
    record_reference: Optional[str] = None
    row_number: Optional[int] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "error_type": self.error_type,
            "error_message": self.error_message,
            "record_reference": self.record_reference,
            "row_number": self.row_number,
            "created_at": _iso(self.created_at),
        }


def _apply_progress(
    batch,
    *,
    status: Optional[str],
    stage: Optional[str],
    progress_percent: Optional[float],
    counters: Optional[dict],
    started_at: Optional[float],
    completed_at: Optional[float],
) -> None:
    if status:
        batch.status = status
    if stage:
        batch.stage = stage
    if progress_percent is not None:
        batch.progress_percent = progress_percent
    for name, value in (counters or {}).items():
        if name not in COUNTER_FIELDS:
            raise ValueError(f"Unknown batch counter: {name}")
        setattr(batch, name, int(value))
    if started_at is not None:
        batch.started_at = started_at
    if completed_at is not None:
        batch.completed_at = completed_at
    batch.updated_at = time.time()


class InMemoryBatchLedger:
    """Simple in-memory ledger for development and tests."""

    def __init__(self):
        self.batches: Dict[str, BatchRecord] = {}
        self.errors: Dict[str, List[BatchErrorRecord]] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.batches.clear()
        self.errors.clear()

    def create_batch(
        self,
        tenant_id: str,
        source: str,
        created_by: str,
        files: dict,
        batch_id: Optional[str] = None,
    ) -> BatchRecord:
        batch_id = batch_id or uuid.uuid4().hex
        record = BatchRecord(
            batch_id=batch_id,
            tenant_id=tenant_id,
            source=source,
            created_by=created_by,
            status=ImportBatchStatus.PENDING,
            files=dict(files),
        )
        self.batches[batch_id] = record
        return record

    def get_batch(self, batch_id: str) -> Optional[BatchRecord]:
        return self.batches.get(batch_id)

    def list_batches(self, tenant_id: str, limit: int = 20) -> list[BatchRecord]:
        items = [b for b in self.batches.values() if b.tenant_id == tenant_id]
        items.sort(key=lambda b: b.created_at, reverse=True)
        return items[:limit]

    def claim_next_pending_batch(self) -> Optional[BatchRecord]:
        for batch in sorted(self.batches.values(), key=lambda b: b.created_at):
            if batch.status == ImportBatchStatus.PENDING:
                return self.claim_batch(batch.batch_id)
        return None

    def claim_batch(self, batch_id: str) -> Optional[BatchRecord]:
        batch = self.batches.get(batch_id)
        if not batch or batch.status != ImportBatchStatus.PENDING:
            return None
        batch.status = ImportBatchStatus.PROCESSING
        batch.stage = "CLAIMED"
        batch.locked_at = time.time()
        batch.updated_at = batch.locked_at
        return batch

    def update_batch_progress(
        self,
        batch_id: str,
        *,
        status: Optional[ImportBatchStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        counters: Optional[dict] = None,
        started_at: Optional[float] = None,
        completed_at: Optional[float] = None,
    ) -> None:
        batch = self.batches.get(batch_id)
        if not batch:
            return
        _apply_progress(
            batch,
            status=status,
            stage=stage,
            progress_percent=progress_percent,
            counters=counters,
            started_at=started_at,
            completed_at=completed_at,
        )

    def add_batch_error(self, batch_id: str, error: BatchErrorRecord) -> None:
        self.errors.setdefault(batch_id, []).append(error)

    def list_batch_errors(self, batch_id: str) -> list[BatchErrorRecord]:
        return list(self.errors.get(batch_id, []))

    def requeue_stale_locks(self, lock_timeout_seconds: float = 900) -> int:
        now = time.time()
        requeued = 0
        for batch in self.batches.values():
            if (
                batch.status == ImportBatchStatus.PROCESSING
                and batch.stage == "CLAIMED"
                and batch.locked_at
                and now - batch.locked_at > lock_timeout_seconds
            ):
                batch.status = ImportBatchStatus.PENDING
                batch.stage = "PENDING"
                batch.progress_percent = 0.0
                batch.locked_at = None
                batch.updated_at = now
                requeued += 1
        return requeued


class PostgresBatchLedger:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresBatchLedger")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_batch_record(self, row: "ImportBatchRow") -> BatchRecord:
        return BatchRecord(
            batch_id=row.batch_id,
            tenant_id=row.tenant_id,
            source=row.source,
            created_by=row.created_by,
            status=ImportBatchStatus(row.status),
            files=row.files or {},
            stage=row.stage,
            progress_percent=row.progress_percent,
            total_xml_records=row.total_xml_records,
            total_properties_created=row.total_properties_created,
            total_properties_matched_existing=row.total_properties_matched_existing,
            total_errors=row.total_errors,
            locked_at=row.locked_at,
            started_at=row.started_at,
            completed_at=row.completed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_batch(
        self,
        tenant_id: str,
        source: str,
        created_by: str,
        files: dict,
        batch_id: Optional[str] = None,
    ) -> BatchRecord:
        now = time.time()
        with self.Session() as session:
            row = ImportBatchRow(
                batch_id=batch_id or uuid.uuid4().hex,
                tenant_id=tenant_id,
                source=source,
                created_by=created_by,
                status=ImportBatchStatus.PENDING.value,
                stage="PENDING",
                progress_percent=0.0,
                files=dict(files),
                total_xml_records=0,
                total_properties_created=0,
                total_properties_matched_existing=0,
                total_errors=0,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_batch_record(row)

    def get_batch(self, batch_id: str) -> Optional[BatchRecord]:
        with self.Session() as session:
            row = session.get(ImportBatchRow, batch_id)
            if not row:
                return None
            return self._to_batch_record(row)

    def list_batches(self, tenant_id: str, limit: int = 20) -> list[BatchRecord]:
        with self.Session() as session:
            stmt = (
                select(ImportBatchRow)
                .where(ImportBatchRow.tenant_id == tenant_id)
                .order_by(ImportBatchRow.created_at.desc())
                .limit(limit)
            )
            return [self._to_batch_record(row) for row in session.execute(stmt).scalars()]

    def _claim(self, session: Session, stmt) -> Optional[BatchRecord]:
        row = session.execute(stmt.with_for_update(skip_locked=True)).scalar_one_or_none()
        if not row:
            return None
        now = time.time()
        row.status = ImportBatchStatus.PROCESSING.value
        row.stage = "CLAIMED"
        row.locked_at = now
        row.updated_at = now
        session.commit()
        session.refresh(row)
        return self._to_batch_record(row)

    def claim_next_pending_batch(self) -> Optional[BatchRecord]:
        with self.Session() as session:
            stmt = (
                select(ImportBatchRow)
                .where(ImportBatchRow.status == ImportBatchStatus.PENDING.value)
                .order_by(ImportBatchRow.created_at.asc())
                .limit(1)
            )
            return self._claim(session, stmt)

    def claim_batch(self, batch_id: str) -> Optional[BatchRecord]:
        with self.Session() as session:
            stmt = select(ImportBatchRow).where(
                ImportBatchRow.batch_id == batch_id,
                ImportBatchRow.status == ImportBatchStatus.PENDING.value,
            )
            return self._claim(session, stmt)

    def update_batch_progress(
        self,
        batch_id: str,
        *,
        status: Optional[ImportBatchStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        counters: Optional[dict] = None,
        started_at: Optional[float] = None,
        completed_at: Optional[float] = None,
    ) -> None:
        with self.Session() as session:
            row = session.get(ImportBatchRow, batch_id)
            if not row:
                return
            _apply_progress(
                row,
                status=status.value if status else None,
                stage=stage,
                progress_percent=progress_percent,
                counters=counters,
                started_at=started_at,
                completed_at=completed_at,
            )
            session.commit()

    def add_batch_error(self, batch_id: str, error: BatchErrorRecord) -> None:
        with self.Session() as session:
            session.add(
                ImportErrorRow(
                    id=uuid.uuid4().hex,
                    batch_id=batch_id,
                    error_type=error.error_type,
                    error_message=error.error_message,
                    record_reference=error.record_reference,
                    row_number=error.row_number,
                    created_at=error.created_at,
                )
            )
            session.commit()

    def list_batch_errors(self, batch_id: str) -> list[BatchErrorRecord]:
        with self.Session() as session:
            rows = (
                session.query(ImportErrorRow)
                .filter(ImportErrorRow.batch_id == batch_id)
                .order_by(ImportErrorRow.created_at.asc())
                .all()
            )
            return [
                BatchErrorRecord(
                    error_type=row.error_type,
                    error_message=row.error_message,
                    record_reference=row.record_reference,
                    row_number=row.row_number,
                    created_at=row.created_at,
                )
                for row in rows
            ]

    def requeue_stale_locks(self, lock_timeout_seconds: float = 900) -> int:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            updated = (
                session.query(ImportBatchRow)
                .filter(
                    ImportBatchRow.status == ImportBatchStatus.PROCESSING.value,
                    ImportBatchRow.stage == "CLAIMED",
                    ImportBatchRow.locked_at.is_not(None),
                    ImportBatchRow.locked_at < cutoff,
                )
                .update(
                    {
                        ImportBatchRow.status: ImportBatchStatus.PENDING.value,
                        ImportBatchRow.stage: "PENDING",
                        ImportBatchRow.progress_percent: 0.0,
                        ImportBatchRow.locked_at: None,
                        ImportBatchRow.updated_at: time.time(),
                    },
                    synchronize_session=False,
                )
            )
            session.commit()
            return updated or 0


Base = declarative_base()


class ImportBatchRow(Base):
    __tablename__ = "import_batches"

    batch_id = Column(String, primary_key=True)
    tenant_id = Column(String, nullable=False, index=True)
    source = Column(String, nullable=False)
    created_by = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, index=True)
    stage = Column(String, nullable=False, default="PENDING")
    progress_percent = Column(Float, nullable=False, default=0.0)
    files = Column(JSON, nullable=False)
    total_xml_records = Column(Integer, nullable=False, default=0)
    total_properties_created = Column(Integer, nullable=False, default=0)
    total_properties_matched_existing = Column(Integer, nullable=False, default=0)
    total_errors = Column(Integer, nullable=False, default=0)
    locked_at = Column(Float, nullable=True)
    started_at = Column(Float, nullable=True)
    completed_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ImportErrorRow(Base):
    __tablename__ = "import_errors"

    id = Column(String, primary_key=True)
    batch_id = Column(String, nullable=False, index=True)
    error_type = Column(String, nullable=False)
    error_message = Column(String, nullable=False)
    record_reference = Column(String, nullable=True)
    row_number = Column(Integer, nullable=True)
    created_at = Column(Float, nullable=False)
