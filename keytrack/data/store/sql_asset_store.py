"""
SqlAssetStore - AssetStore backed by Flask-SQLAlchemy

Every public write runs inside transaction(). Subscribers are re-delivered
their organization's asset set only after the outermost unit of work commits.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from keytrack import db
from keytrack.business.errors import (
    AssetDomainError,
    ConcurrentModificationError,
    InvalidStateError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from keytrack.data.core.asset_info.asset import Asset
from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import AssetStatus, AssetType
from keytrack.data.core.audit_info.audit_record import AuditRecord
from keytrack.data.core.event_info.log_entry import LogEntry
from keytrack.data.core.org_scoped_base import generate_id
from keytrack.data.store.base import MAX_BATCH_SIZE, AssetStore, BatchResult
from keytrack.data.store.subscriptions import SubscriptionRegistry
from keytrack.utils.clock import utcnow
from keytrack.utils.document_sanitizer import UNSET, sanitize_document
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.store")

META_PREFIX = 'meta_data.'

# Columns a caller may write directly
WRITABLE_COLUMNS = frozenset({
    'name', 'type', 'status', 'area', 'total_keys', 'meta_data',
    'qr_code', 'search_keywords', 'checked_out_at',
})
JSON_COLUMNS = frozenset({'meta_data', 'search_keywords'})


class _UnitOfWork(threading.local):
    depth = 0

    def __init__(self):
        self.pending_orgs = set()


class SqlAssetStore(AssetStore):
    """AssetStore over the application's SQLAlchemy session"""

    def __init__(self, max_batch_size: int = MAX_BATCH_SIZE):
        self.max_batch_size = max(1, min(max_batch_size, MAX_BATCH_SIZE))
        self.subscriptions = SubscriptionRegistry()
        self._uow = _UnitOfWork()

    @property
    def session(self):
        return db.session

    # ----------------------------------------------------------------------
    # Unit of work
    # ----------------------------------------------------------------------

    @contextmanager
    def transaction(self):
        uow = self._uow
        uow.depth += 1
        outermost = uow.depth == 1
        try:
            yield
            if outermost:
                self.session.commit()
        except StaleDataError as exc:
            if outermost:
                self._rollback()
            logger.warning(f"Concurrent modification detected: {exc}")
            raise ConcurrentModificationError(
                "Asset was modified by another operation; reload and retry"
            ) from exc
        except SQLAlchemyError as exc:
            if outermost:
                self._rollback()
            logger.error(f"Store failure: {exc}")
            raise StoreError(f"Store operation failed: {exc}") from exc
        except Exception:
            if outermost:
                self._rollback()
            raise
        finally:
            uow.depth -= 1

        if outermost:
            self._publish()

    def _rollback(self):
        self.session.rollback()
        self._uow.pending_orgs.clear()

    def _touch(self, org_id: str):
        self._uow.pending_orgs.add(org_id)

    def _publish(self):
        org_ids = set(self._uow.pending_orgs)
        self._uow.pending_orgs.clear()
        if org_ids:
            self.subscriptions.publish(
                org_ids, lambda org_id, asset_type: self.list(org_id, asset_type=asset_type)
            )

    @contextmanager
    def _reading(self):
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error(f"Store read failure: {exc}")
            raise StoreError(f"Store read failed: {exc}") from exc

    # ----------------------------------------------------------------------
    # Subscriptions
    # ----------------------------------------------------------------------

    def subscribe(self, org_id, callback, asset_type=None, on_error=None):
        subscription = self.subscriptions.add(org_id, callback, asset_type=asset_type, on_error=on_error)
        subscription.deliver(self.list(org_id, asset_type=asset_type))
        return subscription

    # ----------------------------------------------------------------------
    # Assets
    # ----------------------------------------------------------------------

    def get(self, asset_id: str) -> Optional[AssetSnapshot]:
        with self._reading():
            asset = self.session.get(Asset, asset_id)
            return asset.to_snapshot() if asset is not None else None

    def list(self, org_id: str, asset_type: Optional[str] = None, status: Optional[str] = None) -> List[AssetSnapshot]:
        with self._reading():
            query = Asset.query.filter(Asset.org_id == org_id)
            if asset_type:
                query = query.filter(Asset.type == asset_type)
            if status:
                query = query.filter(Asset.status == status)
            return [asset.to_snapshot() for asset in query.order_by(Asset.name, Asset.id).all()]

    def create(self, org_id: str, data: Dict[str, Any]) -> str:
        if not org_id:
            raise ValidationError("org_id is required")
        if not data.get('name'):
            raise ValidationError("Asset name is required")

        asset_id = generate_id()
        asset = Asset(
            id=asset_id,
            org_id=org_id,
            type=AssetType.KEY,
            status=AssetStatus.AVAILABLE,
            meta_data={},
            search_keywords=[],
        )
        self._apply(asset, data)

        with self.transaction():
            self.session.add(asset)
            self.session.flush()
            self._touch(org_id)

        logger.debug(f"Created asset {asset_id} for org {org_id}")
        return asset_id

    def update(self, asset_id: str, fields: Dict[str, Any], expected_status: Optional[Iterable[str]] = None) -> AssetSnapshot:
        with self.transaction():
            asset = self.session.get(Asset, asset_id)
            if asset is None:
                raise NotFoundError(f"Asset {asset_id} not found")

            if expected_status is not None:
                allowed = set(expected_status)
                if asset.status not in allowed:
                    raise InvalidStateError(
                        f"Asset {asset_id} is {asset.status}; expected one of {sorted(allowed)}"
                    )

            self._apply(asset, fields)
            self.session.flush()
            self._touch(asset.org_id)
            snapshot = asset.to_snapshot()

        return snapshot

    def _apply(self, asset: Asset, fields: Dict[str, Any]) -> None:
        meta_updates = {}
        for key, value in fields.items():
            if key.startswith(META_PREFIX):
                meta_key = key[len(META_PREFIX):]
                if not meta_key:
                    raise ValidationError("Empty metadata key in update")
                meta_updates[meta_key] = value
            elif key in JSON_COLUMNS:
                setattr(asset, key, sanitize_document(value) or ([] if key == 'search_keywords' else {}))
            elif key in WRITABLE_COLUMNS:
                setattr(asset, key, None if value is UNSET else value)
            else:
                raise ValidationError(f"Unknown asset field: {key}")

        if meta_updates:
            # Assign a fresh dict so the JSON column registers the change
            merged = dict(asset.meta_data or {})
            merged.update(sanitize_document(meta_updates))
            asset.meta_data = merged

    def delete(self, asset_id: str) -> bool:
        with self.transaction():
            asset = self.session.get(Asset, asset_id)
            if asset is None:
                return False
            self.session.delete(asset)
            self._touch(asset.org_id)
        return True

    def batch_delete(self, asset_ids: List[str], max_batch_size: Optional[int] = None) -> BatchResult:
        if self._uow.depth:
            raise StoreError("batch_delete commits per chunk and cannot run inside an open transaction")

        size = max(1, min(max_batch_size or self.max_batch_size, MAX_BATCH_SIZE))
        ids = list(dict.fromkeys(asset_ids))
        result = BatchResult(requested=len(ids))

        for number, start in enumerate(range(0, len(ids), size), start=1):
            chunk = ids[start:start + size]
            try:
                with self.transaction():
                    org_ids = [
                        row[0] for row in
                        self.session.query(Asset.org_id).filter(Asset.id.in_(chunk)).distinct()
                    ]
                    deleted = Asset.query.filter(Asset.id.in_(chunk)).delete(synchronize_session='fetch')
                    for org_id in org_ids:
                        self._touch(org_id)
            except AssetDomainError as exc:
                logger.error(f"Batch {number} ({len(chunk)} assets) failed: {exc}")
                result.errors.append(f"Batch {number}: {exc}")
                continue

            result.succeeded += deleted
            result.batches_committed += 1
            logger.info(f"Batch {number} committed: {deleted} assets deleted")

        return result

    # ----------------------------------------------------------------------
    # Log entries and audit records
    # ----------------------------------------------------------------------

    def add_log_entry(self, org_id, asset_id, asset_name, action, actor_id, actor_name, notes=None, timestamp=None) -> str:
        entry_id = generate_id()
        entry = LogEntry(
            id=entry_id,
            org_id=org_id,
            asset_id=asset_id,
            asset_name=asset_name,
            action=action,
            actor_id=actor_id,
            actor_name=actor_name,
            notes=notes,
            timestamp=timestamp or utcnow(),
        )
        with self.transaction():
            self.session.add(entry)
        return entry_id

    def list_log_entries(self, org_id: str, asset_id: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._reading():
            query = LogEntry.query.filter(LogEntry.org_id == org_id)
            if asset_id:
                query = query.filter(LogEntry.asset_id == asset_id)
            query = query.order_by(LogEntry.timestamp.desc())
            if limit:
                query = query.limit(limit)
            return [entry.to_dict() for entry in query.all()]

    def create_audit_record(self, org_id: str, date: datetime, performed_by: str, missing_keys: List[str]) -> str:
        record_id = generate_id()
        missing = sanitize_document(list(missing_keys))
        record = AuditRecord(
            id=record_id,
            org_id=org_id,
            date=date,
            performed_by=performed_by,
            missing_keys=missing,
        )
        with self.transaction():
            self.session.add(record)
        logger.info(f"Audit record {record_id} stored with {len(missing)} missing keys")
        return record_id

    def list_audit_records(self, org_id: str) -> List[Dict[str, Any]]:
        with self._reading():
            records = (
                AuditRecord.query
                .filter(AuditRecord.org_id == org_id)
                .order_by(AuditRecord.date.desc())
                .all()
            )
            return [record.to_dict() for record in records]
