"""
BulkAssetOperations - Organization-wide imports, deletes and repairs

Bulk work never aborts on the first bad item: each row or batch succeeds or
fails on its own and failures are collected in the returned result.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from keytrack.business.actor import Actor
from keytrack.business.audit.reconciliation import parse_count
from keytrack.business.errors import AssetDomainError, ValidationError
from keytrack.business.lifecycle.asset_lifecycle_manager import AssetLifecycleManager
from keytrack.business.lifecycle.narrator import AssetNarrator
from keytrack.business.search.grouping import is_misclassified_rental
from keytrack.data.core.asset_info.asset_details import KeyDetails
from keytrack.data.core.asset_info.constants import AssetType, LoanType, LogAction, MetaKey
from keytrack.data.store.base import MAX_BATCH_SIZE, BatchResult
from keytrack.utils.clock import utcnow
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.bulk")

TRUTHY = {'yes', 'true', 'y', '1'}


@dataclass
class ImportResult:
    """Outcome of an import run"""
    created_ids: List[str] = field(default_factory=list)
    parents_created: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def created(self) -> int:
        return len(self.created_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'created': self.created,
            'parentsCreated': self.parents_created,
            'createdIds': list(self.created_ids),
            'errors': list(self.errors),
        }


def normalize_key_type(raw: Optional[str]) -> str:
    """Map free-text lock descriptions onto the known key types"""
    text = (raw or '').upper()
    if 'EURO' in text:
        return 'EURO_LOCK'
    if 'CYLINDER' in text:
        return 'CYLINDER'
    if 'PADLOCK' in text:
        return 'PADLOCK'
    if 'ELECTRONIC' in text:
        return 'ELECTRONIC'
    if any(word in text for word in ('OTHER', 'MORTICE', 'RIM')):
        return 'OTHER'
    return 'EURO_LOCK'


def normalize_asset_type(raw: Optional[str]) -> str:
    text = (raw or '').strip().upper()
    if AssetType.is_valid(text):
        return text
    if 'VEHICLE' in text:
        return AssetType.VEHICLE
    return AssetType.IT_DEVICE


def _text(row: Mapping[str, Any], *names: str) -> str:
    for name in names:
        value = row.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ''


class BulkAssetOperations:
    """
    Bulk operations for one organization.

    Creation goes through AssetLifecycleManager so imported assets get the same
    keywords and CREATE log entries as hand-made ones.
    """

    def __init__(self, store, org_id: str, actor: Actor, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.org_id = org_id
        self.actor = actor
        self.clock = clock
        self.lifecycle = AssetLifecycleManager(store, org_id, actor, clock=clock)

    def delete_all(self, max_batch_size: Optional[int] = None) -> BatchResult:
        """
        Hard delete every asset of the organization in bounded batches.

        Irreversible. Confirmation belongs to the caller; once invoked this runs
        unconditionally.
        """
        logger.warning(f"Delete-all started for org {self.org_id} by {self.actor.label}")
        result = self.store.delete_all(self.org_id, max_batch_size=max_batch_size)
        logger.warning(
            f"Delete-all finished for org {self.org_id}: {result.succeeded}/{result.requested} deleted "
            f"in {result.batches_committed} batches, {len(result.errors)} failed batches"
        )
        return result

    def _parents_by_name(self) -> Dict[str, str]:
        return {
            asset.name.lower(): asset.id
            for asset in self.store.list(self.org_id)
            if asset.name and not asset.is_key
        }

    def import_assets(self, rows: Iterable[Mapping[str, Any]]) -> ImportResult:
        """
        Create non-key assets from parsed rows.

        Row fields: type, name, serial, location.
        """
        result = ImportResult()
        for number, row in enumerate(rows, start=1):
            try:
                if not isinstance(row, Mapping):
                    raise ValidationError("row must be an object")
                name = _text(row, 'name')
                if not name:
                    raise ValidationError("name is required")
                asset_type = normalize_asset_type(_text(row, 'type'))
                location = _text(row, 'location') or None

                meta_data = {MetaKey.LOCATION: location} if location else {}
                serial = _text(row, 'serial')
                if serial:
                    meta_data['serialNumber'] = serial

                asset_id = self.lifecycle.create_asset(
                    name, asset_type, area=location, meta_data=meta_data,
                    qr_code=_text(row, 'qr_code') or None,
                )
                result.created_ids.append(asset_id)
            except AssetDomainError as exc:
                logger.warning(f"Import row {number} skipped: {exc}")
                result.errors.append(f"Row {number}: {exc}")

        logger.info(f"Asset import for org {self.org_id}: {result.created} created, {len(result.errors)} errors")
        return result

    def import_keys(self, rows: Iterable[Mapping[str, Any]]) -> ImportResult:
        """
        Create keys (and their parent facilities) from parsed rows.

        Row fields: key_id, asset_name, location, quantity, qr_code, key_type,
        notes, master_system, supplier. A row creates `quantity` indistinguishable
        copies sharing the key code, at most MAX_BATCH_SIZE. Each row is atomic;
        a malformed row is reported and the rest still run.
        """
        result = ImportResult()
        parents = self._parents_by_name()

        for number, row in enumerate(rows, start=1):
            created: List[str] = []
            parent_created = False
            try:
                if not isinstance(row, Mapping):
                    raise ValidationError("row must be an object")
                key_code = _text(row, 'key_id', 'key_code')
                asset_name = _text(row, 'asset_name')
                if not key_code or not asset_name:
                    raise ValidationError("key_id and asset_name are required")

                quantity = parse_count(row.get('quantity')) or 1
                if quantity > MAX_BATCH_SIZE:
                    raise ValidationError(f"quantity cannot exceed {MAX_BATCH_SIZE} copies per row")
                location = _text(row, 'location') or None
                is_master = _text(row, 'master_system').lower() in TRUTHY

                with self.store.transaction():
                    parent_id = parents.get(asset_name.lower())
                    if parent_id is None:
                        parent_id = self.lifecycle.create_asset(
                            asset_name, AssetType.FACILITY,
                            area=location or asset_name, total_keys=quantity,
                        )
                        parent_created = True

                    details = KeyDetails(
                        key_code=key_code,
                        parent_asset_id=parent_id,
                        location=location,
                        loan_type=LoanType.STANDARD,
                        key_type=normalize_key_type(_text(row, 'key_type')),
                        notes=_text(row, 'notes') or None,
                        is_master_system=is_master,
                        key_supplier=(_text(row, 'supplier') or None) if is_master else None,
                    )
                    for _ in range(quantity):
                        created.append(self.lifecycle.create_asset(
                            asset_name, AssetType.KEY, area=location, details=details,
                            qr_code=_text(row, 'qr_code') or None,
                        ))
            except AssetDomainError as exc:
                logger.warning(f"Key import row {number} skipped: {exc}")
                result.errors.append(f"Row {number}: {exc}")
                continue

            if parent_created:
                parents[asset_name.lower()] = parent_id
                result.parents_created += 1
            result.created_ids.extend(created)

        logger.info(f"Key import for org {self.org_id}: {result.created} keys created, {len(result.errors)} errors")
        return result

    def retype_misclassified_rentals(self, max_batch_size: int = MAX_BATCH_SIZE) -> BatchResult:
        """
        Retype RENTAL assets that carry total_keys to FACILITY.

        Such assets are parents imported with the wrong type. Each batch is one
        commit with an UPDATE log entry per asset.
        """
        targets = [asset for asset in self.store.list(self.org_id, asset_type=AssetType.RENTAL)
                   if is_misclassified_rental(asset)]
        size = max(1, min(max_batch_size, MAX_BATCH_SIZE))
        result = BatchResult(requested=len(targets))

        for number, start in enumerate(range(0, len(targets), size), start=1):
            chunk = targets[start:start + size]
            now = self.clock()
            try:
                with self.store.transaction():
                    for asset in chunk:
                        updated = self.store.update(asset.id, {'type': AssetType.FACILITY})
                        self.store.add_log_entry(
                            org_id=self.org_id,
                            asset_id=updated.id,
                            asset_name=updated.name,
                            action=LogAction.UPDATE,
                            actor_id=self.actor.id,
                            actor_name=self.actor.label,
                            notes=AssetNarrator.retyped(AssetType.RENTAL, AssetType.FACILITY),
                            timestamp=now,
                        )
            except AssetDomainError as exc:
                logger.error(f"Retype batch {number} failed: {exc}")
                result.errors.append(f"Batch {number}: {exc}")
                continue
            result.succeeded += len(chunk)
            result.batches_committed += 1

        logger.info(f"Retyped {result.succeeded} misclassified rentals for org {self.org_id}")
        return result
