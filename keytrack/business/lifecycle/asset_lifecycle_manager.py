"""
AssetLifecycleManager - Domain service for asset status transitions

Validates transitions through AssetStateMachine, writes the status change and
its log entry through the store in one unit of work, and composes log notes
via AssetNarrator.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from keytrack.business.actor import Actor
from keytrack.business.errors import InvalidStateError, NotFoundError, ValidationError
from keytrack.business.lifecycle.loan_policy import LoanPolicy
from keytrack.business.lifecycle.narrator import AssetNarrator
from keytrack.business.lifecycle.state_machine import AssetStateMachine
from keytrack.business.search.keywords import generate_search_keywords
from keytrack.data.core.asset_info.asset_details import AssetDetails
from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import (
    AssetStatus,
    AssetType,
    LoanType,
    LogAction,
    MetaKey,
)
from keytrack.utils.clock import utcnow
from keytrack.utils.document_sanitizer import sanitize_document
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.lifecycle")


# Metadata written on checkout and cleared again on return
HOLDER_FIELDS = {
    f'meta_data.{MetaKey.CURRENT_HOLDER}': None,
    f'meta_data.{MetaKey.HOLDER_COMPANY}': None,
    f'meta_data.{MetaKey.CHECKED_OUT_AT}': None,
    f'meta_data.{MetaKey.DUE_DATE}': None,
    f'meta_data.{MetaKey.LOAN_TYPE}': None,
    f'meta_data.{MetaKey.MISSING_SINCE}': None,
    f'meta_data.{MetaKey.MISSING_REASON}': None,
    'checked_out_at': None,
}


class AssetLifecycleManager:
    """
    Domain service for one organization's asset lifecycle.

    Responsibilities:
    - Guard every status change with AssetStateMachine and a conditional store update
    - Keep holder metadata consistent with status
    - Append exactly one log entry per successful operation
    """

    def __init__(self, store, org_id: str, actor: Actor, clock: Callable[[], datetime] = utcnow):
        if not org_id:
            raise ValidationError("org_id is required")
        self.store = store
        self.org_id = org_id
        self.actor = actor
        self.clock = clock

    def get_asset(self, asset_id: str) -> AssetSnapshot:
        """
        Raises:
            NotFoundError: If the asset does not exist in this organization
        """
        asset = self.store.get(asset_id)
        if asset is None or asset.org_id != self.org_id:
            raise NotFoundError(f"Asset {asset_id} not found")
        return asset

    def _log(self, asset: AssetSnapshot, action: str, notes: Optional[str], now: datetime) -> None:
        self.store.add_log_entry(
            org_id=self.org_id,
            asset_id=asset.id,
            asset_name=asset.name,
            action=action,
            actor_id=self.actor.id,
            actor_name=self.actor.label,
            notes=notes,
            timestamp=now,
        )

    def _transition(
        self,
        asset: AssetSnapshot,
        to_status: str,
        fields: Dict[str, Any],
        action: str,
        notes: Optional[str],
        now: datetime,
    ) -> AssetSnapshot:
        AssetStateMachine.validate_transition(asset.status, to_status)
        fields = dict(fields, status=to_status)
        # Conditional on the status we validated against; the row version
        # guards the window between our read and this write
        updated = self.store.update(asset.id, fields, expected_status=[asset.status])
        self._log(updated, action, notes, now)
        logger.info(
            f"Asset {asset.id} {asset.status} -> {to_status} by {self.actor.label}",
            extra={'org_id': self.org_id, 'asset_id': asset.id, 'actor_id': self.actor.id},
        )
        return updated

    # ----------------------------------------------------------------------
    # Creation and edits
    # ----------------------------------------------------------------------

    def create_asset(
        self,
        name: str,
        asset_type: str = AssetType.KEY,
        area: Optional[str] = None,
        meta_data: Optional[Dict[str, Any]] = None,
        details: Optional[AssetDetails] = None,
        qr_code: Optional[str] = None,
        total_keys: Optional[int] = None,
    ) -> str:
        """
        Create an AVAILABLE asset.

        Args:
            name: Display name
            asset_type: One of AssetType
            area: Free-text location label
            meta_data: Raw metadata map (storage keys)
            details: Typed details; merged over meta_data
            qr_code: External scan identifier
            total_keys: Only for parent assets holding keys

        Returns:
            str: New asset id
        """
        name = (name or '').strip()
        if not name:
            raise ValidationError("Asset name is required")
        if not AssetType.is_valid(asset_type):
            raise ValidationError(f"Unknown asset type: {asset_type}")
        if total_keys is not None and total_keys < 0:
            raise ValidationError("total_keys cannot be negative")
        if meta_data is not None and not isinstance(meta_data, Mapping):
            raise ValidationError("metaData must be an object")

        merged = dict(meta_data or {})
        if details is not None:
            merged.update(details.to_metadata())
        merged = sanitize_document(merged)

        held = sorted(key for key in MetaKey.LIFECYCLE_OWNED if merged.get(key) is not None and key != MetaKey.LOAN_TYPE)
        if held:
            raise ValidationError(f"New assets cannot carry checkout fields: {', '.join(held)}")

        qr_code = qr_code.strip() if qr_code and qr_code.strip() else None
        now = self.clock()

        with self.store.transaction():
            asset_id = self.store.create(self.org_id, {
                'name': name,
                'type': asset_type,
                'status': AssetStatus.AVAILABLE,
                'area': area,
                'total_keys': total_keys,
                'meta_data': merged,
                'qr_code': qr_code,
                'search_keywords': generate_search_keywords(name, qr_code, merged),
            })
            created = self.get_asset(asset_id)
            self._log(created, LogAction.CREATE, AssetNarrator.created(asset_type), now)

        logger.info(f"Asset created: {name} ({asset_type}) id={asset_id}")
        return asset_id

    def update_asset(
        self,
        asset_id: str,
        name: Optional[str] = None,
        meta_data: Optional[Dict[str, Any]] = None,
        area: Optional[str] = None,
        qr_code: Optional[str] = None,
    ) -> AssetSnapshot:
        """
        Edit identifying fields. Never changes status.

        Metadata is merged key by key. Search keywords are rebuilt from the
        merged record so existing searchable terms are not lost.

        Raises:
            ValidationError: If nothing is supplied, the name is blank, metaData
                is not a mapping, or the patch touches checkout fields
        """
        if name is None and meta_data is None and area is None and qr_code is None:
            raise ValidationError("Nothing to update")
        if name is not None and not name.strip():
            raise ValidationError("Asset name cannot be blank")
        if meta_data is not None and not isinstance(meta_data, Mapping):
            raise ValidationError("metaData must be an object")

        patch = sanitize_document(dict(meta_data or {}))
        owned = sorted(set(patch) & MetaKey.LIFECYCLE_OWNED)
        if owned:
            raise ValidationError(
                f"Checkout fields can only change through check-out/check-in: {', '.join(owned)}"
            )

        now = self.clock()
        with self.store.transaction():
            asset = self.get_asset(asset_id)

            fields: Dict[str, Any] = {}
            if name is not None:
                fields['name'] = name.strip()
            if area is not None:
                fields['area'] = area.strip() or None
            if qr_code is not None:
                fields['qr_code'] = qr_code.strip() or None
            for key, value in patch.items():
                fields[f'meta_data.{key}'] = value

            merged_meta = dict(asset.meta_data)
            merged_meta.update(patch)
            fields['search_keywords'] = generate_search_keywords(
                fields.get('name', asset.name),
                fields.get('qr_code', asset.qr_code),
                merged_meta,
            )

            changed = [field_name for field_name in ('name', 'area', 'qr_code') if field_name in fields]
            changed.extend(f'metaData.{key}' for key in patch)

            updated = self.store.update(asset.id, fields)
            self._log(updated, LogAction.UPDATE, AssetNarrator.fields_updated(changed), now)

        return updated

    def delete_asset(self, asset_id: str) -> bool:
        """Hard delete from any status. The log history is kept."""
        now = self.clock()
        with self.store.transaction():
            asset = self.get_asset(asset_id)
            self.store.delete(asset.id)
            self._log(asset, LogAction.DELETE, AssetNarrator.deleted(asset.status), now)
        logger.warning(f"Asset {asset_id} ({asset.name}) deleted by {self.actor.label}")
        return True

    # ----------------------------------------------------------------------
    # Checkout cycle
    # ----------------------------------------------------------------------

    def check_out(
        self,
        asset_id: str,
        recipient: str,
        notes: Optional[str] = None,
        due_date: Optional[datetime] = None,
        holder_company: Optional[str] = None,
        loan_type: Optional[str] = None,
    ) -> AssetSnapshot:
        """
        Hand an AVAILABLE asset to a recipient (AVAILABLE → CHECKED_OUT).

        Args:
            asset_id: Asset to hand out
            recipient: Person receiving it
            notes: Free text appended to the log entry
            due_date: Explicit due date; otherwise derived from loan_type
            holder_company: Recipient's company
            loan_type: One of LoanType (defaults to STANDARD)

        Raises:
            ValidationError: If recipient is blank or loan_type unknown
            InvalidStateError: If the asset is not AVAILABLE
            ConcurrentModificationError: If another checkout won the race
        """
        recipient = (recipient or '').strip()
        if not recipient:
            raise ValidationError("Recipient name is required")
        loan_type = loan_type or LoanType.STANDARD
        if not LoanType.is_valid(loan_type):
            raise ValidationError(f"Unknown loan type: {loan_type}")

        now = self.clock()
        if due_date is None:
            due_date = LoanPolicy.due_date_for(loan_type, now)

        with self.store.transaction():
            asset = self.get_asset(asset_id)
            if asset.status != AssetStatus.AVAILABLE:
                raise InvalidStateError(f"Asset {asset.name} is not available (status {asset.status})")

            fields = {
                'checked_out_at': now,
                f'meta_data.{MetaKey.CURRENT_HOLDER}': recipient,
                f'meta_data.{MetaKey.HOLDER_COMPANY}': (holder_company or '').strip() or None,
                f'meta_data.{MetaKey.CHECKED_OUT_AT}': now,
                f'meta_data.{MetaKey.DUE_DATE}': due_date,
                f'meta_data.{MetaKey.LOAN_TYPE}': loan_type,
                f'meta_data.{MetaKey.MISSING_SINCE}': None,
                f'meta_data.{MetaKey.MISSING_REASON}': None,
            }
            return self._transition(
                asset,
                AssetStatus.CHECKED_OUT,
                fields,
                LogAction.CHECK_OUT,
                AssetNarrator.handed_to(recipient, notes),
                now,
            )

    def check_in(self, asset_id: str, notes: Optional[str] = None) -> AssetSnapshot:
        """
        Return an asset to stock (CHECKED_OUT or MISSING → AVAILABLE).

        A MISSING asset being checked in is a found item; its missing fields are
        cleared exactly like a normal return.
        """
        now = self.clock()
        with self.store.transaction():
            asset = self.get_asset(asset_id)
            if asset.status not in AssetStatus.HELD:
                raise InvalidStateError(
                    f"Asset {asset.name} is {asset.status}; only checked-out or missing assets can be checked in"
                )
            return self._transition(
                asset,
                AssetStatus.AVAILABLE,
                HOLDER_FIELDS,
                LogAction.CHECK_IN,
                AssetNarrator.returned(asset.current_holder, notes),
                now,
            )

    def report_missing(self, asset_id: str, reason: str) -> AssetSnapshot:
        """
        Flag a checked-out asset as lost (CHECKED_OUT → MISSING).

        The current holder is kept as the last known holder.
        """
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError("A reason is required to report an asset missing")

        now = self.clock()
        with self.store.transaction():
            asset = self.get_asset(asset_id)
            fields = {
                f'meta_data.{MetaKey.MISSING_SINCE}': now,
                f'meta_data.{MetaKey.MISSING_REASON}': reason,
                f'meta_data.{MetaKey.DUE_DATE}': None,
            }
            return self._transition(
                asset,
                AssetStatus.MISSING,
                fields,
                LogAction.REPORT_MISSING,
                AssetNarrator.reported_missing(reason, asset.current_holder),
                now,
            )

    # ----------------------------------------------------------------------
    # Maintenance and retirement
    # ----------------------------------------------------------------------

    def _change_status(self, asset_id: str, to_status: str, reason: Optional[str] = None,
                       allowed_from: Optional[Iterable[str]] = None) -> AssetSnapshot:
        now = self.clock()
        with self.store.transaction():
            asset = self.get_asset(asset_id)
            if allowed_from is not None and asset.status not in set(allowed_from):
                raise InvalidStateError(f"Asset {asset.name} is {asset.status}; cannot move to {to_status}")
            fields = HOLDER_FIELDS if to_status not in AssetStatus.HELD else {}
            return self._transition(
                asset,
                to_status,
                fields,
                LogAction.UPDATE,
                AssetNarrator.status_changed(asset.status, to_status, reason),
                now,
            )

    def send_to_maintenance(self, asset_id: str, reason: Optional[str] = None) -> AssetSnapshot:
        """AVAILABLE → MAINTENANCE"""
        return self._change_status(asset_id, AssetStatus.MAINTENANCE, reason)

    def return_from_maintenance(self, asset_id: str, notes: Optional[str] = None) -> AssetSnapshot:
        """MAINTENANCE → AVAILABLE"""
        return self._change_status(
            asset_id, AssetStatus.AVAILABLE, notes, allowed_from=[AssetStatus.MAINTENANCE]
        )

    def retire(self, asset_id: str, reason: Optional[str] = None) -> AssetSnapshot:
        """Take an asset out of service for good. Holder fields are cleared."""
        return self._change_status(asset_id, AssetStatus.RETIRED, reason)
