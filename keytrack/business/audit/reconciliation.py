"""
AuditReconciler - Reconcile a physical key count against the expected inventory

Keys sharing a visible code are indistinguishable on the board, so a count is
entered per code. Within a code the members are ordered by id and the first
`count` of them are the ones considered present.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from keytrack.business.actor import Actor
from keytrack.business.audit.audit_report import AuditReport, GroupCount, MissingRow
from keytrack.business.errors import AssetDomainError, ValidationError
from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import AssetStatus, AssetType, MetaKey
from keytrack.utils.clock import utcnow
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.audit")

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def parse_count(raw: Any) -> int:
    """
    Parse an operator-entered count.

    Reads the leading integer of free text ("3 keys" -> 3). Negative values
    clamp to 0; missing, non-numeric, NaN or infinite input is 0.
    """
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, float) and not math.isfinite(raw):
        return 0
    if isinstance(raw, (int, float)):
        value = int(raw)
    else:
        match = _LEADING_INT.match(str(raw))
        if not match:
            return 0
        value = int(match.group(1))
    return max(value, 0)


def group_expected_keys(keys: Iterable[AssetSnapshot]) -> Dict[str, List[AssetSnapshot]]:
    """Partition keys by short code, each group ordered by id"""
    groups: Dict[str, List[AssetSnapshot]] = {}
    for key in keys:
        groups.setdefault(key.short_code, []).append(key)
    return {code: sorted(members, key=lambda key: key.id) for code, members in sorted(groups.items())}


@dataclass
class AuditOutcome:
    record_id: str
    verified_ids: List[str] = field(default_factory=list)
    missing_keys: List[str] = field(default_factory=list)
    stamp_errors: List[str] = field(default_factory=list)
    report: Optional[AuditReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'recordId': self.record_id,
            'verifiedIds': list(self.verified_ids),
            'missingKeys': list(self.missing_keys),
            'stampErrors': list(self.stamp_errors),
            'report': self.report.to_dict() if self.report else None,
        }


class AuditReconciler:
    """
    Runs a physical audit for one organization.

    The audit is passive: it records missing keys and stamps verified ones but
    never changes any asset's status.
    """

    def __init__(self, store, org_id: str, actor: Actor, clock: Callable[[], datetime] = utcnow):
        if not org_id:
            raise ValidationError("org_id is required")
        self.store = store
        self.org_id = org_id
        self.actor = actor
        self.clock = clock

    def expected_keys(self) -> List[AssetSnapshot]:
        """Keys that should be on the board right now"""
        return self.store.list(self.org_id, asset_type=AssetType.KEY, status=AssetStatus.AVAILABLE)

    def expected_groups(self) -> Dict[str, List[AssetSnapshot]]:
        return group_expected_keys(self.expected_keys())

    def _stamp(self, asset_id: str, now: datetime) -> Optional[str]:
        """Best effort: a failed stamp is logged and reported, never raised"""
        try:
            self.store.update(asset_id, {f'meta_data.{MetaKey.LAST_AUDIT_DATE}': now})
        except AssetDomainError as exc:
            logger.warning(f"Could not stamp audit date on {asset_id}: {exc}")
            return f"{asset_id}: {exc}"
        return None

    def submit(self, counts: Mapping[str, Any]) -> AuditOutcome:
        """
        Reconcile entered counts and persist the audit record.

        Args:
            counts: Key code -> entered count (free text or number). Codes not
                present count as 0.

        Returns:
            AuditOutcome with the stored record id, verified and missing ids,
            stamping errors and the report

        Raises:
            StoreError: If the audit record cannot be written
        """
        now = self.clock()
        groups = self.expected_groups()

        verified: List[str] = []
        missing: List[str] = []
        breakdown: List[GroupCount] = []
        counted_total = 0

        for code, members in groups.items():
            entered = parse_count(counts.get(code))
            counted_total += entered
            breakdown.append(GroupCount(code=code, expected=len(members), counted=entered))
            for index, key in enumerate(members):
                if index < entered:
                    verified.append(key.id)
                else:
                    missing.append(key.id)

        stamp_errors = [error for error in (self._stamp(asset_id, now) for asset_id in verified) if error]

        performed_by = self.actor.label
        record_id = self.store.create_audit_record(self.org_id, now, performed_by, missing)
        logger.info(
            f"Audit {record_id} for org {self.org_id}: {len(verified)} verified, "
            f"{len(missing)} missing, {len(stamp_errors)} stamp failures"
        )

        report = AuditReport(
            date=now,
            performed_by=performed_by,
            expected_total=sum(len(members) for members in groups.values()),
            counted_total=counted_total,
            missing_asset_ids=list(missing),
            group_breakdown=breakdown,
            missing_rows=self._missing_rows(missing, groups),
            audit_id=record_id,
        )
        return AuditOutcome(
            record_id=record_id,
            verified_ids=verified,
            missing_keys=missing,
            stamp_errors=stamp_errors,
            report=report,
        )

    def _missing_rows(self, missing: List[str], groups: Dict[str, List[AssetSnapshot]]) -> List[MissingRow]:
        if not missing:
            return []
        by_id = {key.id: key for members in groups.values() for key in members}
        names = {asset.id: asset.name for asset in self.store.list(self.org_id)}
        rows = []
        for asset_id in missing:
            key = by_id[asset_id]
            parent_id = key.parent_asset_id
            rows.append(MissingRow(
                key_code=key.short_code,
                asset_id=key.id,
                parent_name=names.get(parent_id) or parent_id or '-',
                area=key.area or key.meta_data.get(MetaKey.LOCATION) or '-',
            ))
        return rows
