"""
Report Service
Read-only aggregation views over one organization's assets, logs and audits.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import AssetStatus, LoanType, MetaKey
from keytrack.utils.clock import parse_iso, utcnow

UNKNOWN_HOLDER = 'Unknown'


@dataclass
class LoanRow:
    """One line of the active loans report"""
    key_code: str
    asset_id: str
    name: str
    holder: str
    company: Optional[str]
    out_since: Optional[datetime]
    due: Optional[datetime]
    missing_since: Optional[datetime]
    status: str
    status_label: str
    is_overdue: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'keyCode': self.key_code,
            'assetId': self.asset_id,
            'name': self.name,
            'holder': self.holder,
            'company': self.company,
            'outSince': self.out_since.isoformat() if self.out_since else None,
            'due': self.due.isoformat() if self.due else None,
            'missingSince': self.missing_since.isoformat() if self.missing_since else None,
            'status': self.status,
            'statusLabel': self.status_label,
            'isOverdue': self.is_overdue,
        }


class ReportService:
    """
    Report queries for a single organization.

    Pure reads: nothing here writes to the store.
    """

    def __init__(self, store, org_id: str, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.org_id = org_id
        self.clock = clock

    def _held(self) -> List[AssetSnapshot]:
        return [asset for asset in self.store.list(self.org_id) if asset.status in AssetStatus.HELD]

    @staticmethod
    def is_overdue(asset: AssetSnapshot, now: datetime) -> bool:
        """Only a checked-out asset can be overdue; a missing one is reported as missing"""
        if asset.status != AssetStatus.CHECKED_OUT:
            return False
        due = asset.due_date
        return due is not None and due < now

    @staticmethod
    def status_label(asset: AssetSnapshot, overdue: bool) -> str:
        if asset.status == AssetStatus.MISSING:
            return AssetStatus.MISSING
        label = (asset.meta_data.get(MetaKey.LOAN_TYPE) or LoanType.STANDARD).replace('_', ' ')
        return f"{label} (OVERDUE)" if overdue else label

    def active_loans(self) -> List[LoanRow]:
        """
        Checked-out and missing assets.

        Ordered missing first, then overdue, then the rest; order within each
        band follows the store listing.
        """
        now = self.clock()
        rows = []
        for asset in self._held():
            overdue = self.is_overdue(asset, now)
            rows.append(LoanRow(
                key_code=asset.key_code or asset.name,
                asset_id=asset.id,
                name=asset.name,
                holder=asset.current_holder or UNKNOWN_HOLDER,
                company=asset.meta_data.get(MetaKey.HOLDER_COMPANY),
                out_since=asset.checked_out_at or parse_iso(asset.meta_data.get(MetaKey.CHECKED_OUT_AT)),
                due=asset.due_date,
                missing_since=parse_iso(asset.meta_data.get(MetaKey.MISSING_SINCE)),
                status=asset.status,
                status_label=self.status_label(asset, overdue),
                is_overdue=overdue,
            ))

        def band(row: LoanRow) -> int:
            if row.status == AssetStatus.MISSING:
                return 0
            return 1 if row.is_overdue else 2

        return sorted(rows, key=band)

    def overdue(self) -> List[AssetSnapshot]:
        """Checked-out assets past their due date, most overdue first"""
        now = self.clock()
        late = [asset for asset in self._held() if self.is_overdue(asset, now)]
        return sorted(late, key=lambda asset: asset.due_date)

    def who_has_what(self) -> List[Dict[str, Any]]:
        """Checked-out assets per holder, holders sorted by name"""
        holders: Dict[str, List[AssetSnapshot]] = {}
        for asset in self.store.list(self.org_id, status=AssetStatus.CHECKED_OUT):
            holders.setdefault(asset.current_holder or UNKNOWN_HOLDER, []).append(asset)

        summary = []
        for holder in sorted(holders, key=str.casefold):
            assets = holders[holder]
            counts: Dict[str, int] = {}
            for asset in assets:
                counts[asset.type] = counts.get(asset.type, 0) + 1
            summary.append({
                'holder': holder,
                'total': len(assets),
                'countsByType': dict(sorted(counts.items())),
                'assets': [asset.to_dict() for asset in assets],
            })
        return summary

    def checked_out_counts(self) -> Dict[str, int]:
        """Number of CHECKED_OUT assets per type"""
        counts: Dict[str, int] = {}
        for asset in self.store.list(self.org_id, status=AssetStatus.CHECKED_OUT):
            counts[asset.type] = counts.get(asset.type, 0) + 1
        return dict(sorted(counts.items()))

    def asset_history(self, asset_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Latest log entries of one asset, newest first. Works for deleted assets too."""
        return self.store.list_log_entries(self.org_id, asset_id=asset_id, limit=limit)

    def audit_history(self) -> List[Dict[str, Any]]:
        return self.store.list_audit_records(self.org_id)
