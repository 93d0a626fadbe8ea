"""
Audit report artifact handed to the external renderer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from tabulate import tabulate

MISSING_HEADERS = ['Key Code', 'Key ID', 'Asset', 'Area']
BREAKDOWN_HEADERS = ['Code', 'Expected', 'Counted']


@dataclass
class GroupCount:
    code: str
    expected: int
    counted: int

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code, 'expected': self.expected, 'counted': self.counted}


@dataclass
class MissingRow:
    key_code: str
    asset_id: str
    parent_name: str
    area: str

    def as_row(self) -> List[str]:
        return [self.key_code, self.asset_id, self.parent_name, self.area]


@dataclass
class AuditReport:
    """Counts and the missing-item table for one submitted audit"""
    date: datetime
    performed_by: str
    expected_total: int = 0
    counted_total: int = 0
    missing_asset_ids: List[str] = field(default_factory=list)
    group_breakdown: List[GroupCount] = field(default_factory=list)
    missing_rows: List[MissingRow] = field(default_factory=list)
    audit_id: Optional[str] = None

    @property
    def missing_total(self) -> int:
        return len(self.missing_asset_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'auditId': self.audit_id,
            'date': self.date.isoformat(),
            'performedBy': self.performed_by,
            'expectedTotal': self.expected_total,
            'countedTotal': self.counted_total,
            'missingAssetIds': list(self.missing_asset_ids),
            'groupBreakdown': [group.to_dict() for group in self.group_breakdown],
            'missingItems': [
                {'keyCode': row.key_code, 'assetId': row.asset_id, 'asset': row.parent_name, 'area': row.area}
                for row in self.missing_rows
            ],
        }

    def render_text(self, tablefmt: str = "grid") -> str:
        """Plain-text rendering of the report"""
        lines = [
            "Audit Report",
            f"Date: {self.date.strftime('%Y-%m-%d %H:%M')}",
            f"Performed By: {self.performed_by}",
            f"Total Expected: {self.expected_total}",
            f"Total Counted: {self.counted_total}",
            "",
        ]
        if self.missing_rows:
            lines.append(f"Missing Keys: {self.missing_total}")
            lines.append(tabulate([row.as_row() for row in self.missing_rows],
                                  headers=MISSING_HEADERS, tablefmt=tablefmt))
        else:
            lines.append("All keys accounted for.")

        if self.group_breakdown:
            lines.append("")
            lines.append(tabulate([[g.code, g.expected, g.counted] for g in self.group_breakdown],
                                  headers=BREAKDOWN_HEADERS, tablefmt=tablefmt))
        return "\n".join(lines)
