"""
Immutable, session-detached copy of an Asset row.

The store hands these out from get/list and from subscriptions, so search,
grouping and reporting code never touches a live SQLAlchemy session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from keytrack.data.core.asset_info.asset_details import AssetDetails, details_for
from keytrack.data.core.asset_info.constants import AssetType, MetaKey
from keytrack.utils.clock import parse_iso


@dataclass(frozen=True, eq=False)
class AssetSnapshot:
    id: str
    org_id: str
    name: str
    type: str
    status: str
    area: Optional[str] = None
    total_keys: Optional[int] = None
    meta_data: Dict[str, Any] = field(default_factory=dict)
    qr_code: Optional[str] = None
    search_keywords: Tuple[str, ...] = ()
    checked_out_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def details(self) -> AssetDetails:
        return details_for(self.type, self.meta_data)

    @property
    def current_holder(self) -> Optional[str]:
        return self.meta_data.get(MetaKey.CURRENT_HOLDER)

    @property
    def key_code(self) -> Optional[str]:
        return self.meta_data.get(MetaKey.KEY_CODE)

    @property
    def short_code(self) -> str:
        """Visible tag shared by indistinguishable copies; falls back to the id"""
        return self.key_code or self.id

    @property
    def parent_asset_id(self) -> Optional[str]:
        return self.meta_data.get(MetaKey.PARENT_ASSET_ID)

    @property
    def due_date(self) -> Optional[datetime]:
        return parse_iso(self.meta_data.get(MetaKey.DUE_DATE))

    @property
    def is_key(self) -> bool:
        # Untyped legacy rows default to keys
        return self.type == AssetType.KEY or not self.type

    def to_dict(self) -> Dict[str, Any]:
        """Document form used by the JSON API"""
        return {
            'id': self.id,
            'orgId': self.org_id,
            'name': self.name,
            'type': self.type,
            'status': self.status,
            'area': self.area,
            'totalKeys': self.total_keys,
            'metaData': dict(self.meta_data),
            'qrCode': self.qr_code,
            'searchKeywords': list(self.search_keywords),
            'checkedOutAt': self.checked_out_at.isoformat() if self.checked_out_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
