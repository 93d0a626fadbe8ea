from copy import deepcopy
from keytrack.data.core.org_scoped_base import OrgScopedBase
from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import AssetStatus, AssetType
from keytrack.utils.clock import utcnow
from keytrack import db


class Asset(OrgScopedBase):
    """
    Single polymorphic document for every trackable thing.

    Type-specific fields live in the open meta_data map (see asset_details for the
    typed view). `version` is the optimistic-concurrency counter: every flush emits
    UPDATE ... WHERE version = :loaded_version, so a concurrent writer makes the
    second flush fail with StaleDataError instead of silently overwriting.
    """
    __tablename__ = 'assets'

    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default=AssetType.KEY, index=True)
    status = db.Column(db.String(20), nullable=False, default=AssetStatus.AVAILABLE, index=True)
    area = db.Column(db.String(200), nullable=True)
    total_keys = db.Column(db.Integer, nullable=True)
    meta_data = db.Column(db.JSON, nullable=False, default=dict)
    qr_code = db.Column(db.String(200), nullable=True)
    search_keywords = db.Column(db.JSON, nullable=False, default=list)
    checked_out_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_snapshot(self) -> AssetSnapshot:
        return AssetSnapshot(
            id=self.id,
            org_id=self.org_id,
            name=self.name,
            type=self.type,
            status=self.status,
            area=self.area,
            total_keys=self.total_keys,
            meta_data=deepcopy(self.meta_data or {}),
            qr_code=self.qr_code,
            search_keywords=tuple(self.search_keywords or ()),
            checked_out_at=self.checked_out_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self):
        return f'<Asset {self.name} ({self.type}, {self.status})>'
