from keytrack import db
from keytrack.data.core.org_scoped_base import OrgScopedBase
from keytrack.utils.clock import utcnow
from sqlalchemy import event


class LogEntry(OrgScopedBase):
    """
    Append-only record of one action on an asset.

    asset_id is deliberately not a foreign key: the history of a hard-deleted
    asset has to survive the delete.
    """
    __tablename__ = 'asset_logs'

    asset_id = db.Column(db.String(32), nullable=False, index=True)
    asset_name = db.Column(db.String(200), nullable=True)
    action = db.Column(db.String(20), nullable=False)
    actor_id = db.Column(db.String(64), nullable=True)
    actor_name = db.Column(db.String(200), nullable=True)
    timestamp = db.Column(db.DateTime, default=utcnow, index=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'orgId': self.org_id,
            'assetId': self.asset_id,
            'assetName': self.asset_name,
            'action': self.action,
            'actorId': self.actor_id,
            'actorName': self.actor_name,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<LogEntry {self.action}: {self.asset_name}>'


@event.listens_for(LogEntry, 'before_update')
def _reject_log_update(mapper, connection, target):
    raise ValueError(f"Log entry {target.id} is append-only and cannot be modified")
