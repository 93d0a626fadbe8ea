from keytrack import db
from keytrack.data.core.org_scoped_base import OrgScopedBase
from keytrack.utils.clock import utcnow
from sqlalchemy import event


class AuditRecord(OrgScopedBase):
    """Immutable snapshot of one submitted physical audit"""
    __tablename__ = 'audit_records'

    date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    performed_by = db.Column(db.String(200), nullable=False)
    missing_keys = db.Column(db.JSON, nullable=False, default=list)

    def to_dict(self):
        return {
            'id': self.id,
            'orgId': self.org_id,
            'date': self.date.isoformat() if self.date else None,
            'performedBy': self.performed_by,
            'missingKeys': list(self.missing_keys or []),
        }

    def __repr__(self):
        return f'<AuditRecord {self.date} by {self.performed_by}: {len(self.missing_keys or [])} missing>'


@event.listens_for(AuditRecord, 'before_update')
def _reject_audit_update(mapper, connection, target):
    raise ValueError(f"Audit record {target.id} is immutable")
