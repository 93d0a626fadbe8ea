from keytrack import db
from uuid import uuid4
from keytrack.utils.clock import utcnow


def generate_id() -> str:
    """Opaque document id assigned by the store"""
    return uuid4().hex


class OrgScopedBase(db.Model):
    """Abstract base class for every document owned by an organization"""

    __abstract__ = True

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    org_id = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
