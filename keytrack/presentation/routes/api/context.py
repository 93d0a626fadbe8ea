"""
Per-request helpers: organization, actor and engines.

Identity is resolved upstream and forwarded in headers.
"""

from flask import current_app, request

from keytrack.business.actor import Actor
from keytrack.business.errors import ValidationError
from keytrack.utils.clock import parse_iso

ORG_HEADER = 'X-Org-Id'
ACTOR_ID_HEADER = 'X-Actor-Id'
ACTOR_NAME_HEADER = 'X-Actor-Name'


def get_store():
    return current_app.extensions['keytrack_store']


def get_org_id() -> str:
    org_id = (request.headers.get(ORG_HEADER) or '').strip()
    if not org_id:
        raise ValidationError(f"{ORG_HEADER} header is required")
    return org_id


def get_actor() -> Actor:
    actor_id = (request.headers.get(ACTOR_ID_HEADER) or '').strip() or None
    actor_name = (request.headers.get(ACTOR_NAME_HEADER) or '').strip()
    return Actor(id=actor_id, name=actor_name)


def get_payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def optional_datetime(payload: dict, name: str):
    raw = payload.get(name)
    if raw in (None, ''):
        return None
    parsed = parse_iso(raw)
    if parsed is None:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    return parsed


def optional_text(payload: dict, name: str):
    raw = payload.get(name)
    if raw is None or isinstance(raw, str):
        return raw
    raise ValidationError(f"{name} must be a string")
