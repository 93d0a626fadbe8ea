from flask import jsonify

from keytrack.presentation.routes.api import api_bp
from keytrack.presentation.routes.api.context import get_org_id, get_store
from keytrack.services.core.report_service import ReportService


def _reports() -> ReportService:
    return ReportService(get_store(), get_org_id())


@api_bp.get('/reports/active-loans')
def active_loans():
    return jsonify([row.to_dict() for row in _reports().active_loans()])


@api_bp.get('/reports/overdue')
def overdue():
    return jsonify([asset.to_dict() for asset in _reports().overdue()])


@api_bp.get('/reports/who-has-what')
def who_has_what():
    return jsonify(_reports().who_has_what())


@api_bp.get('/reports/checked-out-counts')
def checked_out_counts():
    return jsonify(_reports().checked_out_counts())
