from flask import jsonify

from keytrack.business.audit.reconciliation import AuditReconciler
from keytrack.business.errors import ValidationError
from keytrack.presentation.routes.api import api_bp
from keytrack.presentation.routes.api.context import get_actor, get_org_id, get_payload, get_store
from keytrack.services.core.report_service import ReportService


@api_bp.get('/audits/expected')
def expected_counts():
    """Codes the operator has to count, with how many keys are expected per code"""
    reconciler = AuditReconciler(get_store(), get_org_id(), get_actor())
    return jsonify([
        {'code': code, 'expected': len(members), 'assetIds': [key.id for key in members]}
        for code, members in reconciler.expected_groups().items()
    ])


@api_bp.post('/audits')
def submit_audit():
    payload = get_payload()
    counts = payload.get('counts') or {}
    if not isinstance(counts, dict):
        raise ValidationError("counts must map key codes to counts")

    outcome = AuditReconciler(get_store(), get_org_id(), get_actor()).submit(counts)
    body = outcome.to_dict()
    body['reportText'] = outcome.report.render_text()
    return jsonify(body), 201


@api_bp.get('/audits')
def audit_history():
    return jsonify(ReportService(get_store(), get_org_id()).audit_history())
