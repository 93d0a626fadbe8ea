from flask import current_app, jsonify, request

from keytrack import limiter
from keytrack.business.errors import ValidationError
from keytrack.business.lifecycle.asset_lifecycle_manager import AssetLifecycleManager
from keytrack.business.lifecycle.bulk_operations import BulkAssetOperations
from keytrack.business.search.grouping import group_keys_by_parent
from keytrack.business.search.inventory_index import InventoryIndex
from keytrack.data.core.asset_info.constants import AssetStatus, AssetType
from keytrack.presentation.routes.api import api_bp
from keytrack.presentation.routes.api.context import (
    get_actor,
    get_org_id,
    get_payload,
    get_store,
    optional_datetime,
    optional_text,
)
from keytrack.services.core.report_service import ReportService
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.routes.assets")


def _lifecycle() -> AssetLifecycleManager:
    return AssetLifecycleManager(get_store(), get_org_id(), get_actor())


def _optional_int(payload, name):
    raw = payload.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{name} must be an integer")


@api_bp.get('/assets')
def list_assets():
    """Fuzzy search; ?type= narrows to one inventory view"""
    asset_type = request.args.get('type', type=str)
    if asset_type is not None:
        asset_type = asset_type.strip().upper()
        if not AssetType.is_valid(asset_type):
            raise ValidationError(f"Unknown asset type: {asset_type}")

    store = get_store()
    org_id = get_org_id()
    index = InventoryIndex(
        store.list(org_id),
        store.list(org_id, asset_type=AssetType.KEY),
        threshold=current_app.config['KEYTRACK_SEARCH_THRESHOLD'],
    )
    return jsonify(index.search(request.args.get('q', type=str), asset_type=asset_type).to_dict())


@api_bp.get('/assets/groups')
def key_groups():
    store = get_store()
    org_id = get_org_id()
    groups = group_keys_by_parent(store.list(org_id, asset_type=AssetType.KEY), store.list(org_id))
    return jsonify([group.to_dict() for group in groups])


@api_bp.post('/assets')
def create_asset():
    payload = get_payload()
    manager = _lifecycle()
    asset_id = manager.create_asset(
        optional_text(payload, 'name'),
        optional_text(payload, 'type') or AssetType.KEY,
        area=optional_text(payload, 'area'),
        meta_data=payload.get('metaData'),
        qr_code=optional_text(payload, 'qrCode'),
        total_keys=_optional_int(payload, 'totalKeys'),
    )
    return jsonify(manager.get_asset(asset_id).to_dict()), 201


@api_bp.get('/assets/<asset_id>')
def get_asset(asset_id):
    return jsonify(_lifecycle().get_asset(asset_id).to_dict())


@api_bp.patch('/assets/<asset_id>')
def update_asset(asset_id):
    payload = get_payload()
    updated = _lifecycle().update_asset(
        asset_id,
        name=optional_text(payload, 'name'),
        meta_data=payload.get('metaData'),
        area=optional_text(payload, 'area'),
        qr_code=optional_text(payload, 'qrCode'),
    )
    return jsonify(updated.to_dict())


@api_bp.delete('/assets/<asset_id>')
def delete_asset(asset_id):
    _lifecycle().delete_asset(asset_id)
    return jsonify({'deleted': True, 'id': asset_id})


@api_bp.get('/assets/<asset_id>/history')
def asset_history(asset_id):
    manager = _lifecycle()
    manager.get_asset(asset_id)
    limit = request.args.get('limit', default=10, type=int)
    return jsonify(ReportService(get_store(), manager.org_id).asset_history(asset_id, limit=limit))


@api_bp.post('/assets/<asset_id>/checkout')
def check_out(asset_id):
    payload = get_payload()
    updated = _lifecycle().check_out(
        asset_id,
        optional_text(payload, 'recipient'),
        notes=optional_text(payload, 'notes'),
        due_date=optional_datetime(payload, 'dueDate'),
        holder_company=optional_text(payload, 'holderCompany'),
        loan_type=optional_text(payload, 'loanType'),
    )
    return jsonify(updated.to_dict())


@api_bp.post('/assets/<asset_id>/checkin')
def check_in(asset_id):
    payload = get_payload()
    return jsonify(_lifecycle().check_in(asset_id, notes=optional_text(payload, 'notes')).to_dict())


@api_bp.post('/assets/<asset_id>/missing')
def report_missing(asset_id):
    payload = get_payload()
    return jsonify(_lifecycle().report_missing(asset_id, optional_text(payload, 'reason')).to_dict())


@api_bp.post('/assets/<asset_id>/status')
def change_status(asset_id):
    """Maintenance and retirement transitions"""
    payload = get_payload()
    manager = _lifecycle()
    target = payload.get('status')
    reason = optional_text(payload, 'reason')

    if target == AssetStatus.MAINTENANCE:
        updated = manager.send_to_maintenance(asset_id, reason)
    elif target == AssetStatus.RETIRED:
        updated = manager.retire(asset_id, reason)
    elif target == AssetStatus.AVAILABLE:
        updated = manager.return_from_maintenance(asset_id, reason)
    else:
        raise ValidationError("status must be one of MAINTENANCE, RETIRED or AVAILABLE")
    return jsonify(updated.to_dict())


@api_bp.post('/assets/import')
def import_assets():
    payload = get_payload()
    rows = payload.get('rows')
    if not isinstance(rows, list):
        raise ValidationError("rows must be a list")

    operations = BulkAssetOperations(get_store(), get_org_id(), get_actor())
    kind = payload.get('kind', 'keys')
    if kind == 'keys':
        result = operations.import_keys(rows)
    elif kind == 'assets':
        result = operations.import_assets(rows)
    else:
        raise ValidationError("kind must be 'keys' or 'assets'")
    return jsonify(result.to_dict()), 201


@api_bp.post('/assets/retype-rentals')
def retype_rentals():
    operations = BulkAssetOperations(get_store(), get_org_id(), get_actor())
    return jsonify(operations.retype_misclassified_rentals().to_dict())


@api_bp.post('/assets/delete-all')
@limiter.limit("5 per hour")
def delete_all():
    """Irreversible. Requires an acknowledgement and the typed confirmation phrase."""
    payload = get_payload()
    phrase = current_app.config['KEYTRACK_DELETE_ALL_PHRASE']
    if payload.get('acknowledged') is not True:
        raise ValidationError("Deleting all assets must be acknowledged")
    if payload.get('confirmation') != phrase:
        raise ValidationError(f"Type '{phrase}' to confirm")

    org_id = get_org_id()
    actor = get_actor()
    logger.warning(f"Delete-all confirmed for org {org_id} by {actor.label}")
    result = BulkAssetOperations(get_store(), org_id, actor).delete_all(
        current_app.config['KEYTRACK_DELETE_BATCH_SIZE']
    )
    return jsonify(result.to_dict())
