"""
Test imports, delete-all and the rental retype repair.
"""

from keytrack.business.lifecycle.bulk_operations import (
    BulkAssetOperations,
    normalize_asset_type,
    normalize_key_type,
)
from keytrack.data.core.asset_info.constants import AssetType, LoanType, LogAction, MetaKey
from keytrack.test.helpers import ORG_ID, OTHER_ORG_ID


def _bulk(store, actor, clock, org_id=ORG_ID):
    return BulkAssetOperations(store, org_id, actor, clock=clock)


def test_normalizers():
    assert normalize_key_type('Euro profile cylinder') == 'EURO_LOCK'
    assert normalize_key_type('padlock') == 'PADLOCK'
    assert normalize_key_type('Mortice') == 'OTHER'
    assert normalize_key_type(None) == 'EURO_LOCK'
    assert normalize_asset_type('vehicle') == AssetType.VEHICLE
    assert normalize_asset_type('Company vehicles') == AssetType.VEHICLE
    assert normalize_asset_type('laptop') == AssetType.IT_DEVICE


def test_import_assets_collects_row_errors(store, actor, clock):
    result = _bulk(store, actor, clock).import_assets([
        {'type': 'VEHICLE', 'name': 'Van 1', 'serial': 'VIN123', 'location': 'Depot'},
        {'type': 'IT_DEVICE', 'name': ''},
        {'type': 'laptop', 'name': 'ThinkPad', 'qr_code': 'QR-1'},
    ])

    assert result.created == 2
    assert len(result.errors) == 1 and result.errors[0].startswith('Row 2')

    van = store.get(result.created_ids[0])
    assert van.type == AssetType.VEHICLE
    assert van.meta_data['serialNumber'] == 'VIN123'
    assert van.area == 'Depot'
    assert store.get(result.created_ids[1]).qr_code == 'QR-1'


def test_import_keys_creates_parents_and_copies(store, actor, clock):
    result = _bulk(store, actor, clock).import_keys([
        {'key_id': 'MO-1', 'asset_name': 'Main Office', 'location': 'Block A', 'quantity': '3'},
        {'key_id': 'MO-2', 'asset_name': 'main office', 'quantity': None, 'master_system': 'yes', 'supplier': 'Abloy'},
        {'key_id': '', 'asset_name': 'Nowhere'},
    ])

    assert result.created == 4
    assert result.parents_created == 1, "Parents are matched by name, ignoring case"
    assert result.errors == ['Row 3: key_id and asset_name are required']

    parents = store.list(ORG_ID, asset_type=AssetType.FACILITY)
    assert len(parents) == 1
    assert parents[0].total_keys == 3

    keys = [store.get(key_id) for key_id in result.created_ids]
    assert all(key.parent_asset_id == parents[0].id for key in keys)
    assert [key.key_code for key in keys] == ['MO-1', 'MO-1', 'MO-1', 'MO-2']
    assert keys[0].meta_data[MetaKey.LOAN_TYPE] == LoanType.STANDARD
    assert keys[3].meta_data['isMasterSystem'] is True
    assert keys[3].meta_data['keySupplier'] == 'Abloy'


def test_import_keys_reuses_existing_parent(manager, store, actor, clock):
    parent_id = manager.create_asset('Gatehouse', AssetType.FACILITY)
    result = _bulk(store, actor, clock).import_keys([{'key_code': 'GH-1', 'asset_name': 'Gatehouse'}])

    assert result.parents_created == 0
    assert store.get(result.created_ids[0]).parent_asset_id == parent_id


def test_import_keys_keeps_going_past_malformed_rows(store, actor, clock):
    result = _bulk(store, actor, clock).import_keys([
        {'key_id': 'A', 'asset_name': 'Door', 'quantity': float('inf')},
        'not a row',
        {'key_id': 'C', 'asset_name': 'Shed', 'quantity': 10 ** 9},
        {'key_id': 'B', 'asset_name': 'Gate', 'quantity': 1},
    ])

    assert [store.get(key_id).key_code for key_id in result.created_ids] == ['A', 'B'], \
        "An unreadable quantity falls back to one copy"
    assert result.errors == [
        'Row 2: row must be an object',
        'Row 3: quantity cannot exceed 500 copies per row',
    ]
    parents = store.list(ORG_ID, asset_type=AssetType.FACILITY)
    assert sorted(parent.name for parent in parents) == ['Door', 'Gate'], "Rejected rows leave no parent behind"


def test_import_assets_rejects_non_object_rows(store, actor, clock):
    result = _bulk(store, actor, clock).import_assets([['Van 1'], {'name': 'Van 2', 'type': 'VEHICLE'}])

    assert result.created == 1
    assert result.errors == ['Row 1: row must be an object']


def test_delete_all_only_touches_one_org(manager, store, actor, clock):
    for n in range(3):
        manager.create_asset(f'Key {n}')
    store.create(OTHER_ORG_ID, {'name': 'Theirs'})

    result = _bulk(store, actor, clock).delete_all(max_batch_size=2)

    assert result.succeeded == 3
    assert result.batches_committed == 2
    assert result.to_dict()['failed'] == 0
    assert store.list(ORG_ID) == []
    assert len(store.list(OTHER_ORG_ID)) == 1


def test_retype_misclassified_rentals(manager, store, actor, clock):
    wrong = [manager.create_asset(f'Depot {n}', AssetType.RENTAL, total_keys=n) for n in range(3)]
    real = manager.create_asset('Skip Hire', AssetType.RENTAL)

    result = _bulk(store, actor, clock).retype_misclassified_rentals(max_batch_size=2)

    assert result.succeeded == 3
    assert result.batches_committed == 2
    assert all(store.get(asset_id).type == AssetType.FACILITY for asset_id in wrong)
    assert store.get(real).type == AssetType.RENTAL

    entry = store.list_log_entries(ORG_ID, asset_id=wrong[0])[0]
    assert entry['action'] == LogAction.UPDATE
    assert entry['notes'] == 'Type changed: RENTAL → FACILITY'
