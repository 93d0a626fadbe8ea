"""
Test the SQL asset store: partial updates, conditional writes, chunked deletes
and push subscriptions.
"""

import pytest
from sqlalchemy import text

from keytrack.business.errors import (
    ConcurrentModificationError,
    InvalidStateError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from keytrack.data.core.asset_info.constants import AssetStatus, AssetType
from keytrack.data.store.sql_asset_store import SqlAssetStore
from keytrack.test.helpers import ORG_ID, OTHER_ORG_ID
from keytrack.utils.document_sanitizer import UNSET


def _create(store, name='Front Door', org_id=ORG_ID, **data):
    return store.create(org_id, dict({'name': name}, **data))


def test_create_and_get(store):
    asset_id = _create(store, type=AssetType.VEHICLE, meta_data={'registrationPlate': 'AB12'})
    asset = store.get(asset_id)
    assert asset.id == asset_id
    assert asset.org_id == ORG_ID
    assert asset.type == AssetType.VEHICLE
    assert asset.status == AssetStatus.AVAILABLE, "New assets default to AVAILABLE"
    assert asset.meta_data == {'registrationPlate': 'AB12'}
    assert store.get('does-not-exist') is None


def test_create_requires_name(store):
    with pytest.raises(ValidationError):
        store.create(ORG_ID, {'name': ''})


def test_list_filters_by_org_type_and_status(store):
    _create(store, 'Key 1')
    _create(store, 'Laptop', type=AssetType.IT_DEVICE)
    _create(store, 'Van', type=AssetType.VEHICLE, status=AssetStatus.CHECKED_OUT)
    _create(store, 'Elsewhere', org_id=OTHER_ORG_ID)

    assert [a.name for a in store.list(ORG_ID)] == ['Key 1', 'Laptop', 'Van']
    assert [a.name for a in store.list(ORG_ID, asset_type=AssetType.IT_DEVICE)] == ['Laptop']
    assert [a.name for a in store.list(ORG_ID, status=AssetStatus.CHECKED_OUT)] == ['Van']
    assert [a.name for a in store.list(OTHER_ORG_ID)] == ['Elsewhere']


def test_dotted_update_keeps_sibling_metadata(store):
    asset_id = _create(store, meta_data={'keyCode': 'A1', 'location': 'Lobby'})
    store.update(asset_id, {'meta_data.currentHolder': 'Sam'})

    meta = store.get(asset_id).meta_data
    assert meta == {'keyCode': 'A1', 'location': 'Lobby', 'currentHolder': 'Sam'}, \
        "Dotted update must not clobber sibling keys"


def test_update_converts_unset_to_null(store):
    asset_id = _create(store, area='Block A', meta_data={'currentHolder': 'Sam'})
    store.update(asset_id, {'area': UNSET, 'meta_data.currentHolder': UNSET})

    asset = store.get(asset_id)
    assert asset.area is None
    assert asset.meta_data['currentHolder'] is None


def test_update_rejects_unknown_fields(store):
    asset_id = _create(store)
    with pytest.raises(ValidationError):
        store.update(asset_id, {'colour': 'red'})


def test_update_missing_asset(store):
    with pytest.raises(NotFoundError):
        store.update('missing', {'name': 'x'})


def test_conditional_update_checks_status(store):
    asset_id = _create(store, status=AssetStatus.CHECKED_OUT)

    with pytest.raises(InvalidStateError):
        store.update(asset_id, {'status': AssetStatus.CHECKED_OUT}, expected_status=[AssetStatus.AVAILABLE])
    assert store.get(asset_id).status == AssetStatus.CHECKED_OUT

    store.update(asset_id, {'status': AssetStatus.AVAILABLE}, expected_status=[AssetStatus.CHECKED_OUT])
    assert store.get(asset_id).status == AssetStatus.AVAILABLE


def test_stale_row_raises_concurrent_modification(store, db):
    asset_id = _create(store)

    with pytest.raises(ConcurrentModificationError):
        with store.transaction():
            store.get(asset_id)
            # Another writer bumps the row after we read it
            db.session.execute(
                text("UPDATE assets SET version = version + 1 WHERE id = :id"), {'id': asset_id}
            )
            store.update(asset_id, {'name': 'Renamed'})

    assert store.get(asset_id).name == 'Front Door', "Losing write must be rolled back"


def test_transaction_rolls_back_everything_on_error(store):
    with pytest.raises(RuntimeError):
        with store.transaction():
            _create(store, 'Doomed')
            store.add_log_entry(ORG_ID, 'x', 'Doomed', 'CREATE', 'u', 'User')
            raise RuntimeError("boom")

    assert store.list(ORG_ID) == []
    assert store.list_log_entries(ORG_ID) == []


def test_delete(store):
    asset_id = _create(store)
    assert store.delete(asset_id) is True
    assert store.get(asset_id) is None
    assert store.delete(asset_id) is False


def test_batch_delete_commits_in_chunks_of_500(store):
    with store.transaction():
        ids = [_create(store, f'Key {n:04d}') for n in range(1200)]
    _create(store, 'Other org key', org_id=OTHER_ORG_ID)

    result = store.delete_all(ORG_ID)

    assert result.batches_committed == 3, "1200 assets need ceil(1200/500) commits"
    assert result.succeeded == 1200
    assert result.errors == []
    assert store.list(ORG_ID) == []
    assert len(store.list(OTHER_ORG_ID)) == 1, "Other organizations are untouched"
    assert len(ids) == 1200


def test_batch_size_is_capped(store):
    with store.transaction():
        ids = [_create(store, f'Key {n}') for n in range(7)]

    result = store.batch_delete(ids, max_batch_size=3)
    assert result.batches_committed == 3
    assert result.succeeded == 7

    capped = SqlAssetStore(max_batch_size=10_000)
    assert capped.max_batch_size == 500


def test_batch_delete_refuses_open_transaction(store):
    asset_id = _create(store)
    with pytest.raises(StoreError):
        with store.transaction():
            store.batch_delete([asset_id])


def test_subscription_receives_full_set_after_each_commit(store):
    deliveries = []
    subscription = store.subscribe(ORG_ID, lambda assets: deliveries.append([a.name for a in assets]))
    assert deliveries == [[]], "Current result set is delivered immediately"

    _create(store, 'Alpha')
    with store.transaction():
        _create(store, 'Bravo')
        _create(store, 'Charlie')
    _create(store, 'Ignored', org_id=OTHER_ORG_ID)

    assert deliveries == [[], ['Alpha'], ['Alpha', 'Bravo', 'Charlie']], \
        "One delivery per committed unit of work, none for other orgs"

    subscription.unsubscribe()
    _create(store, 'Delta')
    assert len(deliveries) == 3, "No deliveries after unsubscribe"


def test_subscription_filtered_by_type(store):
    deliveries = []
    store.subscribe(ORG_ID, lambda assets: deliveries.append([a.name for a in assets]), asset_type=AssetType.KEY)

    _create(store, 'Laptop', type=AssetType.IT_DEVICE)
    _create(store, 'Key 1')
    assert deliveries[-1] == ['Key 1']


def test_failing_subscriber_does_not_break_writer(store):
    errors = []

    def explode(assets):
        if assets:
            raise ValueError("subscriber bug")

    store.subscribe(ORG_ID, explode, on_error=errors.append)
    asset_id = _create(store)

    assert store.get(asset_id) is not None, "The write still commits"
    assert len(errors) == 1 and isinstance(errors[0], ValueError)


def test_no_delivery_on_rollback(store):
    deliveries = []
    store.subscribe(ORG_ID, deliveries.append)

    with pytest.raises(RuntimeError):
        with store.transaction():
            _create(store, 'Rolled back')
            raise RuntimeError("abort")

    assert len(deliveries) == 1, "Only the initial delivery"


def test_log_entries_are_newest_first(store, clock):
    first = clock()
    second = clock()
    store.add_log_entry(ORG_ID, 'a1', 'Door', 'CHECK_OUT', 'u1', 'Dana', 'out', timestamp=first)
    store.add_log_entry(ORG_ID, 'a1', 'Door', 'CHECK_IN', 'u1', 'Dana', 'in', timestamp=second)
    store.add_log_entry(ORG_ID, 'a2', 'Van', 'CREATE', 'u1', 'Dana', timestamp=second)

    entries = store.list_log_entries(ORG_ID, asset_id='a1')
    assert [e['action'] for e in entries] == ['CHECK_IN', 'CHECK_OUT']
    assert len(store.list_log_entries(ORG_ID, limit=1)) == 1


def test_log_entries_and_audits_are_immutable(store, db, clock):
    from keytrack.data.core.audit_info.audit_record import AuditRecord
    from keytrack.data.core.event_info.log_entry import LogEntry

    entry_id = store.add_log_entry(ORG_ID, 'a1', 'Door', 'CREATE', 'u1', 'Dana')
    record_id = store.create_audit_record(ORG_ID, clock(), 'Dana', ['a1'])

    entry = db.session.get(LogEntry, entry_id)
    entry.notes = 'rewritten'
    with pytest.raises(ValueError):
        db.session.flush()
    db.session.rollback()

    record = db.session.get(AuditRecord, record_id)
    record.missing_keys = []
    with pytest.raises(ValueError):
        db.session.flush()
    db.session.rollback()

    assert store.list_audit_records(ORG_ID)[0]['missingKeys'] == ['a1']
