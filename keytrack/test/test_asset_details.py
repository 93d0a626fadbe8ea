"""
Test the typed detail variants over the flat metadata map.
"""

from datetime import datetime

from keytrack.data.core.asset_info.asset_details import (
    AssetDetails,
    DeviceDetails,
    FacilityDetails,
    KeyDetails,
    RentalDetails,
    VehicleDetails,
    details_for,
)
from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import AssetStatus, AssetType


def test_variant_is_chosen_by_type():
    assert isinstance(details_for(AssetType.KEY, {}), KeyDetails)
    assert isinstance(details_for(AssetType.IT_DEVICE, {}), DeviceDetails)
    assert isinstance(details_for(AssetType.VEHICLE, {}), VehicleDetails)
    assert isinstance(details_for(AssetType.RENTAL, {}), RentalDetails)
    assert isinstance(details_for(AssetType.FACILITY, {}), FacilityDetails)
    assert isinstance(details_for(None, {}), KeyDetails), "Untyped rows read as keys"
    assert type(details_for('SOMETHING_ELSE', {})) is AssetDetails


def test_key_details_read_storage_keys_and_parse_dates():
    details = details_for(AssetType.KEY, {
        'keyCode': 'A1',
        'assetId': 'parent-1',
        'currentHolder': 'Sam',
        'dueDate': '2026-02-01T17:00:00',
        'isMasterSystem': True,
        'paintColour': 'red',
    })
    assert details.key_code == 'A1'
    assert details.parent_asset_id == 'parent-1'
    assert details.current_holder == 'Sam'
    assert details.due_date == datetime(2026, 2, 1, 17, 0)
    assert details.is_master_system is True
    assert details.extra == {'paintColour': 'red'}, "Unknown keys are preserved in extra"


def test_to_metadata_round_trips_known_and_unknown_keys():
    raw = {
        'registrationPlate': 'AB12 CDE',
        'serialNumber': 'VIN-1',
        'location': 'Depot',
        'lastAuditDate': '2026-01-01T08:00:00',
        'fuel': 'diesel',
    }
    details = details_for(AssetType.VEHICLE, raw)
    assert details.registration_plate == 'AB12 CDE'
    assert details.to_metadata() == raw


def test_to_metadata_can_write_empty_fields():
    details = DeviceDetails(serial_number='SN-1')
    flat = details.to_metadata(include_empty=True)
    assert flat['serialNumber'] == 'SN-1'
    assert 'currentHolder' in flat and flat['currentHolder'] is None
    assert 'currentHolder' not in details.to_metadata()


def test_snapshot_exposes_typed_view():
    snapshot = AssetSnapshot(
        id='k1', org_id='org', name='Front Door', type=AssetType.KEY, status=AssetStatus.AVAILABLE,
        meta_data={'keyCode': 'FD', 'assetId': 'p1'},
    )
    assert snapshot.short_code == 'FD'
    assert snapshot.parent_asset_id == 'p1'
    assert snapshot.details.key_code == 'FD'
    assert snapshot.to_dict()['metaData'] == {'keyCode': 'FD', 'assetId': 'p1'}

    untagged = AssetSnapshot(id='k2', org_id='org', name='Spare', type=AssetType.KEY, status=AssetStatus.AVAILABLE)
    assert untagged.short_code == 'k2', "Short code falls back to the id"
