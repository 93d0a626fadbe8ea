"""
Typed views over Asset.meta_data

The stored metadata map is schemaless so any asset type can carry any field.
Python code reads it through a tagged variant chosen by asset type:

    KEY        -> KeyDetails
    IT_DEVICE  -> DeviceDetails
    VEHICLE    -> VehicleDetails
    RENTAL     -> RentalDetails
    FACILITY   -> FacilityDetails

Each variant maps its attributes to the flat storage keys through STORAGE_KEYS.
Keys no variant knows about are kept in `extra` and written back untouched.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, Type

from keytrack.data.core.asset_info.constants import AssetType, MetaKey
from keytrack.utils.clock import parse_iso, to_iso


DATE_KEYS = frozenset({
    MetaKey.CHECKED_OUT_AT,
    MetaKey.DUE_DATE,
    MetaKey.MISSING_SINCE,
    MetaKey.LAST_AUDIT_DATE,
})


@dataclass
class AssetDetails:
    """Fields shared by every asset type"""
    location: Optional[str] = None
    current_holder: Optional[str] = None
    holder_company: Optional[str] = None
    checked_out_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    loan_type: Optional[str] = None
    missing_since: Optional[datetime] = None
    missing_reason: Optional[str] = None
    last_audit_date: Optional[datetime] = None
    notes: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    STORAGE_KEYS: ClassVar[Dict[str, str]] = {
        'location': MetaKey.LOCATION,
        'current_holder': MetaKey.CURRENT_HOLDER,
        'holder_company': MetaKey.HOLDER_COMPANY,
        'checked_out_at': MetaKey.CHECKED_OUT_AT,
        'due_date': MetaKey.DUE_DATE,
        'loan_type': MetaKey.LOAN_TYPE,
        'missing_since': MetaKey.MISSING_SINCE,
        'missing_reason': MetaKey.MISSING_REASON,
        'last_audit_date': MetaKey.LAST_AUDIT_DATE,
        'notes': 'notes',
    }

    @classmethod
    def storage_keys(cls) -> Dict[str, str]:
        """Attribute -> storage key map, merged along the class hierarchy"""
        merged: Dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            merged.update(vars(klass).get('STORAGE_KEYS', {}))
        return merged

    @classmethod
    def from_metadata(cls, meta_data: Optional[Dict[str, Any]]) -> 'AssetDetails':
        meta_data = dict(meta_data or {})
        known = cls.storage_keys()
        kwargs = {}
        for attr, key in known.items():
            if key not in meta_data:
                continue
            value = meta_data.pop(key)
            kwargs[attr] = parse_iso(value) if key in DATE_KEYS else value
        return cls(extra=meta_data, **kwargs)

    def to_metadata(self, include_empty: bool = False) -> Dict[str, Any]:
        """
        Flatten back to the storage map.

        Args:
            include_empty: Write None values too (needed when clearing fields)
        """
        meta_data = dict(self.extra)
        for attr, key in self.storage_keys().items():
            value = getattr(self, attr)
            if value is None and not include_empty:
                continue
            meta_data[key] = to_iso(value) if isinstance(value, datetime) else value
        return meta_data


@dataclass
class KeyDetails(AssetDetails):
    key_code: Optional[str] = None
    parent_asset_id: Optional[str] = None
    key_type: Optional[str] = None
    is_master_system: Optional[bool] = None
    key_supplier: Optional[str] = None

    STORAGE_KEYS: ClassVar[Dict[str, str]] = {
        'key_code': MetaKey.KEY_CODE,
        'parent_asset_id': MetaKey.PARENT_ASSET_ID,
        'key_type': 'keyType',
        'is_master_system': 'isMasterSystem',
        'key_supplier': 'keySupplier',
    }


@dataclass
class DeviceDetails(AssetDetails):
    serial_number: Optional[str] = None
    model: Optional[str] = None

    STORAGE_KEYS: ClassVar[Dict[str, str]] = {
        'serial_number': 'serialNumber',
        'model': 'model',
    }


@dataclass
class VehicleDetails(AssetDetails):
    registration_plate: Optional[str] = None
    serial_number: Optional[str] = None

    STORAGE_KEYS: ClassVar[Dict[str, str]] = {
        'registration_plate': 'registrationPlate',
        'serial_number': 'serialNumber',
    }


@dataclass
class RentalDetails(AssetDetails):
    tenant_name: Optional[str] = None
    unit_number: Optional[str] = None

    STORAGE_KEYS: ClassVar[Dict[str, str]] = {
        'tenant_name': 'tenantName',
        'unit_number': 'unitNumber',
    }


@dataclass
class FacilityDetails(AssetDetails):
    STORAGE_KEYS: ClassVar[Dict[str, str]] = {}


DETAILS_BY_TYPE: Dict[str, Type[AssetDetails]] = {
    AssetType.KEY: KeyDetails,
    AssetType.IT_DEVICE: DeviceDetails,
    AssetType.VEHICLE: VehicleDetails,
    AssetType.RENTAL: RentalDetails,
    AssetType.FACILITY: FacilityDetails,
}


def details_for(asset_type: Optional[str], meta_data: Optional[Dict[str, Any]]) -> AssetDetails:
    """Build the typed variant for an asset type (untyped legacy rows read as keys)"""
    details_class = DETAILS_BY_TYPE.get(asset_type or AssetType.KEY, AssetDetails)
    return details_class.from_metadata(meta_data)
