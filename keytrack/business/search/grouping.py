"""
Display grouping for keys and type partitioning for the inventory views.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import AssetStatus, AssetType, MetaKey

ORPHAN_PREFIX = 'orphan-'
DEFAULT_LOCATION = 'General'


@dataclass
class KeyGroup:
    """Keys sharing one parent asset"""
    id: str
    parent_name: str
    location: str
    keys: List[AssetSnapshot] = field(default_factory=list)

    @property
    def is_orphan(self) -> bool:
        return self.id.startswith(ORPHAN_PREFIX)

    @property
    def available_count(self) -> int:
        return sum(1 for key in self.keys if key.status == AssetStatus.AVAILABLE)

    @property
    def checked_out_count(self) -> int:
        """Keys away from the board: checked out or missing"""
        return sum(1 for key in self.keys if key.status in AssetStatus.HELD)

    def to_dict(self):
        return {
            'id': self.id,
            'parentName': self.parent_name,
            'location': self.location,
            'availableCount': self.available_count,
            'checkedOutCount': self.checked_out_count,
            'keys': [key.to_dict() for key in self.keys],
        }


def group_keys_by_parent(keys: Iterable[AssetSnapshot], assets: Iterable[AssetSnapshot]) -> List[KeyGroup]:
    """
    Group keys under the asset named by their metaData.assetId.

    A key whose parent cannot be resolved is never dropped: it forms a
    singleton group "orphan-<key id>" named after the key itself.
    Groups come back sorted by parent name (case-insensitive), then id.
    """
    parents: Dict[str, AssetSnapshot] = {asset.id: asset for asset in assets}
    groups: Dict[str, KeyGroup] = {}

    for key in keys:
        parent = parents.get(key.parent_asset_id) if key.parent_asset_id else None
        group_id = parent.id if parent is not None else f"{ORPHAN_PREFIX}{key.id}"

        group = groups.get(group_id)
        if group is None:
            group = KeyGroup(
                id=group_id,
                parent_name=(parent.name if parent is not None else key.name) or "Unknown Asset",
                location=key.meta_data.get(MetaKey.LOCATION) or key.area or DEFAULT_LOCATION,
            )
            groups[group_id] = group
        group.keys.append(key)

    return sorted(groups.values(), key=lambda group: (group.parent_name.casefold(), group.id))


def is_misclassified_rental(asset: AssetSnapshot) -> bool:
    """A RENTAL carrying total_keys (even 0) is really a parent asset imported with the wrong type"""
    return asset.type == AssetType.RENTAL and asset.total_keys is not None


def partition_by_type(assets: Iterable[AssetSnapshot]) -> Dict[str, List[AssetSnapshot]]:
    """
    Split a mixed collection into the per-type inventory views.

    Untyped rows count as keys. Misclassified rentals are left out of the
    rental view.
    """
    partitions: Dict[str, List[AssetSnapshot]] = {asset_type: [] for asset_type in sorted(AssetType.ALL)}
    for asset in assets:
        if asset.is_key:
            partitions[AssetType.KEY].append(asset)
        elif is_misclassified_rental(asset):
            continue
        elif asset.type in partitions:
            partitions[asset.type].append(asset)
    return partitions
