"""
Inventory search over the live asset and key collections.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from keytrack.business.search.fuzzy_index import DEFAULT_THRESHOLD, FuzzyIndex
from keytrack.business.search.grouping import KeyGroup, group_keys_by_parent, partition_by_type
from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.data.core.asset_info.constants import AssetType
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.search")


ASSET_FIELDS = {
    'name': lambda asset: asset.name,
    'area': lambda asset: asset.area,
    'qr_code': lambda asset: asset.qr_code,
    'search_keywords': lambda asset: asset.search_keywords,
}

KEY_FIELDS = {
    'name': lambda key: key.name,
    'area': lambda key: key.area,
    'qr_code': lambda key: key.qr_code,
    'id': lambda key: key.id,
    'current_holder': lambda key: key.current_holder,
    'status': lambda key: key.status,
    'search_keywords': lambda key: key.search_keywords,
}


@dataclass
class SearchResult:
    assets: List[AssetSnapshot] = field(default_factory=list)
    keys: List[AssetSnapshot] = field(default_factory=list)

    def to_dict(self):
        return {
            'assets': [asset.to_dict() for asset in self.assets],
            'keys': [key.to_dict() for key in self.keys],
        }


class InventoryIndex:
    """
    Fuzzy index over one snapshot of the asset and key collections.

    Rebuilt whenever either collection changes; search() is a pure function of
    the snapshot and the query.
    """

    def __init__(self, assets: List[AssetSnapshot], keys: List[AssetSnapshot], threshold: float = DEFAULT_THRESHOLD):
        self.assets = list(assets)
        self.keys = list(keys)
        self._asset_index = FuzzyIndex(self.assets, ASSET_FIELDS, threshold)
        self._key_index = FuzzyIndex(self.keys, KEY_FIELDS, threshold)

    def exact_key(self, query: str) -> Optional[AssetSnapshot]:
        """Key whose QR code or key code equals the query, ignoring case"""
        wanted = query.strip().lower()
        for key in self.keys:
            if (key.qr_code and key.qr_code.lower() == wanted) or (key.key_code and key.key_code.lower() == wanted):
                return key
        return None

    def search(self, query: Optional[str], asset_type: Optional[str] = None) -> SearchResult:
        """
        Args:
            query: Free text; blank returns everything
            asset_type: Restrict to one per-type inventory view. The RENTAL
                view leaves out misclassified rentals.
        """
        result = self._match(query)
        if asset_type is None:
            return result
        return SearchResult(
            assets=partition_by_type(result.assets)[asset_type],
            keys=result.keys if asset_type == AssetType.KEY else [],
        )

    def _match(self, query: Optional[str]) -> SearchResult:
        if not query or not query.strip():
            return SearchResult(assets=list(self.assets), keys=list(self.keys))

        # A scanned tag names exactly one key; fuzzy neighbours would only confuse
        exact = self.exact_key(query)
        if exact is not None:
            return SearchResult(assets=[], keys=[exact])

        return SearchResult(
            assets=self._asset_index.search(query),
            keys=self._key_index.search(query),
        )

    def key_groups(self) -> List[KeyGroup]:
        return group_keys_by_parent(self.keys, self.assets)


class LiveInventory:
    """
    Subscription-backed inventory for one organization.

    Holds two subscriptions (every asset, and keys only) and rebuilds the
    InventoryIndex on each delivery. Call close() to stop receiving updates.
    """

    def __init__(self, store, org_id: str, threshold: float = DEFAULT_THRESHOLD):
        self.org_id = org_id
        self.threshold = threshold
        self._assets: List[AssetSnapshot] = []
        self._keys: List[AssetSnapshot] = []
        self._index = InventoryIndex([], [], threshold)
        self.errors: List[Exception] = []

        self._asset_subscription = store.subscribe(
            org_id, self._on_assets, on_error=self._on_error
        )
        self._key_subscription = store.subscribe(
            org_id, self._on_keys, asset_type=AssetType.KEY, on_error=self._on_error
        )

    def _on_assets(self, assets: List[AssetSnapshot]) -> None:
        self._assets = list(assets)
        self._rebuild()

    def _on_keys(self, keys: List[AssetSnapshot]) -> None:
        self._keys = list(keys)
        self._rebuild()

    def _on_error(self, exc: Exception) -> None:
        logger.error(f"Inventory subscription for org {self.org_id} failed: {exc}")
        self.errors.append(exc)

    def _rebuild(self) -> None:
        self._index = InventoryIndex(self._assets, self._keys, self.threshold)

    @property
    def assets(self) -> List[AssetSnapshot]:
        return list(self._assets)

    @property
    def keys(self) -> List[AssetSnapshot]:
        return list(self._keys)

    def search(self, query: Optional[str]) -> SearchResult:
        return self._index.search(query)

    def key_groups(self) -> List[KeyGroup]:
        return self._index.key_groups()

    def close(self) -> None:
        self._asset_subscription.unsubscribe()
        self._key_subscription.unsubscribe()
