"""
Subscription registry for push-based asset delivery.

Subscribers receive the full current result set for their filter, never a diff.
"""

import threading
from typing import Callable, Iterable, List, Optional

from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.store.subscriptions")

Loader = Callable[[str, Optional[str]], List[AssetSnapshot]]


class Subscription:
    """Handle returned by AssetStore.subscribe()"""

    def __init__(self, registry, org_id, callback, asset_type=None, on_error=None):
        self._registry = registry
        self.org_id = org_id
        self.asset_type = asset_type
        self.callback = callback
        self.on_error = on_error
        self.active = True

    def deliver(self, assets: List[AssetSnapshot]) -> None:
        if not self.active:
            return
        try:
            self.callback(assets)
        except Exception as exc:
            # A broken subscriber must not fail the writer that triggered it
            if self.on_error is not None:
                self.on_error(exc)
            else:
                logger.exception(f"Subscriber for org {self.org_id} failed: {exc}")

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._registry.remove(self)

    def __repr__(self):
        return f'<Subscription org={self.org_id} type={self.asset_type or "*"} active={self.active}>'


class SubscriptionRegistry:
    """Tracks live subscriptions and fans out snapshots per organization"""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def add(self, org_id, callback, asset_type=None, on_error=None) -> Subscription:
        subscription = Subscription(self, org_id, callback, asset_type=asset_type, on_error=on_error)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(f"Subscription added: {subscription!r}")
        return subscription

    def remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        logger.debug(f"Subscription removed: {subscription!r}")

    def for_org(self, org_id: str) -> List[Subscription]:
        with self._lock:
            return [s for s in self._subscriptions if s.org_id == org_id and s.active]

    def publish(self, org_ids: Iterable[str], loader: Loader) -> None:
        """Re-deliver the current result set to every subscriber of the given orgs"""
        for org_id in sorted(set(org_ids)):
            subscriptions = self.for_org(org_id)
            if not subscriptions:
                continue
            # One query per distinct filter, shared across subscribers
            cache = {}
            for subscription in subscriptions:
                if subscription.asset_type not in cache:
                    cache[subscription.asset_type] = loader(org_id, subscription.asset_type)
                subscription.deliver(cache[subscription.asset_type])

    def __len__(self):
        with self._lock:
            return len(self._subscriptions)
