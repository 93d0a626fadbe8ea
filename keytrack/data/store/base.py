"""Base asset store interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from keytrack.data.core.asset_info.asset_snapshot import AssetSnapshot


MAX_BATCH_SIZE = 500


@dataclass
class BatchResult:
    """Outcome of a chunked bulk write"""
    requested: int = 0
    succeeded: int = 0
    batches_committed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.requested - self.succeeded

    def to_dict(self) -> Dict[str, Any]:
        return {
            'requested': self.requested,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'batchesCommitted': self.batches_committed,
            'errors': list(self.errors),
        }


class AssetStore(ABC):
    """Base class for asset stores.

    A store owns a single polymorphic "asset" collection scoped by organization,
    plus the append-only log and audit collections written alongside it.
    Every write accepts documents sanitized with sanitize_document().
    """

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Unit of work. Nested use joins the outer unit.

        Raises:
            ConcurrentModificationError: If a guarded row changed underneath us
            StoreError: If the underlying store fails
        """
        yield

    @abstractmethod
    def subscribe(
        self,
        org_id: str,
        callback: Callable[[List[AssetSnapshot]], None],
        asset_type: Optional[str] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        """Push the full matching result set now and after every change.

        Returns:
            Subscription handle with unsubscribe()
        """
        pass

    @abstractmethod
    def get(self, asset_id: str) -> Optional[AssetSnapshot]:
        """Fetch one asset, or None when it does not exist"""
        pass

    @abstractmethod
    def list(
        self,
        org_id: str,
        asset_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[AssetSnapshot]:
        """List an organization's assets, optionally filtered"""
        pass

    @abstractmethod
    def create(self, org_id: str, data: Dict[str, Any]) -> str:
        """Create an asset and return its generated id"""
        pass

    @abstractmethod
    def update(
        self,
        asset_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[Iterable[str]] = None,
    ) -> AssetSnapshot:
        """Merge fields into an asset.

        Keys of the form "meta_data.<key>" update a single metadata entry
        without touching its siblings.

        Args:
            asset_id: Target asset
            fields: Column names and dotted metadata paths to set
            expected_status: When given, only write if the stored status is one of these

        Raises:
            NotFoundError: If the asset does not exist
            InvalidStateError: If expected_status does not match
        """
        pass

    @abstractmethod
    def delete(self, asset_id: str) -> bool:
        """Hard delete one asset; False if it did not exist"""
        pass

    @abstractmethod
    def batch_delete(self, asset_ids: List[str], max_batch_size: Optional[int] = None) -> BatchResult:
        """Delete many assets in sequential atomic chunks of at most max_batch_size (never above MAX_BATCH_SIZE)"""
        pass

    def delete_all(self, org_id: str, max_batch_size: Optional[int] = None) -> BatchResult:
        """Delete every asset of an organization. Irreversible."""
        asset_ids = [asset.id for asset in self.list(org_id)]
        return self.batch_delete(asset_ids, max_batch_size=max_batch_size)

    @abstractmethod
    def add_log_entry(
        self,
        org_id: str,
        asset_id: str,
        asset_name: Optional[str],
        action: str,
        actor_id: Optional[str],
        actor_name: Optional[str],
        notes: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """Append a log entry"""
        pass

    @abstractmethod
    def list_log_entries(self, org_id: str, asset_id: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Log entries newest first"""
        pass

    @abstractmethod
    def create_audit_record(self, org_id: str, date: datetime, performed_by: str, missing_keys: List[str]) -> str:
        """Persist an immutable audit record"""
        pass

    @abstractmethod
    def list_audit_records(self, org_id: str) -> List[Dict[str, Any]]:
        """Audit records newest first"""
        pass
