"""
State machine for asset status transitions

Encodes valid transitions only. Persisting a transition is the
AssetLifecycleManager's job.
"""

from typing import Dict, Set

from keytrack.business.errors import InvalidStateError
from keytrack.data.core.asset_info.constants import AssetStatus


class AssetStateMachine:
    """
    State machine for Asset.status.

    Unlike a workflow that tolerates no-ops, staying in the same state is rejected:
    checking out an asset that is already CHECKED_OUT must fail.
    """

    AVAILABLE = AssetStatus.AVAILABLE
    CHECKED_OUT = AssetStatus.CHECKED_OUT
    MISSING = AssetStatus.MISSING
    MAINTENANCE = AssetStatus.MAINTENANCE
    RETIRED = AssetStatus.RETIRED

    TERMINAL_STATES = {RETIRED}

    # Valid transitions: from_status -> set of allowed to_status values
    TRANSITIONS: Dict[str, Set[str]] = {
        AVAILABLE: {CHECKED_OUT, MAINTENANCE, RETIRED},
        CHECKED_OUT: {AVAILABLE, MISSING},
        MISSING: {AVAILABLE, RETIRED},  # Found and returned, or written off
        MAINTENANCE: {AVAILABLE, RETIRED},
        # RETIRED is terminal
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if transition is valid.

        Args:
            from_status: Current status
            to_status: Target status

        Returns:
            bool: True if transition is allowed
        """
        if from_status == to_status:
            return False
        if from_status in cls.TERMINAL_STATES:
            return False
        return to_status in cls.TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """
        Raises:
            InvalidStateError: If transition is not allowed
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateError(f"Invalid status transition: {from_status} → {to_status}")

    @classmethod
    def sources_for(cls, to_status: str) -> Set[str]:
        """Every status from which to_status can be reached"""
        return {
            from_status for from_status, targets in cls.TRANSITIONS.items()
            if to_status in targets and from_status not in cls.TERMINAL_STATES
        }

    @classmethod
    def get_allowed_transitions(cls, from_status: str) -> Set[str]:
        """Get set of allowed target statuses from current status"""
        if from_status in cls.TERMINAL_STATES:
            return set()
        return set(cls.TRANSITIONS.get(from_status, set()))
