"""
AssetNarrator - Log note composer for asset lifecycle events

Every transition writes its log entry notes through here so the wording stays
consistent between the engine, bulk operations and the audit.
"""

from typing import Iterable, Optional


class AssetNarrator:
    """Composes the `notes` text of log entries"""

    @staticmethod
    def created(asset_type: str) -> str:
        return f"Created {asset_type.replace('_', ' ').lower()}"

    @staticmethod
    def handed_to(recipient: str, notes: Optional[str] = None) -> str:
        """Comment for checkout"""
        comment = f"Handed to: {recipient}."
        if notes and notes.strip():
            comment += f" {notes.strip()}"
        return comment

    @staticmethod
    def returned(previous_holder: Optional[str], notes: Optional[str] = None) -> str:
        comment = f"Returned by: {previous_holder}." if previous_holder else "Returned to stock."
        if notes and notes.strip():
            comment += f" {notes.strip()}"
        return comment

    @staticmethod
    def reported_missing(reason: str, last_holder: Optional[str] = None) -> str:
        comment = f"Reported missing: {reason.strip()}"
        if last_holder:
            comment += f" | Last holder: {last_holder}"
        return comment

    @staticmethod
    def status_changed(from_status: str, to_status: str, reason: Optional[str] = None) -> str:
        """Comment for transitions outside the checkout cycle"""
        comment = f"Status changed: {from_status} → {to_status}"
        if reason:
            comment += f" | Reason: {reason}"
        return comment

    @staticmethod
    def fields_updated(field_names: Iterable[str]) -> str:
        names = sorted(field_names)
        if not names:
            return "No changes"
        return f"Updated: {', '.join(names)}"

    @staticmethod
    def deleted(status: str) -> str:
        return f"Deleted while {status}"

    @staticmethod
    def retyped(from_type: str, to_type: str) -> str:
        return f"Type changed: {from_type} → {to_type}"
