"""
Document Sanitizer Utility

Normalizes values before they are written to the asset store.
The JSON columns behind the store reject values that have no JSON form, so every
write is passed through sanitize_document() first.
"""

from datetime import date, datetime
from typing import Any

from keytrack.utils.clock import to_iso


class _Unset:
    """Marker for "field deliberately left without a value" in partial writes"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'UNSET'

    def __bool__(self):
        return False


UNSET = _Unset()


def sanitize_document(data: Any) -> Any:
    """
    Recursively convert a document into values the store accepts.

    - UNSET becomes None (stored as null)
    - dict keys become strings
    - tuples, sets and frozensets become lists
    - datetimes and dates become ISO-8601 strings

    Example:
        >>> sanitize_document({'a': UNSET, 'tags': ('x',)})
        {'a': None, 'tags': ['x']}
    """
    if data is None or data is UNSET:
        return None
    if isinstance(data, dict):
        return {str(key): sanitize_document(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [sanitize_document(value) for value in data]
    if isinstance(data, (set, frozenset)):
        return sorted((sanitize_document(value) for value in data), key=str)
    if isinstance(data, datetime):
        return to_iso(data)
    if isinstance(data, date):
        return data.isoformat()
    return data
