"""
Search keyword derivation.

Asset.search_keywords is a denormalized cache of lowercase tokens. It is
recomputed from the canonical fields at every write that touches one of them.
"""

from typing import Any, Dict, List, Optional


def generate_search_keywords(name: Optional[str], qr_code: Optional[str] = None, meta_data: Optional[Dict[str, Any]] = None) -> List[str]:
    """
    Build the keyword list for an asset.

    Contains every lowercase word of the name, the full lowercase name, the
    lowercase QR code and every string metadata value lowercased.

    Example:
        >>> generate_search_keywords("Front Door", "QR-9", {"keyCode": "A1", "isMasterSystem": True})
        ['a1', 'door', 'front', 'front door', 'qr-9']
    """
    terms = set()

    if name:
        lowered = name.lower()
        terms.update(word for word in lowered.split() if word)
        terms.add(lowered.strip())

    if qr_code:
        terms.add(qr_code.lower())

    for value in (meta_data or {}).values():
        if isinstance(value, str) and value.strip():
            terms.add(value.lower())

    terms.discard('')
    return sorted(terms)
