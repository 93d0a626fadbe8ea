"""
FuzzyIndex - in-memory approximate matcher over a fixed item list

Built with rapidfuzz. A score of 1.0 is an exact match; an item matches a
query when 1 - score <= threshold.
"""

from typing import Any, Callable, Dict, Generic, Iterable, List, Tuple, TypeVar

from rapidfuzz import fuzz

T = TypeVar('T')

FieldGetter = Callable[[Any], Any]

DEFAULT_THRESHOLD = 0.3


def similarity(query: str, value: Any) -> float:
    """
    Similarity in [0, 1] between a lowercase query and one field value.

    Long values are compared by their best-matching substring so a short query
    can still hit inside a long name.
    """
    if value is None:
        return 0.0
    if isinstance(value, (list, tuple, set, frozenset)):
        return max((similarity(query, element) for element in value), default=0.0)

    text = str(value).lower()
    if not text:
        return 0.0
    if len(text) >= len(query):
        return fuzz.partial_ratio(query, text) / 100.0
    return fuzz.ratio(query, text) / 100.0


class FuzzyIndex(Generic[T]):
    """
    Approximate search over a snapshot of items.

    Args:
        items: Items to index; the index never mutates them
        fields: Field name -> getter returning a str, a list of str, or None
        threshold: Maximum accepted distance (1 - similarity)
    """

    def __init__(self, items: Iterable[T], fields: Dict[str, FieldGetter], threshold: float = DEFAULT_THRESHOLD):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be between 0 and 1, got {threshold}")
        self.items: List[T] = list(items)
        self.fields = dict(fields)
        self.threshold = threshold
        # Field values are extracted once per index build
        self._values: List[Tuple[Any, ...]] = [
            tuple(getter(item) for getter in self.fields.values()) for item in self.items
        ]

    def __len__(self):
        return len(self.items)

    def score(self, query: str, position: int) -> float:
        return max((similarity(query, value) for value in self._values[position]), default=0.0)

    def search_with_scores(self, query: str) -> List[Tuple[T, float]]:
        """Matches ranked by score, highest first; ties keep index order"""
        query = (query or '').strip().lower()
        if not query:
            return [(item, 1.0) for item in self.items]

        matches = []
        for position, item in enumerate(self.items):
            score = self.score(query, position)
            if round(1.0 - score, 6) <= self.threshold:
                matches.append((item, score))
        # sorted() is stable, so equal scores keep collection order
        return sorted(matches, key=lambda match: match[1], reverse=True)

    def search(self, query: str) -> List[T]:
        return [item for item, _ in self.search_with_scores(query)]
