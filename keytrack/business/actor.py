from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Actor:
    """The person performing an operation (identity is resolved outside this package)"""
    id: Optional[str]
    name: str

    @property
    def label(self) -> str:
        return self.name or self.id or "Unknown"
