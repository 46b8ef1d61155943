"""
Chunk references

A sub-booking points at its parent chunk either by id alone or with the
chunk record already loaded. Both shapes are modelled explicitly, and
``chunk_id`` is the one accessor callers use, whichever shape they hold.
"""

from dataclasses import dataclass
from typing import Any, Callable, Union


@dataclass(frozen=True)
class Unresolved:
    """Reference by identifier only"""
    id: int

    @property
    def chunk_id(self) -> int:
        return self.id

    @property
    def record(self) -> None:
        return None

    def resolve(self, loader: Callable[[int], Any]) -> 'Resolved':
        return Resolved(loader(self.id))

    def to_representation(self, serialize: Callable[[Any], dict]) -> int:
        return self.id


@dataclass(frozen=True)
class Resolved:
    """Reference with the chunk record at hand"""
    record: Any

    @property
    def chunk_id(self) -> int:
        return self.record.pk

    def resolve(self, loader: Callable[[int], Any]) -> 'Resolved':
        return self

    def to_representation(self, serialize: Callable[[Any], dict]) -> dict:
        return serialize(self.record)


ChunkRef = Union[Unresolved, Resolved]
