"""Core data structures for the Passage pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


BatchResult = List[str]


@dataclass(frozen=True)
class InputItem:
    """A contiguous piece of one original text, tagged with its position."""

    origin_index: int
    text: str


@dataclass
class Batch:
    """A non-empty run of items sent together in one upstream call."""

    batch_id: int
    items: List[InputItem]

    @property
    def texts(self) -> List[str]:
        return [item.text for item in self.items]

    @property
    def char_count(self) -> int:
        return sum(len(item.text) for item in self.items)


@dataclass
class OriginAccumulator:
    """Ordered multimap from origin index to translated pieces.

    Pieces are kept in the order they were appended, which must be the order
    the splitter produced them; ``join`` concatenates without a separator.
    """

    _pieces: Dict[int, List[str]] = field(default_factory=dict)

    def append(self, origin_index: int, text: str) -> None:
        self._pieces.setdefault(origin_index, []).append(text)

    def pieces(self, origin_index: int) -> List[str]:
        return list(self._pieces.get(origin_index, []))

    def join(self, origin_index: int) -> str:
        return "".join(self._pieces.get(origin_index, []))

    def __contains__(self, origin_index: object) -> bool:
        return origin_index in self._pieces

    def __len__(self) -> int:
        return len(self._pieces)
