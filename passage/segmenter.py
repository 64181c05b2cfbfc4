"""Text splitting and batching utilities."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .structures import Batch, InputItem

# Checked in this order; a later marker only wins with a strictly larger index.
BOUNDARY_MARKERS: Tuple[str, ...] = (". ", "! ", "? ", "\n", " ")


def _find_cut(window: str) -> int:
    """Return the cut offset inside ``window``, boundary characters included."""

    best_index = -1
    best_length = 0
    for marker in BOUNDARY_MARKERS:
        index = window.rfind(marker)
        if index > best_index:
            best_index = index
            best_length = len(marker)
    if best_index < 0:
        return len(window)
    return best_index + best_length


def split_text(text: str, max_len: int) -> List[str]:
    """Split text into pieces of at most ``max_len`` characters.

    Pieces end just after the right-most sentence end, newline or space in
    each window, falling back to a hard cut. Joining the pieces gives back
    ``text`` unchanged.
    """

    if max_len < 1:
        raise ValueError("max_len must be at least 1")
    if len(text) <= max_len:
        return [text]

    pieces: List[str] = []
    cursor = 0
    length = len(text)
    while cursor < length:
        if length - cursor <= max_len:
            pieces.append(text[cursor:])
            break
        window = text[cursor:cursor + max_len]
        cut = _find_cut(window)
        pieces.append(window[:cut])
        cursor += cut
    return pieces


class Segmenter:
    """Turns original texts into size-bounded items tagged by origin index."""

    def __init__(self, budget: int) -> None:
        self.budget = max(1, budget)

    def segment(self, texts: Sequence[Optional[str]]) -> List[InputItem]:
        items: List[InputItem] = []
        for origin_index, text in enumerate(texts):
            if not text:
                continue
            for piece in split_text(text, self.budget):
                items.append(InputItem(origin_index=origin_index, text=piece))
        return items


class BatchBuilder:
    """Aggregates items into batches within a character budget."""

    def __init__(self, budget: int) -> None:
        self.budget = max(1, budget)

    def build(self, items: Sequence[InputItem]) -> List[Batch]:
        batches: List[Batch] = []
        batch_items: List[InputItem] = []
        running_total = 0

        for item in items:
            size = len(item.text)
            if batch_items and running_total + size > self.budget:
                batches.append(Batch(batch_id=len(batches) + 1, items=batch_items))
                batch_items = []
                running_total = 0

            batch_items.append(item)
            running_total += size

        if batch_items:
            batches.append(Batch(batch_id=len(batches) + 1, items=batch_items))

        return batches
