"""Rebuild one output string per original text from batch results."""

from __future__ import annotations

from typing import List, Sequence

from .errors import UpstreamContractViolation
from .structures import Batch, BatchResult, OriginAccumulator


def reassemble(
    batches: Sequence[Batch],
    batch_results: Sequence[BatchResult],
    original_count: int,
) -> List[str]:
    """Join translated pieces back together by origin index.

    Originals that produced no items (empty strings) come back as ``""``.
    """

    if len(batches) != len(batch_results):
        raise ValueError(
            f"Expected {len(batches)} batch results, got {len(batch_results)}."
        )

    accumulator = OriginAccumulator()
    for batch, result in zip(batches, batch_results):
        if len(result) != len(batch.items):
            raise UpstreamContractViolation(
                batch_id=batch.batch_id,
                expected=len(batch.items),
                received=len(result),
            )
        for item, translated in zip(batch.items, result):
            accumulator.append(item.origin_index, translated)

    return [accumulator.join(index) for index in range(original_count)]
