"""Sequential dispatch of batches to a translation provider."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Sequence

from .errors import PassageError, UpstreamCallFailure, UpstreamContractViolation
from .providers import TranslationProvider
from .structures import Batch, BatchResult

logger = logging.getLogger(__name__)


class BatchDispatcher:
    """Sends batches one at a time, pausing between calls when asked to.

    Batches are never sent concurrently: the pause is a static throttle for
    the upstream rate limit. The first failure aborts the whole dispatch.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        inter_batch_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.inter_batch_delay = max(0.0, inter_batch_delay)
        self.sleep = sleep
        self.calls = 0

    def dispatch_all(
        self,
        batches: Sequence[Batch],
        target_language: str,
    ) -> List[BatchResult]:
        results: List[BatchResult] = []
        for position, batch in enumerate(batches):
            if position and self.inter_batch_delay > 0:
                self.sleep(self.inter_batch_delay)
            results.append(self._dispatch(batch, target_language))
        return results

    def _dispatch(self, batch: Batch, target_language: str) -> BatchResult:
        self.calls += 1
        try:
            translated = list(
                self.provider.translate(batch.texts, target_language=target_language)
            )
        except PassageError:
            raise
        except Exception as exc:
            raise UpstreamCallFailure(
                f"Translation service call failed in batch {batch.batch_id}: {exc}",
                status=getattr(exc, "status_code", None),
            ) from exc
        if len(translated) != len(batch.items):
            raise UpstreamContractViolation(
                batch_id=batch.batch_id,
                expected=len(batch.items),
                received=len(translated),
            )
        logger.debug(
            "Processed batch %s (%s items, %s chars).",
            batch.batch_id,
            len(batch.items),
            batch.char_count,
        )
        return translated
