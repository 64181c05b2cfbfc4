"""High-level orchestration of the split, batch, dispatch, reassemble run."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from .dispatcher import BatchDispatcher
from .errors import InputTooLarge, InvalidInput, PassageError
from .providers import TranslationProvider
from .reassembler import reassemble
from .segmenter import BatchBuilder, Segmenter

logger = logging.getLogger(__name__)

DEFAULT_MAX_CALL_CHARS = 50000


@dataclass
class TranslationSummary:
    """Report returned after processing a request."""

    total_texts: int
    total_items: int
    total_batches: int
    upstream_calls: int
    total_chars: int
    provider_name: str
    target_language: str
    elapsed_seconds: float


@dataclass
class TranslationOutcome:
    translations: List[str]
    summary: TranslationSummary


def validate_request(
    texts: Any,
    target_language: Any,
    *,
    max_total_chars: int = 0,
) -> List[str]:
    """Check the request shape and return the texts with ``None`` as ``""``."""

    if isinstance(texts, (str, bytes)) or not isinstance(texts, (list, tuple)):
        raise InvalidInput("texts must be a non-empty array")
    if not texts:
        raise InvalidInput("texts must be a non-empty array")
    normalised: List[str] = []
    for position, text in enumerate(texts):
        if text is None:
            normalised.append("")
        elif isinstance(text, str):
            normalised.append(text)
        else:
            raise InvalidInput(
                f"texts[{position}] must be a string, got {type(text).__name__}"
            )

    if not isinstance(target_language, str) or not target_language.strip():
        raise InvalidInput("targetLang is required")

    total = sum(len(text) for text in normalised)
    if max_total_chars > 0 and total > max_total_chars:
        raise InputTooLarge(limit=max_total_chars, total=total)
    return normalised


class TranslationPipeline:
    """Translates a list of texts while keeping every upstream call in budget.

    Each call to :meth:`run` builds its own items, batches and dispatcher, so
    one pipeline may serve several requests at once.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        max_call_chars: int = DEFAULT_MAX_CALL_CHARS,
        inter_batch_delay: float = 0.0,
        max_total_chars: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.max_call_chars = max(1, max_call_chars)
        self.inter_batch_delay = inter_batch_delay
        self.max_total_chars = max_total_chars
        self.sleep = sleep

    def translate(
        self,
        texts: Sequence[Optional[str]],
        target_language: str,
    ) -> List[str]:
        return self.run(texts, target_language).translations

    def run(
        self,
        texts: Sequence[Optional[str]],
        target_language: str,
    ) -> TranslationOutcome:
        start_time = time.monotonic()
        originals = validate_request(
            texts,
            target_language,
            max_total_chars=self.max_total_chars,
        )
        total_chars = sum(len(text) for text in originals)

        items = Segmenter(self.max_call_chars).segment(originals)
        batches = BatchBuilder(self.max_call_chars).build(items)
        dispatcher = BatchDispatcher(
            self.provider,
            inter_batch_delay=self.inter_batch_delay,
            sleep=self.sleep,
        )

        try:
            results = dispatcher.dispatch_all(batches, target_language)
            translations = reassemble(batches, results, len(originals))
        except PassageError as exc:
            logger.warning(
                "[ERR] status=%s msg=%r calls=%s ms=%d",
                exc.status,
                str(exc),
                dispatcher.calls,
                (time.monotonic() - start_time) * 1000,
            )
            raise

        elapsed = time.monotonic() - start_time
        summary = TranslationSummary(
            total_texts=len(originals),
            total_items=len(items),
            total_batches=len(batches),
            upstream_calls=dispatcher.calls,
            total_chars=total_chars,
            provider_name=self.provider.name,
            target_language=target_language,
            elapsed_seconds=elapsed,
        )
        logger.info(
            "[OK] texts=%s chars=%s items=%s batches=%s calls=%s ms=%d",
            summary.total_texts,
            summary.total_chars,
            summary.total_items,
            summary.total_batches,
            summary.upstream_calls,
            elapsed * 1000,
        )
        return TranslationOutcome(translations=translations, summary=summary)
