from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

import pytest

from passage.errors import UpstreamCallFailure
from passage.providers import TranslationProvider


class RecordingProvider(TranslationProvider):
    """Applies ``transform`` to every text and remembers each call."""

    name = "recording"

    def __init__(
        self,
        transform: Callable[[str], str] = lambda text: text,
        *,
        fail_on_call: Optional[int] = None,
        short_on_call: Optional[int] = None,
    ) -> None:
        self.transform = transform
        self.fail_on_call = fail_on_call
        self.short_on_call = short_on_call
        self.calls: List[Tuple[List[str], str]] = []

    def translate(self, texts: Sequence[str], *, target_language: str) -> List[str]:
        self.calls.append((list(texts), target_language))
        call_number = len(self.calls)
        if call_number == self.fail_on_call:
            raise UpstreamCallFailure("Too many requests", status=429, retry_after="5")
        translated = [self.transform(text) for text in texts]
        if call_number == self.short_on_call:
            translated = translated[:-1]
        return translated


@pytest.fixture
def recording_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def sleeps() -> List[float]:
    return []
