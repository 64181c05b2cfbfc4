from __future__ import annotations

import pytest

from passage.dispatcher import BatchDispatcher
from passage.errors import UpstreamCallFailure, UpstreamContractViolation
from passage.structures import Batch, InputItem

from .conftest import RecordingProvider


def _batches() -> list[Batch]:
    return [
        Batch(batch_id=1, items=[InputItem(0, "one "), InputItem(0, "two")]),
        Batch(batch_id=2, items=[InputItem(1, "three")]),
        Batch(batch_id=3, items=[InputItem(2, "four")]),
    ]


def test_dispatches_every_batch_in_order() -> None:
    provider = RecordingProvider(str.upper)
    dispatcher = BatchDispatcher(provider)

    results = dispatcher.dispatch_all(_batches(), "de")

    assert results == [["ONE ", "TWO"], ["THREE"], ["FOUR"]]
    assert provider.calls == [(["one ", "two"], "de"), (["three"], "de"), (["four"], "de")]
    assert dispatcher.calls == 3


def test_pauses_only_between_batches(sleeps: list[float]) -> None:
    dispatcher = BatchDispatcher(
        RecordingProvider(),
        inter_batch_delay=0.25,
        sleep=sleeps.append,
    )

    dispatcher.dispatch_all(_batches(), "fr")

    assert sleeps == [0.25, 0.25]


def test_zero_delay_never_sleeps(sleeps: list[float]) -> None:
    BatchDispatcher(RecordingProvider(), sleep=sleeps.append).dispatch_all(_batches(), "fr")

    assert sleeps == []


def test_count_mismatch_aborts_the_dispatch() -> None:
    provider = RecordingProvider(short_on_call=2)
    dispatcher = BatchDispatcher(provider)

    with pytest.raises(UpstreamContractViolation) as excinfo:
        dispatcher.dispatch_all(_batches(), "nl")

    assert excinfo.value.batch_id == 2
    assert excinfo.value.expected == 1
    assert excinfo.value.received == 0
    assert len(provider.calls) == 2


def test_upstream_failure_stops_without_retry(sleeps: list[float]) -> None:
    provider = RecordingProvider(fail_on_call=1)
    dispatcher = BatchDispatcher(provider, inter_batch_delay=1.0, sleep=sleeps.append)

    with pytest.raises(UpstreamCallFailure) as excinfo:
        dispatcher.dispatch_all(_batches(), "nl")

    assert excinfo.value.status == 429
    assert excinfo.value.retry_after == "5"
    assert len(provider.calls) == 1
    assert sleeps == []


class _BrokenProvider(RecordingProvider):
    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    def translate(self, texts, *, target_language):  # type: ignore[override]
        self.calls.append((list(texts), target_language))
        raise self.error


def test_foreign_provider_errors_become_upstream_failures() -> None:
    provider = _BrokenProvider(ConnectionError("socket reset"))
    dispatcher = BatchDispatcher(provider)

    with pytest.raises(UpstreamCallFailure) as excinfo:
        dispatcher.dispatch_all(_batches(), "de")

    error = excinfo.value
    assert "socket reset" in str(error)
    assert "batch 1" in str(error)
    assert isinstance(error.__cause__, ConnectionError)
    assert error.upstream_status is None
    assert error.status == 500
    assert len(provider.calls) == 1


def test_status_code_of_foreign_errors_is_kept() -> None:
    class RateLimited(Exception):
        status_code = 429

    with pytest.raises(UpstreamCallFailure) as excinfo:
        BatchDispatcher(_BrokenProvider(RateLimited("slow down"))).dispatch_all(_batches(), "de")

    assert excinfo.value.status == 429
