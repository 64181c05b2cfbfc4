"""Error definitions for the Passage translation pipeline."""

from __future__ import annotations

from typing import Optional


class PassageError(Exception):
    """Base exception for all custom errors."""

    status: int = 500


class InvalidInput(PassageError):
    """Raised when a request is not a usable list of texts plus a language."""

    status = 400


class InputTooLarge(InvalidInput):
    """Raised when the combined input exceeds the configured ceiling."""

    status = 413

    def __init__(self, *, limit: int, total: int) -> None:
        super().__init__(
            f"Total input too large: {total} characters (limit {limit})."
        )
        self.limit = limit
        self.total = total


class UpstreamContractViolation(PassageError):
    """Raised when a batch result does not line up with its batch."""

    status = 502

    def __init__(self, *, batch_id: int, expected: int, received: int) -> None:
        super().__init__(
            f"Translation count mismatch in batch {batch_id}: "
            f"sent {expected} texts, received {received}."
        )
        self.batch_id = batch_id
        self.expected = expected
        self.received = received


class UpstreamCallFailure(PassageError):
    """Raised when the translation service errors, times out, or refuses."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        retry_after: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = status
        self.retry_after = retry_after
        # Transport failures carry no upstream status of their own.
        self.status = status or 500


class TranslationProviderConfigurationError(PassageError):
    """Raised when the translation provider is misconfigured."""
