"""Typed failures raised by the extraction, search and request layers."""

from __future__ import annotations

from typing import Any


class TrialScribeError(Exception):
    status_code: int = 500
    code: str = "error"
    default_message: str = "An error occurred while processing the request."

    def __init__(self, message: str | None = None, *, details: Any | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidInput(TrialScribeError):
    status_code = 400
    code = "invalid_input"
    default_message = "Transcript is required"


class ExtractionFailed(TrialScribeError):
    """
    The language model produced no usable patient record.

    ``upstream=True`` marks provider-side failures (transport, timeout,
    missing credentials); those are server errors rather than client errors.
    """

    code = "extraction_failed"
    default_message = "Failed to extract condition from transcript."

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream: bool = False,
        details: Any | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.upstream = upstream
        self.status_code = 500 if upstream else 400


class SearchFailed(TrialScribeError):
    code = "search_failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_status: int | None = None,
        upstream_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class UnexpectedFailure(TrialScribeError):
    code = "unexpected_failure"
