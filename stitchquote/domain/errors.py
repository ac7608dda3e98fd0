# stitchquote/domain/errors.py
from __future__ import annotations

from typing import Optional


class StitchQuoteError(Exception):
    """Base class for every error the service raises on purpose."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.detail:
            body["detail"] = self.detail
        return body


class QuoteValidationError(StitchQuoteError):
    status_code = 400
    code = "validation_error"


class InvalidInput(QuoteValidationError):
    code = "invalid_input"


class UpstreamUnavailable(StitchQuoteError):
    """An AI / email / storage service failed or timed out."""

    status_code = 502
    code = "upstream_unavailable"


class GenerationFailed(UpstreamUnavailable):
    """The image service returned no usable image; the quote stays valid."""

    code = "generation_failed"

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryable"] = True
        return body


class QuoteNotFound(StitchQuoteError):
    status_code = 404
    code = "not_found"


class QuoteFetchFailed(StitchQuoteError):
    """The record store raised while reading; `detail` carries the driver error."""

    status_code = 503
    code = "fetch_failed"


class QuotePersistenceError(StitchQuoteError):
    status_code = 503
    code = "persistence_failed"


class AdminAuthError(StitchQuoteError):
    status_code = 401
    code = "unauthorized"


class AdminMisconfigured(StitchQuoteError):
    status_code = 500
    code = "admin_misconfigured"
