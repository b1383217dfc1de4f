"""Shared service helpers for quote result envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from tracker_server.providers.http import ProviderError

T = TypeVar("T")
RETRIABLE_CODES = {"NETWORK"}


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    retriable: bool = True
    provider: str | None = None


@dataclass
class ServiceResult(Generic[T]):
    data: T | None
    source: str | None = None
    error: ErrorEnvelope | None = None
    fetched_at: float | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None


def envelope_from_provider_error(error: ProviderError) -> ErrorEnvelope:
    return ErrorEnvelope(
        code=error.code,
        message=error.message,
        retriable=error.code in RETRIABLE_CODES,
        provider=error.provider,
    )


def envelope_from_unexpected(error: BaseException) -> ErrorEnvelope:
    return ErrorEnvelope(
        code="UNKNOWN",
        message=f"Unexpected {type(error).__name__} while fetching quote.",
        retriable=False,
        provider="unknown",
    )
