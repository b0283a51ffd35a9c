"""Domain errors and the Result envelope returned by service operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar
from uuid import UUID

T = TypeVar("T")


class SitepressError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(SitepressError):
    """The request cannot be satisfied with the current data."""

    code = "validation_error"


class NoRevisionsError(ValidationError):
    code = "no_revisions"

    def __init__(self, message: str = "No pages with revisions found for this website") -> None:
        super().__init__(message)


class NotFoundError(SitepressError):
    code = "not_found"


class PartialWriteError(SitepressError):
    """A write completed only in part, e.g. snapshot pages that no longer exist were skipped."""

    code = "partial_write"

    def __init__(self, message: str, missing_ids: list[UUID] | None = None) -> None:
        super().__init__(message)
        self.missing_ids = missing_ids or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["missing_ids"] = [str(i) for i in self.missing_ids]
        return data


class ProviderError(SitepressError):
    """A hosting provider API call failed."""

    code = "provider_error"

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class PollTimeoutExhaustion(SitepressError):
    code = "poll_timeout"

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Timed out waiting for deployment after {attempts} status checks")
        self.attempts = attempts


@dataclass
class Result(Generic[T]):
    """Outcome of a service operation.

    ``ok`` results carry ``value`` and possibly non-fatal ``warnings``; failed
    results carry ``error`` and no value.
    """

    value: T | None = None
    error: SitepressError | None = None
    warnings: list[SitepressError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, warnings: list[SitepressError] | None = None) -> Result[T]:
        return cls(value=value, warnings=warnings or [])

    @classmethod
    def failure(cls, error: SitepressError) -> Result[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
