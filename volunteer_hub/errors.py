"""Error taxonomy shared by the filter engine, record services and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass

UNIQUE_VIOLATION = "23505"


class InputValidationError(ValueError):
    """Raised when caller input is rejected before any store access."""


class FilterValidationError(InputValidationError):
    """Raised when a filter clause list or global operator is malformed."""


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure (`field` uses dotted paths, e.g. `role.type`)."""

    field: str
    message: str


class RecordValidationError(InputValidationError):
    """Raised when a create/update payload fails validation.

    Carries every field error found, not only the first one.
    """

    def __init__(self, message: str, errors: list[FieldError] | None = None) -> None:
        super().__init__(message)
        self.errors: list[FieldError] = list(errors or [])


class NotFoundError(LookupError):
    """Raised when a referenced volunteer, role or cohort does not exist."""


class MissingReferenceError(NotFoundError):
    """Raised when a role or cohort named in a write payload does not exist.

    Unlike a missing target record, this is a problem with the request body.
    """


class StoreError(RuntimeError):
    """Raised for any failure reported by the relation store.

    `code` is the Postgres SQLSTATE when one is available.
    """

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION


class DuplicateVolunteerError(StoreError):
    """Raised when volunteer creation hits a unique constraint."""
