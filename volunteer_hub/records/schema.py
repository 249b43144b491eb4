"""Record schemas (Pydantic models) for volunteers, roles and cohorts.

These models are the contract between HTTP payloads and the record services: every enum-valued
field is checked against its closed set here, before anything reaches the store.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from volunteer_hub.errors import FieldError, RecordValidationError

M = TypeVar("M", bound=BaseModel)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Position(StrEnum):
    """Volunteer position."""

    member = "member"
    volunteer = "volunteer"
    staff = "staff"


class RoleType(StrEnum):
    """How a role relates to the volunteer's timeline."""

    prior = "prior"
    current = "current"
    future_interest = "future_interest"


class CohortTerm(StrEnum):
    """Academic term of a cohort. Stored in title case."""

    Fall = "Fall"
    Spring = "Spring"
    Summer = "Summer"
    Winter = "Winter"

    @classmethod
    def parse(cls, value: str) -> CohortTerm:
        """Parse a term case-insensitively (`"fall"`, `"FALL"` -> `CohortTerm.Fall`)."""

        try:
            return cls(value.strip().title())
        except ValueError as exc:
            allowed = ", ".join(t.value for t in cls)
            raise ValueError(f"term must be one of: {allowed}") from exc


MIN_COHORT_YEAR = 1900
MAX_COHORT_YEAR = 2100


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_email(value: str | None) -> str | None:
    if value is not None and not _EMAIL_RE.fullmatch(value):
        raise ValueError("Email must be a valid email address")
    return value


def _canonical_term(value: Any) -> Any:
    if isinstance(value, str):
        return CohortTerm.parse(value)
    return value


class RoleKey(BaseModel):
    """Natural key of a role."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1)
    type: RoleType


class CohortKey(BaseModel):
    """Natural key of a cohort."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    year: int = Field(ge=MIN_COHORT_YEAR, le=MAX_COHORT_YEAR, strict=True)
    term: CohortTerm

    @field_validator("term", mode="before")
    @classmethod
    def normalize_term(cls, value: Any) -> Any:
        return _canonical_term(value)

    @property
    def label(self) -> str:
        return f"{self.term.value} {self.year}"


class VolunteerCreate(BaseModel):
    """Payload for inserting a volunteer. `id` and timestamps are store-assigned."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name_org: str = Field(min_length=1)
    pseudonym: str | None = None
    pronouns: str | None = None
    email: str | None = None
    phone: str | None = None
    position: Position | None = None
    opt_in_communication: bool = Field(default=True, strict=True)
    notes: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value: Any) -> Any:
        """Blank emails are stored as NULL."""

        return _blank_to_none(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return _check_email(value)


class VolunteerCreateRequest(BaseModel):
    """A volunteer with the role and cohort it is created into."""

    model_config = ConfigDict(extra="forbid")

    volunteer: VolunteerCreate
    role: RoleKey
    cohort: CohortKey


class VolunteerUpdate(BaseModel):
    """Partial volunteer update. Only explicitly provided fields are written."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name_org: str | None = None
    email: str | None = None
    phone: str | None = None
    pronouns: str | None = None
    pseudonym: str | None = None
    position: Position | None = None
    notes: str | None = None
    opt_in_communication: bool | None = Field(default=None, strict=True)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return _check_email(value)

    @field_validator("name_org")
    @classmethod
    def validate_name_org(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("Field name_org must be provided as a non-empty string")
        if not value:
            raise ValueError("Field name_org cannot be empty")
        return value

    @model_validator(mode="after")
    def validate_not_empty(self) -> VolunteerUpdate:
        """At least one updatable field must be present."""

        if not self.model_fields_set:
            raise ValueError("At least one updatable field is required")
        return self

    def patch(self) -> dict[str, Any]:
        """Only the fields the caller actually sent (explicit nulls included)."""

        return self.model_dump(mode="json", include=self.model_fields_set)


class RoleCreate(BaseModel):
    """Payload for inserting a role."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1)
    type: RoleType
    is_active: bool = Field(default=True, strict=True)


class CohortCreate(BaseModel):
    """Payload for inserting a cohort."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    year: int = Field(ge=MIN_COHORT_YEAR, le=MAX_COHORT_YEAR, strict=True)
    term: CohortTerm
    is_active: bool = Field(default=True, strict=True)

    @field_validator("term", mode="before")
    @classmethod
    def normalize_term(cls, value: Any) -> Any:
        return _canonical_term(value)


class Volunteer(BaseModel):
    """A volunteer row as stored."""

    id: int
    name_org: str
    pseudonym: str | None = None
    pronouns: str | None = None
    email: str | None = None
    phone: str | None = None
    position: str | None = None
    opt_in_communication: bool = True
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Role(BaseModel):
    """A role row as stored."""

    id: int
    name: str
    type: str
    is_active: bool = True
    created_at: datetime | None = None


class Cohort(BaseModel):
    """A cohort row as stored."""

    id: int
    year: int
    term: str
    is_active: bool = True
    created_at: datetime | None = None


class VolunteerTableEntry(BaseModel):
    """A volunteer with every role and cohort it belongs to."""

    volunteer: Volunteer
    roles: list[Role] = Field(default_factory=list)
    cohorts: list[Cohort] = Field(default_factory=list)


def field_errors(exc: ValidationError, prefix: str = "") -> list[FieldError]:
    """Flatten a Pydantic `ValidationError` into dotted-path field errors."""

    errors: list[FieldError] = []
    for item in exc.errors():
        path = ".".join(str(part) for part in item["loc"]) or "general"
        message = str(item["msg"]).removeprefix("Value error, ")
        errors.append(FieldError(field=prefix + path, message=message))
    return errors


def parse_record(model: type[M], payload: Any, *, what: str, prefix: str = "") -> M:
    """Validate `payload` against `model`, raising `RecordValidationError` with every field error."""

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RecordValidationError(f"Invalid {what}", field_errors(exc, prefix)) from exc
