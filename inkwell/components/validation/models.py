"""
Validation component models.

Closed value model, rule variants and the error aggregate produced by a
validation run.

Every field value is converted into a FieldValue before any rule looks at it,
so rule evaluation never has to guess at arbitrary Python types.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# --- Error Kinds ---


class ErrorKind(Enum):
    """Closed set of violations a rule can signal. Compared by value."""

    REQUIRED = "required"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_EMAIL = "invalid_email"
    PASSWORD_DONT_MATCH = "password_dont_match"
    MUST_BE_TRUE = "must_be_true"
    TOO_SMALL = "too_small"

    @property
    def message(self) -> str:
        return _ERROR_MESSAGES[self]


_ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.REQUIRED: "value is required",
    ErrorKind.TOO_SHORT: "value is too short",
    ErrorKind.TOO_LONG: "value is too long",
    ErrorKind.INVALID_EMAIL: "provided email is invalid",
    ErrorKind.PASSWORD_DONT_MATCH: "the two passwords must match",
    ErrorKind.MUST_BE_TRUE: "value must be true",
    ErrorKind.TOO_SMALL: "value is too small",
}


# --- Value Model ---


class ValueKind(Enum):
    """Variants of the closed field value model."""

    ABSENT = "absent"  # None, or a missing optional
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    TIMESTAMP = "timestamp"
    IDENTIFIER = "identifier"
    COLLECTION = "collection"


NIL_UUID = UUID(int=0)

_COLLECTION_TYPES = (list, tuple, set, frozenset, dict)


class UnsupportedValueError(TypeError):
    """Raised when a value cannot be represented by the closed value model."""

    def __init__(self, value: Any, reason: str) -> None:
        self.value_type = type(value).__name__
        self.reason = reason
        super().__init__(f"{reason} (got {self.value_type})")


@dataclass(frozen=True)
class FieldValue:
    """A field value tagged with its variant."""

    kind: ValueKind
    raw: Any = None

    @classmethod
    def of(cls, raw: Any) -> FieldValue:
        """
        Convert a Python value into the closed value model.

        Raises:
            UnsupportedValueError: If the type has no variant.
        """
        if raw is None:
            return cls(ValueKind.ABSENT)
        # bool is a subclass of int, so it has to be checked first
        if isinstance(raw, bool):
            return cls(ValueKind.BOOL, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        if isinstance(raw, int | float | Decimal):
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, date):
            return cls(ValueKind.TIMESTAMP, raw)
        if isinstance(raw, UUID):
            return cls(ValueKind.IDENTIFIER, raw)
        if isinstance(raw, _COLLECTION_TYPES):
            return cls(ValueKind.COLLECTION, raw)
        raise UnsupportedValueError(raw, "value has no field value variant")

    def is_empty(self) -> bool:
        """Whether the value counts as not provided."""
        if self.kind is ValueKind.ABSENT:
            return True
        if self.kind is ValueKind.BOOL:
            return not self.raw
        if self.kind is ValueKind.NUMBER:
            return bool(self.raw == 0)
        if self.kind is ValueKind.IDENTIFIER:
            return bool(self.raw == NIL_UUID)
        if self.kind is ValueKind.TIMESTAMP:
            return _is_zero_time(self.raw)
        return len(self.raw) == 0

    def length(self) -> int:
        """
        Length of a string or collection.

        Raises:
            UnsupportedValueError: For variants that carry no length.
        """
        if self.kind in (ValueKind.STRING, ValueKind.COLLECTION):
            return len(self.raw)
        raise UnsupportedValueError(self.raw, f"cannot get the length of a {self.kind.value}")


def _is_zero_time(value: date) -> bool:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) == datetime.min
    return value == date.min


# --- Rules ---


class RuleKind(Enum):
    REQUIRED = "required"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    EMAIL_FORMAT = "email_format"
    MUST_BE_TRUE = "must_be_true"
    MIN_VALUE = "min_value"
    MATCHES_OTHER = "matches_other"


_RULE_VIOLATIONS: dict[RuleKind, ErrorKind] = {
    RuleKind.REQUIRED: ErrorKind.REQUIRED,
    RuleKind.MIN_LENGTH: ErrorKind.TOO_SHORT,
    RuleKind.MAX_LENGTH: ErrorKind.TOO_LONG,
    RuleKind.EMAIL_FORMAT: ErrorKind.INVALID_EMAIL,
    RuleKind.MUST_BE_TRUE: ErrorKind.MUST_BE_TRUE,
    RuleKind.MATCHES_OTHER: ErrorKind.PASSWORD_DONT_MATCH,
    RuleKind.MIN_VALUE: ErrorKind.TOO_SMALL,
}


@dataclass(frozen=True)
class UnaryRule:
    """A rule over a single field value, optionally parameterised by a bound."""

    kind: RuleKind
    limit: int | None = None

    @property
    def violation(self) -> ErrorKind:
        return _RULE_VIOLATIONS[self.kind]

    def describe(self, field_name: str) -> str:
        """Human readable explanation of a violation on field_name."""
        if self.kind is RuleKind.REQUIRED:
            return f"{field_name} needs to be provided"
        if self.kind is RuleKind.MIN_LENGTH:
            return f"{field_name} needs to be at least {self.limit} characters"
        if self.kind is RuleKind.MAX_LENGTH:
            return f"{field_name} needs to be at most {self.limit} characters"
        if self.kind is RuleKind.EMAIL_FORMAT:
            return "the provided email was not valid"
        if self.kind is RuleKind.MIN_VALUE:
            return f"{field_name} needs to be at least {self.limit}"
        return f"{field_name} needs to be 'true'"


@dataclass(frozen=True)
class ComparisonRule:
    """A rule comparing a field value against a captured second operand."""

    # never shown in reprs; this is usually a password confirmation
    other: Any = field(repr=False)
    kind: RuleKind = field(default=RuleKind.MATCHES_OTHER, init=False)

    @property
    def violation(self) -> ErrorKind:
        return _RULE_VIOLATIONS[self.kind]

    def describe(self, field_name: str) -> str:
        return "password and confirm password must match"


Rule = UnaryRule | ComparisonRule

# Field name -> ordered rules. Mapping order is the evaluation order.
ValidationSchema = Mapping[str, Sequence[Rule]]


REQUIRED = UnaryRule(RuleKind.REQUIRED)
EMAIL_FORMAT = UnaryRule(RuleKind.EMAIL_FORMAT)
MUST_BE_TRUE = UnaryRule(RuleKind.MUST_BE_TRUE)


def min_length(limit: int) -> UnaryRule:
    return UnaryRule(RuleKind.MIN_LENGTH, limit)


def max_length(limit: int) -> UnaryRule:
    return UnaryRule(RuleKind.MAX_LENGTH, limit)


def min_value(limit: int) -> UnaryRule:
    return UnaryRule(RuleKind.MIN_VALUE, limit)


def matches(other: Any) -> ComparisonRule:
    return ComparisonRule(other)


# --- Results ---


@dataclass
class FieldValidation:
    """Outcome of running one field's rules."""

    field_name: str
    field_value: Any
    violations: list[ErrorKind] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def add(self, kind: ErrorKind, message: str) -> None:
        self.violations.append(kind)
        self.messages.append(message)

    @property
    def causes(self) -> list[ErrorKind]:
        return list(self.violations)

    def __str__(self) -> str:
        causes = ", ".join(kind.message for kind in self.violations)
        return (
            f"Field: '{self.field_name}' with Value: '{self.field_value}' "
            f"has Error(s): validation failed due to '{causes}'"
        )


@dataclass(frozen=True)
class ValidationErrorSet:
    """
    Field-addressable result of a failed validation run.

    Only fields with at least one violation are kept, in evaluation order.
    An empty set means the entity is valid.
    """

    entries: tuple[FieldValidation, ...] = ()

    @classmethod
    def from_checks(cls, checks: Iterable[FieldValidation]) -> ValidationErrorSet:
        return cls(tuple(check for check in checks if check.violations))

    def __iter__(self) -> Iterator[FieldValidation]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __str__(self) -> str:
        return "".join(f"{entry}; " for entry in self.entries)

    def fields(self) -> list[str]:
        return [entry.field_name for entry in self.entries]

    def get(self, field_name: str) -> FieldValidation | None:
        for entry in self.entries:
            if entry.field_name == field_name:
                return entry
        return None

    def kinds(self, field_name: str) -> list[ErrorKind]:
        entry = self.get(field_name)
        return entry.causes if entry else []

    def has(self, field_name: str, kind: ErrorKind) -> bool:
        return kind in self.kinds(field_name)

    def all_kinds(self) -> list[ErrorKind]:
        return [kind for entry in self.entries for kind in entry.violations]

    def as_form_errors(self) -> dict[str, list[str]]:
        """Field name -> human readable messages, for form rendering."""
        return {entry.field_name: list(entry.messages) for entry in self.entries}


# --- Input/Output ---


@dataclass(frozen=True)
class ValidateInput:
    """Input for a validation run."""

    entity: Any
    schema: ValidationSchema


@dataclass(frozen=True)
class ValidateOutput:
    """Output from a validation run."""

    is_valid: bool
    errors: ValidationErrorSet = field(default_factory=ValidationErrorSet)


# --- Error Types ---


class ValidationFailure(Exception):
    """An entity failed validation. Carries the structured error set."""

    def __init__(self, errors: ValidationErrorSet) -> None:
        self.errors = errors
        super().__init__(str(errors))
