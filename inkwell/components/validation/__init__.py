"""
Validation component.

Declarative field -> rule schemas with multi-field, multi-cause error
accumulation. Used by every entity constructor before persistence.
"""

from inkwell.components.validation.component import (
    EMAIL_REGEX,
    check_field,
    ensure_valid,
    is_email_valid,
    is_violated,
    run,
    validate,
)
from inkwell.components.validation.models import (
    EMAIL_FORMAT,
    MUST_BE_TRUE,
    NIL_UUID,
    REQUIRED,
    ComparisonRule,
    ErrorKind,
    FieldValidation,
    FieldValue,
    Rule,
    RuleKind,
    UnaryRule,
    UnsupportedValueError,
    ValidateInput,
    ValidateOutput,
    ValidationErrorSet,
    ValidationFailure,
    ValidationSchema,
    ValueKind,
    matches,
    max_length,
    min_length,
    min_value,
)

__all__ = [
    # Component
    "run",
    "validate",
    "ensure_valid",
    "check_field",
    "is_violated",
    "is_email_valid",
    "EMAIL_REGEX",
    # Rules
    "Rule",
    "RuleKind",
    "UnaryRule",
    "ComparisonRule",
    "REQUIRED",
    "EMAIL_FORMAT",
    "MUST_BE_TRUE",
    "min_length",
    "max_length",
    "min_value",
    "matches",
    # Values
    "FieldValue",
    "ValueKind",
    "NIL_UUID",
    "UnsupportedValueError",
    # Results
    "ErrorKind",
    "FieldValidation",
    "ValidationErrorSet",
    "ValidationSchema",
    "ValidateInput",
    "ValidateOutput",
    # Errors
    "ValidationFailure",
]
