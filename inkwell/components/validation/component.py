"""
Validation engine.

Runs a declared field -> rules schema over an entity and accumulates every
violation of every rule into a ValidationErrorSet.

Key behaviors:
- Fields are evaluated in schema declaration order
- All rules of a field run; there is no short-circuit on first violation
- Violations are kept in rule declaration order
- The engine never raises: a rule that cannot evaluate a value counts as
  violated and the anomaly is logged
- Success is the absence of an error set (None)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from inkwell.components.validation.models import (
    ComparisonRule,
    FieldValidation,
    FieldValue,
    Rule,
    RuleKind,
    UnsupportedValueError,
    ValidateInput,
    ValidateOutput,
    ValidationErrorSet,
    ValidationFailure,
    ValidationSchema,
    ValueKind,
)

logger = logging.getLogger(__name__)

# Deliberately conservative: lowercase local part, a single "@" and a
# 2-4 letter TLD. Rejects some valid but unusual addresses.
EMAIL_REGEX = re.compile(r"[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,4}")

_MISSING = object()


def is_email_valid(email: str) -> bool:
    # fullmatch: "$" would also accept a trailing newline
    return EMAIL_REGEX.fullmatch(email) is not None


def is_violated(rule: Rule, value: FieldValue) -> bool:
    """
    Evaluate a single rule.

    Raises:
        UnsupportedValueError: If the rule cannot evaluate this kind of value.
    """
    if isinstance(rule, ComparisonRule):
        return bool(value.raw != rule.other)

    if rule.kind is RuleKind.REQUIRED:
        return value.is_empty()

    if rule.kind is RuleKind.MIN_LENGTH:
        return value.length() < (rule.limit or 0)

    if rule.kind is RuleKind.MAX_LENGTH:
        return value.length() > (rule.limit or 0)

    if rule.kind is RuleKind.MIN_VALUE:
        if value.kind is not ValueKind.NUMBER:
            raise UnsupportedValueError(value.raw, "min-value rule needs a number")
        return bool(value.raw < (rule.limit or 0))

    if rule.kind is RuleKind.EMAIL_FORMAT:
        if value.kind is not ValueKind.STRING:
            raise UnsupportedValueError(value.raw, "email rule needs a string")
        return not is_email_valid(value.raw)

    if rule.kind is RuleKind.MUST_BE_TRUE:
        if value.kind is not ValueKind.BOOL:
            raise UnsupportedValueError(value.raw, "must-be-true rule needs a boolean")
        return not value.raw

    raise UnsupportedValueError(value.raw, f"unknown rule kind {rule.kind}")


def check_field(field_name: str, raw: Any, rules: Sequence[Rule]) -> FieldValidation:
    """Run every rule for one field and collect its violations."""
    result = FieldValidation(field_name=field_name, field_value=raw)

    try:
        value = FieldValue.of(raw)
    except UnsupportedValueError as e:
        logger.error("field %s cannot be validated: %s", field_name, e)
        for rule in rules:
            result.add(rule.violation, rule.describe(field_name))
        return result

    for rule in rules:
        try:
            violated = is_violated(rule, value)
        except UnsupportedValueError as e:
            logger.error(
                "rule %s could not evaluate field %s: %s",
                rule.kind.value,
                field_name,
                e,
            )
            violated = True

        if violated:
            result.add(rule.violation, rule.describe(field_name))

    return result


def _field_of(entity: Any, field_name: str) -> Any:
    if isinstance(entity, Mapping):
        raw = entity.get(field_name, _MISSING)
    else:
        raw = getattr(entity, field_name, _MISSING)

    if raw is _MISSING:
        logger.warning(
            "%s has no field %s; validating it as absent",
            type(entity).__name__,
            field_name,
        )
        return None
    return raw


def validate(entity: Any, schema: ValidationSchema) -> ValidationErrorSet | None:
    """
    Validate an entity (object attributes or a mapping) against a schema.

    Returns:
        None when every rule passes, otherwise the non-empty error set.
    """
    checks = [
        check_field(field_name, _field_of(entity, field_name), rules)
        for field_name, rules in schema.items()
    ]

    errors = ValidationErrorSet.from_checks(checks)
    return errors if errors else None


def ensure_valid(entity: Any, schema: ValidationSchema) -> None:
    """
    Validate and raise on failure.

    Raises:
        ValidationFailure: With the error set, if any rule was violated.
    """
    errors = validate(entity, schema)
    if errors is not None:
        raise ValidationFailure(errors)


def run(inp: ValidateInput) -> ValidateOutput:
    """
    Main component entry point.

    Args:
        inp: Entity and schema to validate

    Returns:
        ValidateOutput; errors is empty when valid
    """
    errors = validate(inp.entity, inp.schema)
    if errors is None:
        return ValidateOutput(is_valid=True)
    return ValidateOutput(is_valid=False, errors=errors)
