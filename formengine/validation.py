"""Validation engine for form state.

Validation applies each field's rules to the current values, filtered by
the mode: fields that are not visible (via ``mode_config.visible_in`` or
conditional logic) are never validated, so a hidden field can stay
required-by-default without blocking submission. An empty optional field
skips the value rules but still runs its custom validator, which may
depend on other fields.

Errors are data, not exceptions. ``validate_form`` returns a flat
``path -> message`` map and is recomputed from scratch on every call.
``ValidationEngine.validate_detailed`` returns the same failures as
FieldError objects with codes for API callers.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from formengine.behavior import is_empty_value, is_field_required, is_field_shown
from formengine.errors import FieldError, FieldErrorCode, FormulaError
from formengine.formula import evaluate
from formengine.state import FormState
from formengine.types import FieldConfig, FieldType

logger = logging.getLogger(__name__)

# Deliberately loose: one "@", a dot in the domain, no whitespace
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a form state.

    Attributes:
        is_valid: Whether every visible field passed
        errors: Field-level failures (empty if valid)
        missing_fields: Paths of required fields without a value
        invalid_fields: Paths of fields whose value failed a rule

    Examples:
        >>> from formengine.state import FormState
        >>> engine = ValidationEngine([FieldConfig(path="name", label="Name", required=True)])
        >>> result = engine.validate_detailed(FormState(values={"name": "Ada"}))
        >>> result.is_valid
        True
    """
    is_valid: bool
    errors: List[FieldError]
    missing_fields: List[str]
    invalid_fields: List[str]

    @property
    def messages(self) -> Dict[str, str]:
        return {error.path: error.message for error in self.errors}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "missingFields": list(self.missing_fields),
            "invalidFields": list(self.invalid_fields),
        }


def _format_bound(bound: Any) -> str:
    if isinstance(bound, float) and bound.is_integer():
        return str(int(bound))
    return str(bound)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ValidationEngine:
    """Applies per-field rules to a form state.

    Attributes:
        fields: The field configurations to validate against

    Examples:
        >>> from formengine.state import FormState
        >>> fields = [FieldConfig(path="email", label="Email", required=True)]
        >>> ValidationEngine(fields).validate(FormState())
        {'email': 'Email is required'}
    """

    def __init__(self, fields: Sequence[FieldConfig]) -> None:
        self.fields = list(fields)
        self._known_paths = [f.path for f in self.fields]

    def validate(self, state: FormState) -> Dict[str, str]:
        """Validate every visible field and return ``path -> message``."""
        return self.validate_detailed(state).messages

    def validate_detailed(self, state: FormState) -> ValidationResult:
        """Validate every visible field and return structured errors."""
        bindings = state.bindings()
        errors: List[FieldError] = []
        missing: List[str] = []
        invalid: List[str] = []

        for field in self.fields:
            if not field.included or field.type.is_layout or field.computed is not None:
                continue
            if not is_field_shown(field, state.mode, bindings):
                continue

            error = self._check_field(field, state, bindings)
            if error is None:
                continue
            errors.append(error)
            if error.code == FieldErrorCode.REQUIRED:
                missing.append(field.path)
            else:
                invalid.append(field.path)

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            missing_fields=missing,
            invalid_fields=invalid,
        )

    def _check_field(
        self,
        field: FieldConfig,
        state: FormState,
        bindings: Dict[str, Any],
    ) -> Optional[FieldError]:
        """Return the first failing rule for a field, or None."""
        value = state.values.get(field.path)
        label = field.label

        if is_empty_value(value):
            if is_field_required(field, state.mode):
                return FieldError(
                    path=field.path,
                    code=FieldErrorCode.REQUIRED,
                    message=f"{label} is required",
                    expected="required field",
                )
            # Value rules need a value; cross-field rules still apply
            return self._check_custom(field, value, bindings)

        if field.type == FieldType.NUMBER:
            error = self._check_number(field, value)
            if error is not None:
                return error

        if isinstance(value, str):
            error = self._check_text(field, value)
            if error is not None:
                return error

        return self._check_custom(field, value, bindings)

    def _check_custom(
        self,
        field: FieldConfig,
        value: Any,
        bindings: Dict[str, Any],
    ) -> Optional[FieldError]:
        rules = field.validation
        if rules is None or not rules.custom_validator:
            return None
        passed = False
        try:
            passed = bool(evaluate(rules.custom_validator, bindings, self._known_paths))
        except FormulaError as exc:
            logger.debug("Custom validator for '%s' failed: %s", field.path, exc)
        if passed:
            return None
        return FieldError(
            path=field.path,
            code=FieldErrorCode.CUSTOM,
            message=rules.custom_message or f"{field.label} is invalid",
            received=value,
        )

    def _check_number(self, field: FieldConfig, value: Any) -> Optional[FieldError]:
        label = field.label
        if not _is_number(value):
            return FieldError(
                path=field.path,
                code=FieldErrorCode.INVALID_TYPE,
                message=f"{label} must be a number",
                expected="number",
                received=type(value).__name__,
            )
        rules = field.validation
        if rules is None:
            return None
        if rules.min is not None and value < rules.min:
            return FieldError(
                path=field.path,
                code=FieldErrorCode.TOO_SMALL,
                message=f"{label} must be at least {_format_bound(rules.min)}",
                expected=f"minimum: {rules.min}",
                received=value,
            )
        if rules.max is not None and value > rules.max:
            return FieldError(
                path=field.path,
                code=FieldErrorCode.TOO_LARGE,
                message=f"{label} must be at most {_format_bound(rules.max)}",
                expected=f"maximum: {rules.max}",
                received=value,
            )
        return None

    def _check_text(self, field: FieldConfig, value: str) -> Optional[FieldError]:
        label = field.label
        rules = field.validation

        if rules is not None:
            if rules.min_length is not None and len(value) < rules.min_length:
                return FieldError(
                    path=field.path,
                    code=FieldErrorCode.TOO_SHORT,
                    message=f"{label} must be at least {rules.min_length} characters",
                    expected=f"minimum {rules.min_length} characters",
                    received=f"{len(value)} characters",
                )
            if rules.max_length is not None and len(value) > rules.max_length:
                return FieldError(
                    path=field.path,
                    code=FieldErrorCode.TOO_LONG,
                    message=f"{label} must be at most {rules.max_length} characters",
                    expected=f"maximum {rules.max_length} characters",
                    received=f"{len(value)} characters",
                )
            if rules.pattern:
                try:
                    matched = re.search(rules.pattern, value) is not None
                except re.error as exc:
                    logger.warning("Field '%s' has an invalid pattern %r: %s", field.path, rules.pattern, exc)
                    matched = True
                if not matched:
                    return FieldError(
                        path=field.path,
                        code=FieldErrorCode.INVALID_FORMAT,
                        message=rules.pattern_message or f"{label} format is invalid",
                        expected=f"pattern: {rules.pattern}",
                        received=value,
                    )

        if field.type == FieldType.EMAIL and not EMAIL_PATTERN.match(value):
            return FieldError(
                path=field.path,
                code=FieldErrorCode.INVALID_FORMAT,
                message=f"{label} must be a valid email address",
                expected="valid email address",
                received=value,
            )
        return None


def validate_form(state: FormState, fields: Sequence[FieldConfig]) -> Dict[str, str]:
    """Validate a form state against its fields.

    Returns:
        ``path -> message`` for every failing visible field (empty if valid)
    """
    return ValidationEngine(fields).validate(state)


__all__ = [
    "EMAIL_PATTERN",
    "ValidationEngine",
    "ValidationResult",
    "validate_form",
]
