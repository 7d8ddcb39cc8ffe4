"""Mode-aware field behavior: visibility, editability and requiredness.

The three decisions are independent. A field can be visible, read-only and
still required (for example a frozen total shown on a review page), so
callers ask each question separately.

Conditional logic (show/hide a field depending on other values) is
evaluated here as well, using the same operator set as custom rules.
"""

from typing import Any, List, Mapping, Optional, Union

from formengine.lifecycle import FormLifecycle, get_immutable_fields
from formengine.paths import resolve_value
from formengine.types import (
    ConditionalLogic,
    ConditionOperator,
    FieldCondition,
    FieldConfig,
    FieldType,
    FormMode,
    parse_mode,
)


def is_field_visible(field: FieldConfig, mode: Union[str, FormMode]) -> bool:
    """Check if a field is visible in the given mode.

    Visible by default; ``mode_config.visible_in`` restricts it.
    """
    mode = parse_mode(mode)
    if field.mode_config is None or field.mode_config.visible_in is None:
        return True
    return mode in field.mode_config.visible_in


def is_field_editable(
    field: FieldConfig,
    mode: Union[str, FormMode],
    lifecycle: Optional[FormLifecycle] = None,
) -> bool:
    """Check if a field is editable in the given mode.

    View mode is always read-only and nothing can re-enable it. Computed
    fields are never editable. In edit mode, fields listed in the
    lifecycle's immutable fields are frozen. Otherwise
    ``mode_config.editable_in`` decides when set.
    """
    mode = parse_mode(mode)
    if mode == FormMode.VIEW:
        return False
    if field.computed is not None:
        return False
    if mode == FormMode.EDIT and field.path in get_immutable_fields(lifecycle):
        return False
    if field.mode_config is not None and field.mode_config.editable_in is not None:
        return mode in field.mode_config.editable_in
    return True


def is_field_required(field: FieldConfig, mode: Union[str, FormMode]) -> bool:
    """Check if a field is required in the given mode.

    ``mode_config.required_in`` replaces the static ``required`` flag
    when set; it does not OR with it.
    """
    mode = parse_mode(mode)
    if field.mode_config is not None and field.mode_config.required_in is not None:
        return mode in field.mode_config.required_in
    return field.required


def is_empty_value(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and len(value) == 0)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def evaluate_condition(condition: FieldCondition, values: Mapping[str, Any]) -> bool:
    """Evaluate a single condition against flat form values."""
    field_value = resolve_value(values, condition.field)
    compare_value = condition.value
    operator = condition.operator

    if operator == ConditionOperator.EQUALS:
        return field_value == compare_value
    if operator == ConditionOperator.NOT_EQUALS:
        return field_value != compare_value
    if operator in (ConditionOperator.CONTAINS, ConditionOperator.NOT_CONTAINS):
        if isinstance(field_value, str):
            found = str(compare_value).lower() in field_value.lower()
        elif isinstance(field_value, (list, tuple)):
            found = compare_value in field_value
        else:
            # Nothing to search in: contains fails, notContains holds
            found = False
        return found if operator == ConditionOperator.CONTAINS else not found
    if operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        if isinstance(field_value, bool) or not isinstance(field_value, (int, float)):
            return False
        bound = _as_number(compare_value)
        if bound is None:
            return False
        if operator == ConditionOperator.GREATER_THAN:
            return field_value > bound
        return field_value < bound
    if operator == ConditionOperator.IS_EMPTY:
        return is_empty_value(field_value)
    if operator == ConditionOperator.IS_NOT_EMPTY:
        return not is_empty_value(field_value)
    if operator == ConditionOperator.IS_TRUE:
        return field_value is True
    if operator == ConditionOperator.IS_FALSE:
        return field_value is False
    return True


def evaluate_conditional_logic(
    logic: Optional[ConditionalLogic],
    values: Mapping[str, Any],
) -> bool:
    """Return True if the field should be shown.

    No logic (or no conditions) means always shown. ``show`` shows the field
    when the conditions are met; ``hide`` hides it when they are met.
    """
    if logic is None or not logic.conditions:
        return True
    results = [evaluate_condition(c, values) for c in logic.conditions]
    met = all(results) if logic.logic_type == "all" else any(results)
    return met if logic.action == "show" else not met


def is_field_shown(
    field: FieldConfig,
    mode: Union[str, FormMode],
    values: Mapping[str, Any],
) -> bool:
    """Combine mode visibility with conditional logic."""
    return is_field_visible(field, mode) and evaluate_conditional_logic(
        field.conditional_logic, values
    )


_OPERATOR_LABELS = {
    ConditionOperator.EQUALS: "equals",
    ConditionOperator.NOT_EQUALS: "does not equal",
    ConditionOperator.CONTAINS: "contains",
    ConditionOperator.NOT_CONTAINS: "does not contain",
    ConditionOperator.GREATER_THAN: "is greater than",
    ConditionOperator.LESS_THAN: "is less than",
    ConditionOperator.IS_EMPTY: "is empty",
    ConditionOperator.IS_NOT_EMPTY: "is not empty",
    ConditionOperator.IS_TRUE: "is true",
    ConditionOperator.IS_FALSE: "is false",
}


def get_operator_label(operator: ConditionOperator) -> str:
    return _OPERATOR_LABELS[operator]


def operator_requires_value(operator: ConditionOperator) -> bool:
    return operator not in (
        ConditionOperator.IS_EMPTY,
        ConditionOperator.IS_NOT_EMPTY,
        ConditionOperator.IS_TRUE,
        ConditionOperator.IS_FALSE,
    )


def get_operators_for_type(field_type: FieldType) -> List[ConditionOperator]:
    """Operators that make sense for conditions on a field of this type."""
    if field_type == FieldType.BOOLEAN:
        return [ConditionOperator.IS_TRUE, ConditionOperator.IS_FALSE]
    if field_type == FieldType.NUMBER:
        return [
            ConditionOperator.EQUALS,
            ConditionOperator.NOT_EQUALS,
            ConditionOperator.GREATER_THAN,
            ConditionOperator.LESS_THAN,
            ConditionOperator.IS_EMPTY,
            ConditionOperator.IS_NOT_EMPTY,
        ]
    if field_type in (FieldType.ARRAY, FieldType.ARRAY_OBJECT):
        return [
            ConditionOperator.CONTAINS,
            ConditionOperator.NOT_CONTAINS,
            ConditionOperator.IS_EMPTY,
            ConditionOperator.IS_NOT_EMPTY,
        ]
    return [
        ConditionOperator.EQUALS,
        ConditionOperator.NOT_EQUALS,
        ConditionOperator.CONTAINS,
        ConditionOperator.NOT_CONTAINS,
        ConditionOperator.IS_EMPTY,
        ConditionOperator.IS_NOT_EMPTY,
    ]


__all__ = [
    "is_field_visible",
    "is_field_editable",
    "is_field_required",
    "is_empty_value",
    "evaluate_condition",
    "evaluate_conditional_logic",
    "is_field_shown",
    "get_operator_label",
    "operator_requires_value",
    "get_operators_for_type",
]
