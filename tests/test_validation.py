"""Unit tests for the validation engine.

Tests cover:
- Required fields, including mode-specific requiredness
- Skipped fields (hidden, not included, layout, computed)
- Numeric range, length, pattern and email checks
- Formula-based custom validators
- Detailed results with error codes
"""

import logging

from formengine.errors import FieldErrorCode
from formengine.state import FormMeta, FormState
from formengine.types import (
    ComputedConfig,
    ConditionalLogic,
    ConditionOperator,
    FieldCondition,
    FieldConfig,
    FieldType,
    FormMode,
    ModeConfig,
    ValidationRules,
)
from formengine.validation import ValidationEngine, ValidationResult, validate_form


def make_state(values, mode=FormMode.CREATE):
    return FormState(values=dict(values), meta=FormMeta(mode=mode, is_new=mode.is_new))


class TestRequiredFields:
    """Test validation of required fields."""

    def test_missing_required_field(self):
        """Should report a required field without a value."""
        fields = [FieldConfig(path="name", label="Name", required=True)]
        assert validate_form(make_state({}), fields) == {"name": "Name is required"}

    def test_empty_values_count_as_missing(self):
        """Should treat None, empty string and empty list as missing."""
        fields = [
            FieldConfig(path="a", label="A", required=True),
            FieldConfig(path="b", label="B", required=True),
            FieldConfig(path="c", label="C", required=True, type=FieldType.ARRAY),
        ]
        errors = validate_form(make_state({"a": None, "b": "", "c": []}), fields)
        assert set(errors) == {"a", "b", "c"}

    def test_zero_and_false_are_values(self):
        """Should accept 0 and False for required fields."""
        fields = [
            FieldConfig(path="count", label="Count", required=True, type=FieldType.NUMBER),
            FieldConfig(path="agree", label="Agree", required=True, type=FieldType.BOOLEAN),
        ]
        assert validate_form(make_state({"count": 0, "agree": False}), fields) == {}

    def test_optional_empty_field_skips_rules(self):
        """Should not apply other rules to an empty optional field."""
        fields = [
            FieldConfig(path="code", label="Code", validation=ValidationRules(min_length=3)),
        ]
        assert validate_form(make_state({"code": ""}), fields) == {}

    def test_required_in_mode(self):
        """Should apply mode-specific requiredness."""
        fields = [
            FieldConfig(
                path="password",
                label="Password",
                required=True,
                mode_config=ModeConfig(required_in=frozenset({FormMode.CREATE})),
            )
        ]
        assert "password" in validate_form(make_state({}, FormMode.CREATE), fields)
        assert validate_form(make_state({}, FormMode.EDIT), fields) == {}

    def test_nested_path(self):
        """Should report errors under the flat dotted path."""
        fields = [FieldConfig(path="user.email", label="Email", required=True)]
        assert validate_form(make_state({}), fields) == {"user.email": "Email is required"}


class TestSkippedFields:
    """Test fields that are never validated."""

    def test_hidden_in_mode(self):
        """Should skip fields that are not visible in the mode."""
        fields = [
            FieldConfig(
                path="internal",
                label="Internal",
                required=True,
                mode_config=ModeConfig(visible_in=frozenset({FormMode.EDIT})),
            )
        ]
        assert validate_form(make_state({}, FormMode.CREATE), fields) == {}
        assert validate_form(make_state({}, FormMode.EDIT), fields) == {"internal": "Internal is required"}

    def test_hidden_by_conditional_logic(self):
        """Should skip fields hidden by conditional logic."""
        fields = [
            FieldConfig(path="type", label="Type"),
            FieldConfig(
                path="company",
                label="Company",
                required=True,
                conditional_logic=ConditionalLogic(
                    conditions=(
                        FieldCondition(field="type", operator=ConditionOperator.EQUALS, value="business"),
                    ),
                ),
            ),
        ]
        assert validate_form(make_state({"type": "personal"}), fields) == {}
        assert validate_form(make_state({"type": "business"}), fields) == {"company": "Company is required"}

    def test_not_included(self):
        """Should skip fields that are not included in the form."""
        fields = [FieldConfig(path="legacy", label="Legacy", required=True, included=False)]
        assert validate_form(make_state({}), fields) == {}

    def test_layout_fields(self):
        """Should skip layout-only fields."""
        fields = [FieldConfig(path="header", label="Header", required=True, type=FieldType.SECTION_HEADER)]
        assert validate_form(make_state({}), fields) == {}

    def test_computed_fields(self):
        """Should skip computed fields."""
        fields = [
            FieldConfig(
                path="total",
                label="Total",
                required=True,
                computed=ComputedConfig(formula="1 + 1"),
            )
        ]
        assert validate_form(make_state({}), fields) == {}


class TestNumberRules:
    """Test numeric validation."""

    def fields(self):
        return [
            FieldConfig(
                path="age",
                label="Age",
                type=FieldType.NUMBER,
                validation=ValidationRules(min=18, max=120.0),
            )
        ]

    def test_within_range(self):
        """Should accept values within the range, bounds included."""
        assert validate_form(make_state({"age": 18}), self.fields()) == {}
        assert validate_form(make_state({"age": 120}), self.fields()) == {}

    def test_below_minimum(self):
        """Should report values below the minimum."""
        errors = validate_form(make_state({"age": 17}), self.fields())
        assert errors == {"age": "Age must be at least 18"}

    def test_above_maximum(self):
        """Should format whole float bounds without a decimal point."""
        errors = validate_form(make_state({"age": 121}), self.fields())
        assert errors == {"age": "Age must be at most 120"}

    def test_not_a_number(self):
        """Should reject non-numeric values, including booleans."""
        assert validate_form(make_state({"age": "abc"}), self.fields()) == {"age": "Age must be a number"}
        assert validate_form(make_state({"age": True}), self.fields()) == {"age": "Age must be a number"}


class TestTextRules:
    """Test length, pattern and email validation."""

    def test_min_length(self):
        """Should report values that are too short."""
        fields = [FieldConfig(path="name", label="Name", validation=ValidationRules(min_length=2))]
        assert validate_form(make_state({"name": "A"}), fields) == {
            "name": "Name must be at least 2 characters"
        }

    def test_max_length(self):
        """Should report values that are too long."""
        fields = [FieldConfig(path="code", label="Code", validation=ValidationRules(max_length=3))]
        assert validate_form(make_state({"code": "ABCD"}), fields) == {
            "code": "Code must be at most 3 characters"
        }

    def test_pattern_with_message(self):
        """Should use the configured pattern message."""
        fields = [
            FieldConfig(
                path="zip",
                label="ZIP",
                validation=ValidationRules(pattern=r"^\d{5}$", pattern_message="Enter five digits"),
            )
        ]
        assert validate_form(make_state({"zip": "1234"}), fields) == {"zip": "Enter five digits"}
        assert validate_form(make_state({"zip": "12345"}), fields) == {}

    def test_pattern_default_message(self):
        """Should fall back to a generic format message."""
        fields = [FieldConfig(path="sku", label="SKU", validation=ValidationRules(pattern="^SKU-"))]
        assert validate_form(make_state({"sku": "X1"}), fields) == {"sku": "SKU format is invalid"}

    def test_invalid_pattern_is_skipped(self, caplog):
        """Should log and skip a pattern that does not compile."""
        fields = [FieldConfig(path="x", label="X", validation=ValidationRules(pattern="([a-z"))]
        with caplog.at_level(logging.WARNING, logger="formengine.validation"):
            assert validate_form(make_state({"x": "abc"}), fields) == {}
        assert "invalid pattern" in caplog.text

    def test_email_format(self):
        """Should check the format of email fields."""
        fields = [FieldConfig(path="email", label="Email", type=FieldType.EMAIL)]
        assert validate_form(make_state({"email": "not-an-email"}), fields) == {
            "email": "Email must be a valid email address"
        }
        assert validate_form(make_state({"email": "ada@example.com"}), fields) == {}

    def test_first_failing_rule_wins(self):
        """Should report one message per field, from the first failing rule."""
        fields = [
            FieldConfig(
                path="code",
                label="Code",
                validation=ValidationRules(min_length=5, pattern="^[0-9]+$"),
            )
        ]
        assert validate_form(make_state({"code": "ab"}), fields) == {
            "code": "Code must be at least 5 characters"
        }


class TestCustomValidator:
    """Test formula-based custom rules."""

    def fields(self):
        return [
            FieldConfig(path="password", label="Password"),
            FieldConfig(
                path="confirm",
                label="Confirm password",
                validation=ValidationRules(
                    custom_validator="confirm == password",
                    custom_message="Passwords do not match",
                ),
            ),
        ]

    def test_passing_validator(self):
        """Should accept values for which the formula is truthy."""
        state = make_state({"password": "s3cret", "confirm": "s3cret"})
        assert validate_form(state, self.fields()) == {}

    def test_failing_validator(self):
        """Should report the custom message when the formula is falsy."""
        state = make_state({"password": "s3cret", "confirm": "other"})
        assert validate_form(state, self.fields()) == {"confirm": "Passwords do not match"}

    def test_broken_validator_fails_field(self):
        """Should treat a validator that cannot be evaluated as failing."""
        fields = [
            FieldConfig(
                path="x",
                label="X",
                validation=ValidationRules(custom_validator="unknownField > 1"),
            )
        ]
        assert validate_form(make_state({"x": "1"}), fields) == {"x": "X is invalid"}

    def test_validator_runs_on_empty_optional_field(self):
        """Should apply a cross-field rule even when the field has no value."""
        fields = [
            FieldConfig(path="b", label="B", type=FieldType.NUMBER),
            FieldConfig(
                path="a",
                label="A",
                validation=ValidationRules(custom_validator="b > 1", custom_message="B must exceed 1"),
            ),
        ]
        assert validate_form(make_state({"b": 0}), fields) == {"a": "B must exceed 1"}
        assert validate_form(make_state({"b": 2}), fields) == {}

    def test_validator_sees_derived_values(self):
        """Should evaluate against values merged with derived values."""
        fields = [
            FieldConfig(
                path="qty",
                label="Quantity",
                type=FieldType.NUMBER,
                validation=ValidationRules(custom_validator="total <= 100", custom_message="Too expensive"),
            ),
        ]
        state = FormState(
            values={"qty": 3},
            derived={"total": 150},
            meta=FormMeta(mode=FormMode.CREATE, is_new=True),
        )
        assert validate_form(state, fields) == {"qty": "Too expensive"}


class TestDetailedResults:
    """Test structured validation results."""

    def test_codes_and_partitions(self):
        """Should separate missing fields from invalid fields."""
        engine = ValidationEngine([
            FieldConfig(path="name", label="Name", required=True),
            FieldConfig(path="age", label="Age", type=FieldType.NUMBER, validation=ValidationRules(min=0)),
        ])
        result = engine.validate_detailed(make_state({"age": -1}))

        assert isinstance(result, ValidationResult)
        assert result.is_valid is False
        assert [e.code for e in result.errors] == [FieldErrorCode.REQUIRED, FieldErrorCode.TOO_SMALL]
        assert result.missing_fields == ["name"]
        assert result.invalid_fields == ["age"]
        assert result.errors[1].received == -1

    def test_to_dict(self):
        """Should serialize with camelCase keys."""
        engine = ValidationEngine([FieldConfig(path="name", label="Name", required=True)])
        data = engine.validate_detailed(make_state({})).to_dict()
        assert data["isValid"] is False
        assert data["missingFields"] == ["name"]
        assert data["errors"][0]["code"] == "required"

    def test_valid_result(self):
        """Should report success with no errors."""
        engine = ValidationEngine([FieldConfig(path="name", label="Name", required=True)])
        result = engine.validate_detailed(make_state({"name": "Ada"}))
        assert result.is_valid is True
        assert result.errors == []
        assert result.messages == {}

    def test_validation_does_not_mutate_state(self):
        """Should leave the state untouched."""
        state = make_state({})
        ValidationEngine([FieldConfig(path="name", label="Name", required=True)]).validate(state)
        assert state.errors == {}
