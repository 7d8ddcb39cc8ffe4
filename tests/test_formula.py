"""Unit tests for the formula engine.

Tests cover:
- Arithmetic, precedence and string concatenation
- Comparisons and logical operators
- Built-in functions (string, numeric, date, array, conditional)
- Identifier resolution against flat and nested bindings
- Error reporting for syntax errors, unknown names and type mismatches
- Computed field ordering, cycle detection and derived values
"""

import logging

import pytest

from formengine.errors import FormulaError
from formengine.formula import (
    coerce_output,
    compute_derived_values,
    evaluate,
    extract_field_references,
    resolve_computation_order,
    tokenize,
    validate_formula,
)
from formengine.types import ComputedConfig, FieldConfig, FieldType


def computed(path, formula, dependencies=(), output_type=None):
    return FieldConfig(
        path=path,
        label=path,
        type=FieldType.NUMBER,
        computed=ComputedConfig(
            formula=formula,
            dependencies=tuple(dependencies),
            output_type=output_type,
        ),
    )


class TestTokenizer:
    """Test formula tokenization."""

    def test_token_kinds(self):
        """Should classify numbers, strings, identifiers and operators."""
        tokens = tokenize('price * 1.5 >= "x"')
        assert [t.kind for t in tokens] == ["ident", "op", "number", "op", "string"]
        assert tokens[2].value == 1.5

    def test_dotted_identifier(self):
        """Should keep dotted paths as one identifier."""
        tokens = tokenize("address.city")
        assert len(tokens) == 1
        assert tokens[0].value == "address.city"

    def test_unterminated_string(self):
        """Should report the start of an unterminated string."""
        with pytest.raises(FormulaError) as exc_info:
            tokenize('"abc')
        assert exc_info.value.position == 0

    def test_unexpected_character(self):
        """Should reject characters outside the grammar."""
        with pytest.raises(FormulaError) as exc_info:
            tokenize("a # b")
        assert exc_info.value.position == 2


class TestArithmetic:
    """Test arithmetic evaluation."""

    def test_basic_operations(self):
        """Should evaluate the four basic operations."""
        values = {"a": 10, "b": 4}
        assert evaluate("a + b", values) == 14
        assert evaluate("a - b", values) == 6
        assert evaluate("a * b", values) == 40
        assert evaluate("a / b", values) == 2.5

    def test_precedence_and_parentheses(self):
        """Should bind multiplication tighter than addition."""
        assert evaluate("2 + 3 * 4", {}) == 14
        assert evaluate("(2 + 3) * 4", {}) == 20

    def test_power_is_right_associative(self):
        """Should evaluate 2 ^ 3 ^ 2 as 2 ^ 9."""
        assert evaluate("2 ^ 3 ^ 2", {}) == 512

    def test_unary_minus(self):
        """Should negate numbers."""
        assert evaluate("-a + 1", {"a": 5}) == -4

    def test_whole_division_result_is_int(self):
        """Should return an integer when division is exact."""
        result = evaluate("10 / 2", {})
        assert result == 5
        assert isinstance(result, int)

    def test_modulo_keeps_dividend_sign(self):
        """Should compute the remainder with the sign of the dividend."""
        assert evaluate("7 % 3", {}) == 1
        assert evaluate("-7 % 3", {}) == -1

    def test_numeric_strings_coerced(self):
        """Should coerce numeric strings in arithmetic."""
        assert evaluate("a * 2", {"a": "21"}) == 42

    def test_string_concatenation(self):
        """Should concatenate when either operand of + is text."""
        assert evaluate('first + " " + last', {"first": "Ada", "last": "Lovelace"}) == "Ada Lovelace"
        assert evaluate('"#" + n', {"n": 7}) == "#7"

    def test_division_by_zero(self):
        """Should raise FormulaError on division by zero."""
        with pytest.raises(FormulaError):
            evaluate("a / 0", {"a": 1})
        with pytest.raises(FormulaError):
            evaluate("a % 0", {"a": 1})

    def test_none_in_arithmetic(self):
        """Should raise FormulaError instead of treating None as zero."""
        with pytest.raises(FormulaError):
            evaluate("a * 2", {"a": None})

    def test_non_numeric_text_in_arithmetic(self):
        """Should raise FormulaError for text that is not a number."""
        with pytest.raises(FormulaError):
            evaluate("a * 2", {"a": "abc"})


class TestComparisonsAndLogic:
    """Test comparison and logical operators."""

    def test_comparisons(self):
        """Should compare numbers."""
        values = {"total": 120}
        assert evaluate("total > 100", values) is True
        assert evaluate("total <= 100", values) is False
        assert evaluate("total == 120", values) is True
        assert evaluate("total != 120", values) is False

    def test_loose_equality_between_number_and_text(self):
        """Should compare a number with a numeric string by value."""
        assert evaluate('a == "5"', {"a": 5}) is True

    def test_string_comparison(self):
        """Should compare strings lexicographically."""
        assert evaluate('"apple" < "banana"', {}) is True

    def test_logical_operators(self):
        """Should short-circuit && and ||."""
        assert evaluate("a > 1 && b > 1", {"a": 2, "b": 0}) is False
        assert evaluate("a > 1 || b > 1", {"a": 2, "b": 0}) is True
        assert evaluate("!(a > 1)", {"a": 2}) is False

    def test_short_circuit_skips_errors(self):
        """Should not evaluate the right side when the left decides."""
        assert evaluate("false && missing", {}) is False
        assert evaluate("true || missing", {}) is True

    def test_keywords(self):
        """Should recognize true, false and null in any case."""
        assert evaluate("TRUE", {}) is True
        assert evaluate("null", {}) is None


class TestFunctions:
    """Test built-in functions."""

    def test_if_is_lazy(self):
        """Should evaluate only the taken branch."""
        assert evaluate('if(total >= 100, "Premium", "Basic")', {"total": 120}) == "Premium"
        assert evaluate("if(b == 0, 0, a / b)", {"a": 1, "b": 0}) == 0

    def test_if_without_else(self):
        """Should return None when the condition fails and no else is given."""
        assert evaluate("if(false, 1)", {}) is None

    def test_function_names_case_insensitive(self):
        """Should accept function names in any case."""
        assert evaluate('IF(a, "y", "n")', {"a": True}) == "y"
        assert evaluate("Round(2.346, 2)", {}) == 2.35

    def test_round_half_up(self):
        """Should round halves up."""
        assert evaluate("round(2.5)", {}) == 3
        assert evaluate("round(3.5)", {}) == 4
        assert evaluate("round(1234, -2)", {}) == 1200

    def test_round_places_bounded(self):
        """Should reject rounding places outside the supported range."""
        assert evaluate("round(1.5, 15)", {}) == 1.5
        with pytest.raises(FormulaError) as exc_info:
            evaluate("round(price, digits)", {"price": 1.5, "digits": 30000000})
        assert "round() places" in str(exc_info.value)
        with pytest.raises(FormulaError):
            evaluate("round(price, -16)", {"price": 1.5})

    def test_numeric_functions(self):
        """Should provide the numeric helpers."""
        assert evaluate("floor(2.7)", {}) == 2
        assert evaluate("ceil(2.1)", {}) == 3
        assert evaluate("abs(-4)", {}) == 4
        assert evaluate("sqrt(16)", {}) == 4
        assert evaluate("pow(2, 10)", {}) == 1024
        assert evaluate("mod(10, 4)", {}) == 2

    def test_aggregates_accept_lists(self):
        """Should spread list arguments into aggregates."""
        values = {"scores": [1, 2, 3, 4]}
        assert evaluate("sum(scores)", values) == 10
        assert evaluate("average(scores)", values) == 2.5
        assert evaluate("min(scores, 0)", values) == 0
        assert evaluate("max(scores)", values) == 4

    def test_string_functions(self):
        """Should provide the string helpers."""
        values = {"name": "  Ada Lovelace "}
        assert evaluate("trim(name)", values) == "Ada Lovelace"
        assert evaluate("upper(trim(name))", values) == "ADA LOVELACE"
        assert evaluate("len(trim(name))", values) == 12
        assert evaluate('left("abcdef", 2)', {}) == "ab"
        assert evaluate('right("abcdef", 2)', {}) == "ef"
        assert evaluate('mid("abcdef", 1, 3)', {}) == "bcd"
        assert evaluate('concat("a", 1, true)', {}) == "a1true"
        assert evaluate('replace("a-b-c", "-", "+")', {}) == "a+b+c"
        assert evaluate('split("a,b", ",")', {}) == ["a", "b"]

    def test_array_functions(self):
        """Should provide the array helpers."""
        values = {"tags": ["red", "green"]}
        assert evaluate("count(tags)", values) == 2
        assert evaluate("first(tags)", values) == "red"
        assert evaluate("last(tags)", values) == "green"
        assert evaluate('join(tags, "/")', values) == "red/green"
        assert evaluate('contains(tags, "green")', values) is True

    def test_conditional_functions(self):
        """Should provide coalesce, isNull and isEmpty."""
        values = {"nick": "", "name": "Ada", "notes": "  "}
        assert evaluate("coalesce(nick, name)", values) == "Ada"
        assert evaluate("isNull(null)", {}) is True
        assert evaluate("isEmpty(notes)", values) is True

    def test_date_functions(self):
        """Should extract parts and do calendar arithmetic."""
        values = {"start": "2024-01-31", "end": "2024-03-01"}
        assert evaluate("year(start)", values) == 2024
        assert evaluate("month(start)", values) == 1
        assert evaluate("day(start)", values) == 31
        assert evaluate("dateDiff(end, start)", values) == 30
        assert evaluate('dateDiff(end, start, "months")', values) == 2
        assert evaluate('dateAdd(start, 1, "months")', values).startswith("2024-02-29")

    def test_unknown_function(self):
        """Should reject functions outside the allowlist at parse time."""
        with pytest.raises(FormulaError) as exc_info:
            evaluate("system(1)", {})
        assert exc_info.value.identifier == "system"

    def test_wrong_argument_count(self):
        """Should report the expected argument count."""
        with pytest.raises(FormulaError) as exc_info:
            evaluate("upper()", {})
        assert "upper() takes 1 arguments" in str(exc_info.value)


class TestIdentifierResolution:
    """Test how identifiers resolve against bindings."""

    def test_flat_dotted_key(self):
        """Should resolve a dotted identifier against a flat key."""
        assert evaluate("address.zip", {"address.zip": "N1"}) == "N1"

    def test_nested_value(self):
        """Should resolve a dotted identifier inside a dict value."""
        assert evaluate("address.city", {"address": {"city": "Paris"}}) == "Paris"

    def test_unknown_identifier(self):
        """Should raise FormulaError naming the identifier."""
        with pytest.raises(FormulaError) as exc_info:
            evaluate("missing + 1", {})
        assert exc_info.value.identifier == "missing"
        assert exc_info.value.formula == "missing + 1"

    def test_known_but_empty_field(self):
        """Should resolve a declared field without a value to None."""
        assert evaluate("isNull(discount)", {}, known_paths=["discount"]) is True
        assert evaluate("isNull(address.city)", {}, known_paths=["address"]) is True

    def test_empty_formula(self):
        """Should evaluate an empty formula to None."""
        assert evaluate("", {}) is None
        assert evaluate("   ", {}) is None


class TestFormulaIntrospection:
    """Test syntax validation and reference extraction."""

    def test_validate_formula(self):
        """Should report syntax errors without evaluating."""
        assert validate_formula("a + b") == (True, None)
        ok, message = validate_formula("a + ")
        assert ok is False
        assert "end of formula" in message

    def test_unknown_identifier_is_valid_syntax(self):
        """Should accept unknown identifiers since they are resolved at runtime."""
        assert validate_formula("whatever * 2") == (True, None)

    def test_extract_field_references(self):
        """Should list referenced paths once, in order of appearance."""
        formula = "if(qty > 0, qty * item.price, 0) + shipping"
        assert extract_field_references(formula) == ["qty", "item.price", "shipping"]

    def test_extract_ignores_keywords_and_functions(self):
        """Should not report functions or keywords as references."""
        assert extract_field_references("round(total, 2) + if(true, 1, 0)") == ["total"]

    def test_extract_from_invalid_formula(self):
        """Should return no references for an unparseable formula."""
        assert extract_field_references("a +") == []


class TestComputationOrder:
    """Test dependency ordering of computed fields."""

    def test_dependencies_come_first(self):
        """Should place a field after the computed fields it reads."""
        fields = [
            computed("total", "subtotal + tax"),
            computed("tax", "subtotal * 0.2"),
            computed("subtotal", "qty * price"),
        ]
        order = [f.path for f in resolve_computation_order(fields)]
        assert order == ["subtotal", "tax", "total"]

    def test_declared_dependencies_used(self):
        """Should honor declared dependencies even if the formula hides them."""
        fields = [
            computed("b", "1", dependencies=["a"]),
            computed("a", "2"),
        ]
        assert [f.path for f in resolve_computation_order(fields)] == ["a", "b"]

    def test_declaration_order_for_independent_fields(self):
        """Should keep declaration order when there are no dependencies."""
        fields = [computed("x", "1"), computed("y", "2"), computed("z", "3")]
        assert [f.path for f in resolve_computation_order(fields)] == ["x", "y", "z"]

    def test_cycle_detected(self):
        """Should raise FormulaError naming the cycle."""
        fields = [computed("a", "b + 1"), computed("b", "a + 1")]
        with pytest.raises(FormulaError) as exc_info:
            resolve_computation_order(fields)
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert "a -> b -> a" in str(exc_info.value)

    def test_self_reference_is_cycle(self):
        """Should treat a field reading itself as a cycle."""
        with pytest.raises(FormulaError):
            resolve_computation_order([computed("a", "a + 1")])

    def test_non_computed_fields_ignored(self):
        """Should return only computed, included fields."""
        fields = [
            FieldConfig(path="qty", label="Qty"),
            computed("total", "qty * 2"),
            FieldConfig(
                path="hidden",
                label="Hidden",
                included=False,
                computed=ComputedConfig(formula="1"),
            ),
        ]
        assert [f.path for f in resolve_computation_order(fields)] == ["total"]


class TestComputeDerivedValues:
    """Test evaluation of all computed fields."""

    def test_chained_values(self):
        """Should feed derived values into later formulas."""
        fields = [
            FieldConfig(path="qty", label="Qty", type=FieldType.NUMBER),
            FieldConfig(path="price", label="Price", type=FieldType.NUMBER),
            computed("total", "subtotal * 1.5"),
            computed("subtotal", "qty * price"),
        ]
        derived = compute_derived_values(fields, {"qty": 2, "price": 10})
        assert derived == {"subtotal": 20, "total": 30}

    def test_failed_formula_left_undefined(self):
        """Should omit a field whose formula fails and keep the others."""
        fields = [
            FieldConfig(path="qty", label="Qty", type=FieldType.NUMBER),
            computed("ratio", "10 / qty"),
            computed("double", "qty * 2"),
        ]
        derived = compute_derived_values(fields, {"qty": 0})
        assert derived == {"double": 0}

    def test_missing_input_leaves_field_undefined(self):
        """Should leave a field undefined when an input has no value."""
        fields = [
            FieldConfig(path="qty", label="Qty", type=FieldType.NUMBER),
            computed("total", "qty * 2"),
        ]
        assert compute_derived_values(fields, {}) == {}

    def test_invalid_formula_logged(self, caplog):
        """Should log a warning for a formula that does not parse."""
        fields = [computed("broken", "1 +")]
        with caplog.at_level(logging.WARNING, logger="formengine.formula"):
            assert compute_derived_values(fields, {}) == {}
        assert "broken" in caplog.text

    def test_stale_value_not_used_for_own_formula(self):
        """Should ignore a value stored under the computed field's own path."""
        fields = [
            FieldConfig(path="qty", label="Qty", type=FieldType.NUMBER),
            computed("total", "qty * 2"),
        ]
        derived = compute_derived_values(fields, {"qty": 3, "total": 999})
        assert derived == {"total": 6}

    def test_failed_field_is_empty_for_dependents(self):
        """Should not feed a stored value of a failed computed field to its dependents."""
        fields = [
            FieldConfig(path="price", label="Price", type=FieldType.NUMBER),
            computed("total", "price * 2"),
            computed("grand", "total + 1"),
        ]
        assert compute_derived_values(fields, {"price": "abc", "total": 100}) == {}

    def test_output_type_coercion(self):
        """Should coerce results to the declared output type."""
        fields = [
            computed("label", "qty", output_type="string"),
            computed("flag", "qty", output_type="boolean"),
        ]
        derived = compute_derived_values(fields, {"qty": 2})
        assert derived == {"label": "2", "flag": True}

    def test_cycle_raises(self):
        """Should propagate dependency cycles."""
        fields = [computed("a", "b"), computed("b", "a")]
        with pytest.raises(FormulaError):
            compute_derived_values(fields, {})


class TestCoerceOutput:
    """Test output type coercion."""

    def test_number_from_numeric_string(self):
        """Should parse numeric strings."""
        assert coerce_output("3.5", "number") == 3.5

    def test_number_from_text_fails(self):
        """Should raise for text that is not a number."""
        with pytest.raises(FormulaError):
            coerce_output("abc", "number")

    def test_none_passthrough(self):
        """Should leave None and untyped results alone."""
        assert coerce_output(None, "number") is None
        assert coerce_output([1], None) == [1]
