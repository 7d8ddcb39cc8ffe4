"""Formula engine for computed fields and custom validators.

Formulas are small data-flow expressions written by form authors and
evaluated against the current form values. They are parsed by a
recursive-descent parser over a closed grammar and evaluated by walking the
resulting tree; nothing is ever handed to Python's ``eval``.

Supports:
- Field references: ``quantity`` or dotted paths such as ``address.city``
- Literals: numbers, single/double-quoted strings, ``true``, ``false``, ``null``
- Arithmetic: ``+ - * / % ^`` (``+`` concatenates when either side is text)
- Comparisons: ``== != < > <= >=``
- Logical: ``&& || !``
- Functions from a fixed allowlist (see FUNCTIONS), case-insensitive,
  including ``if(condition, then, else)`` which only evaluates the taken branch

Usage:
    >>> evaluate("quantity * price", {"quantity": 5, "price": 10})
    50
    >>> evaluate('if(total >= 100, "Premium", "Basic")', {"total": 120})
    'Premium'
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from formengine.errors import FormulaError
from formengine.paths import contains_path, is_under, resolve_value
from formengine.types import FieldConfig

logger = logging.getLogger(__name__)


# ============================================
# Tokenizer
# ============================================

@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    pos: int


_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?|\.\d+")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*")
_TWO_CHAR_OPS = ("==", "!=", "<=", ">=", "&&", "||")
_ONE_CHAR_OPS = "+-*/%^<>!"
_PUNCTUATION = {"(": "lparen", ")": "rparen", ",": "comma"}
_KEYWORDS = {"true": True, "false": False, "null": None}

MAX_ROUND_PLACES = 15


def tokenize(formula: str) -> List[Token]:
    """Split a formula into tokens.

    Raises:
        FormulaError: On an unterminated string or an unexpected character
    """
    tokens: List[Token] = []
    i = 0
    length = len(formula)
    while i < length:
        char = formula[i]
        if char.isspace():
            i += 1
            continue

        number = _NUMBER_RE.match(formula, i)
        if number:
            text = number.group()
            value = float(text) if "." in text else int(text)
            tokens.append(Token("number", value, i))
            i = number.end()
            continue

        if char in ("'", '"'):
            start = i
            i += 1
            chars = []
            while i < length and formula[i] != char:
                if formula[i] == "\\" and i + 1 < length:
                    i += 1
                chars.append(formula[i])
                i += 1
            if i >= length:
                raise FormulaError(
                    f"Unterminated string starting at position {start}",
                    formula=formula,
                    position=start,
                )
            i += 1
            tokens.append(Token("string", "".join(chars), start))
            continue

        ident = _IDENT_RE.match(formula, i)
        if ident:
            tokens.append(Token("ident", ident.group(), i))
            i = ident.end()
            continue

        pair = formula[i:i + 2]
        if pair in _TWO_CHAR_OPS:
            tokens.append(Token("op", pair, i))
            i += 2
            continue
        if char in _ONE_CHAR_OPS:
            tokens.append(Token("op", char, i))
            i += 1
            continue
        if char in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[char], char, i))
            i += 1
            continue

        raise FormulaError(
            f"Unexpected character '{char}' at position {i}",
            formula=formula,
            position=i,
        )
    return tokens


# ============================================
# Syntax tree
# ============================================

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Reference:
    path: str
    pos: int


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any


@dataclass(frozen=True)
class Binary:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Call:
    name: str
    args: Tuple[Any, ...]
    pos: int


_COMPARISON_OPS = ("==", "!=", "<", ">", "<=", ">=")


class _Parser:
    """Recursive-descent parser producing an immutable syntax tree."""

    def __init__(self, formula: str):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.pos = 0

    def parse(self):
        if not self.tokens:
            return Literal(None)
        node = self._or()
        token = self._peek()
        if token is not None:
            self._fail(f"Unexpected '{token.value}'", token)
        return node

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _at_op(self, *ops: str) -> bool:
        token = self._peek()
        return token is not None and token.kind == "op" and token.value in ops

    def _fail(self, message: str, token: Optional[Token]):
        position = token.pos if token is not None else len(self.formula)
        raise FormulaError(
            f"{message} at position {position}",
            formula=self.formula,
            position=position,
        )

    def _expect(self, kind: str) -> Token:
        token = self._peek()
        if token is None or token.kind != kind:
            found = f"'{token.value}'" if token is not None else "end of formula"
            self._fail(f"Expected {kind}, found {found}", token)
        return self._advance()

    def _or(self):
        node = self._and()
        while self._at_op("||"):
            self._advance()
            node = Binary("||", node, self._and())
        return node

    def _and(self):
        node = self._comparison()
        while self._at_op("&&"):
            self._advance()
            node = Binary("&&", node, self._comparison())
        return node

    def _comparison(self):
        node = self._additive()
        while self._at_op(*_COMPARISON_OPS):
            op = self._advance().value
            node = Binary(op, node, self._additive())
        return node

    def _additive(self):
        node = self._multiplicative()
        while self._at_op("+", "-"):
            op = self._advance().value
            node = Binary(op, node, self._multiplicative())
        return node

    def _multiplicative(self):
        node = self._power()
        while self._at_op("*", "/", "%"):
            op = self._advance().value
            node = Binary(op, node, self._power())
        return node

    def _power(self):
        node = self._unary()
        if self._at_op("^"):
            self._advance()
            # Right associative
            node = Binary("^", node, self._power())
        return node

    def _unary(self):
        if self._at_op("-", "!"):
            op = self._advance().value
            return Unary(op, self._unary())
        return self._primary()

    def _primary(self):
        token = self._peek()
        if token is None:
            self._fail("Unexpected end of formula", None)

        if token.kind in ("number", "string"):
            self._advance()
            return Literal(token.value)

        if token.kind == "lparen":
            self._advance()
            node = self._or()
            self._expect("rparen")
            return node

        if token.kind == "ident":
            self._advance()
            name = token.value
            next_token = self._peek()
            if next_token is not None and next_token.kind == "lparen":
                if "." in name:
                    self._fail(f"Invalid function name '{name}'", token)
                return self._call(name, token)
            if name.lower() in _KEYWORDS:
                return Literal(_KEYWORDS[name.lower()])
            return Reference(name, token.pos)

        self._fail(f"Unexpected '{token.value}'", token)

    def _call(self, name: str, name_token: Token):
        self._expect("lparen")
        args = []
        if self._peek() is not None and self._peek().kind != "rparen":
            args.append(self._or())
            while self._peek() is not None and self._peek().kind == "comma":
                self._advance()
                args.append(self._or())
        self._expect("rparen")

        key = name.lower()
        if key not in FUNCTIONS and key != "if":
            raise FormulaError(
                f"Unknown function '{name}'",
                formula=self.formula,
                identifier=name,
                position=name_token.pos,
            )
        return Call(key, tuple(args), name_token.pos)


@lru_cache(maxsize=512)
def parse_formula(formula: str):
    """Parse a formula into a syntax tree (cached, trees are immutable).

    Raises:
        FormulaError: On any syntax error or unknown function
    """
    return _Parser(formula).parse()


# ============================================
# Value helpers
# ============================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any, context: str) -> Any:
    if _is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                return float(text)
            except ValueError:
                pass
    raise FormulaError(f"Expected a number for {context}, got {value!r}")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _normalize_number(value: float) -> Any:
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and not value:
        return True
    return False


def _flatten_args(args: Sequence[Any]) -> List[Any]:
    flat: List[Any] = []
    for arg in args:
        if isinstance(arg, (list, tuple)):
            flat.extend(arg)
        else:
            flat.append(arg)
    return flat


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _loose_equal(left: Any, right: Any) -> bool:
    if _is_number(left) and isinstance(right, str) or _is_number(right) and isinstance(left, str):
        try:
            return _to_number(left, "comparison") == _to_number(right, "comparison")
        except FormulaError:
            return False
    return left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        pass
    else:
        left = _to_number(left, f"'{op}'")
        right = _to_number(right, f"'{op}'")
    if op == "<":
        return left < right
    if op == ">":
        return left > right
    if op == "<=":
        return left <= right
    return left >= right


# ============================================
# Built-in functions
# ============================================

def _fn_round(value, decimals=0):
    number = _to_number(value, "round()")
    places = int(_to_number(decimals, "round()"))
    if abs(places) > MAX_ROUND_PLACES:
        raise FormulaError(
            f"round() places must be between -{MAX_ROUND_PLACES} and {MAX_ROUND_PLACES}, got {places}"
        )
    # Round half up like spreadsheet tools, not banker's rounding
    if places < 0:
        factor = 10 ** -places
        return math.floor(number / factor + 0.5) * factor
    factor = 10 ** places
    result = math.floor(number * factor + 0.5) / factor
    return int(result) if places == 0 else result


def _fn_min(*args):
    values = [_to_number(v, "min()") for v in _flatten_args(args)]
    if not values:
        raise FormulaError("min() requires at least one value")
    return min(values)


def _fn_max(*args):
    values = [_to_number(v, "max()") for v in _flatten_args(args)]
    if not values:
        raise FormulaError("max() requires at least one value")
    return max(values)


def _fn_sum(*args):
    return sum(_to_number(v, "sum()") for v in _flatten_args(args) if v is not None)


def _fn_average(*args):
    values = [_to_number(v, "average()") for v in _flatten_args(args) if v is not None]
    return _normalize_number(sum(values) / len(values)) if values else 0


def _fn_mod(value, divisor):
    divisor = _to_number(divisor, "mod()")
    if divisor == 0:
        raise FormulaError("Division by zero in mod()")
    return _normalize_number(math.fmod(_to_number(value, "mod()"), divisor))


def _fn_sqrt(value):
    number = _to_number(value, "sqrt()")
    if number < 0:
        raise FormulaError("sqrt() of a negative number")
    return _normalize_number(math.sqrt(number))


def _fn_right(text, count):
    text = _to_text(text)
    count = int(_to_number(count, "right()"))
    return text[len(text) - count:] if count > 0 else ""


def _fn_mid(text, start, length):
    start = int(_to_number(start, "mid()"))
    return _to_text(text)[start:start + int(_to_number(length, "mid()"))]


def _fn_coalesce(*args):
    for arg in args:
        if arg is not None and arg != "":
            return arg
    return None


def _fn_join(items, separator=", "):
    if isinstance(items, (list, tuple)):
        return _to_text(separator).join(_to_text(i) for i in items)
    return _to_text(items)


def _date_part(attribute: str):
    def _part(value):
        parsed = _to_datetime(value)
        return getattr(parsed, attribute) if parsed is not None else 0
    return _part


def _fn_date_add(value, amount, unit):
    parsed = _to_datetime(value)
    if parsed is None:
        return None
    amount = int(_to_number(amount, "dateAdd()"))
    unit = _to_text(unit).lower()
    if unit not in ("days", "months", "years"):
        raise FormulaError(f"Unknown dateAdd() unit '{unit}'")
    return (parsed + relativedelta(**{unit: amount})).isoformat()


def _fn_date_diff(first, second, unit="days"):
    end = _to_datetime(first)
    start = _to_datetime(second)
    if end is None or start is None:
        return 0
    unit = _to_text(unit).lower()
    if unit == "days":
        return math.floor((end - start).total_seconds() / 86400)
    if unit == "months":
        return (end.year - start.year) * 12 + (end.month - start.month)
    if unit == "years":
        return end.year - start.year
    return int((end - start).total_seconds() * 1000)


# name -> (callable, min args, max args or None for variadic)
FUNCTIONS: Dict[str, Tuple[Callable[..., Any], int, Optional[int]]] = {
    # String
    "len": (lambda text: len(_to_text(text)), 1, 1),
    "mid": (_fn_mid, 3, 3),
    "left": (lambda text, count: _to_text(text)[:max(int(_to_number(count, "left()")), 0)], 2, 2),
    "right": (_fn_right, 2, 2),
    "concat": (lambda *args: "".join(_to_text(a) for a in args), 0, None),
    "upper": (lambda text: _to_text(text).upper(), 1, 1),
    "lower": (lambda text: _to_text(text).lower(), 1, 1),
    "trim": (lambda text: _to_text(text).strip(), 1, 1),
    "replace": (lambda text, old, new: _to_text(text).replace(_to_text(old), _to_text(new)), 3, 3),
    "split": (lambda text, sep: _to_text(text).split(_to_text(sep)), 2, 2),
    # Numeric
    "sum": (_fn_sum, 0, None),
    "average": (_fn_average, 0, None),
    "min": (_fn_min, 1, None),
    "max": (_fn_max, 1, None),
    "round": (_fn_round, 1, 2),
    "floor": (lambda v: math.floor(_to_number(v, "floor()")), 1, 1),
    "ceil": (lambda v: math.ceil(_to_number(v, "ceil()")), 1, 1),
    "abs": (lambda v: abs(_to_number(v, "abs()")), 1, 1),
    "sqrt": (_fn_sqrt, 1, 1),
    "pow": (lambda b, e: _normalize_number(math.pow(_to_number(b, "pow()"), _to_number(e, "pow()"))), 2, 2),
    "mod": (_fn_mod, 2, 2),
    # Date
    "now": (lambda: datetime.now(timezone.utc).isoformat(), 0, 0),
    "today": (lambda: date.today().isoformat(), 0, 0),
    "year": (_date_part("year"), 1, 1),
    "month": (_date_part("month"), 1, 1),
    "day": (_date_part("day"), 1, 1),
    "dateadd": (_fn_date_add, 3, 3),
    "datediff": (_fn_date_diff, 2, 3),
    # Array
    "count": (lambda items: len(items) if isinstance(items, (list, tuple)) else 0, 1, 1),
    "first": (lambda items: items[0] if isinstance(items, (list, tuple)) and items else None, 1, 1),
    "last": (lambda items: items[-1] if isinstance(items, (list, tuple)) and items else None, 1, 1),
    "join": (_fn_join, 1, 2),
    "contains": (lambda items, value: isinstance(items, (list, tuple)) and value in items, 2, 2),
    # Conditional (``if`` is evaluated lazily by the evaluator)
    "coalesce": (_fn_coalesce, 0, None),
    "isnull": (lambda value: value is None, 1, 1),
    "isempty": (_is_empty, 1, 1),
}


# ============================================
# Evaluator
# ============================================

class _Evaluator:
    def __init__(self, formula: str, bindings: Mapping[str, Any], known_paths: Collection[str]):
        self.formula = formula
        self.bindings = bindings
        self.known_paths = known_paths

    def run(self, node):
        try:
            return self._eval(node)
        except FormulaError as exc:
            if exc.formula is None:
                exc.formula = self.formula
            raise
        except (TypeError, ValueError, OverflowError, ZeroDivisionError) as exc:
            raise FormulaError(f"Formula evaluation failed: {exc}", formula=self.formula) from exc

    def _eval(self, node):
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Reference):
            return self._resolve(node)
        if isinstance(node, Unary):
            operand = self._eval(node.operand)
            if node.op == "!":
                return not operand
            return -_to_number(operand, "unary '-'")
        if isinstance(node, Binary):
            return self._binary(node)
        if isinstance(node, Call):
            return self._call(node)
        raise FormulaError(f"Unsupported expression node {type(node).__name__}")

    def _resolve(self, node: Reference):
        if contains_path(self.bindings, node.path):
            return resolve_value(self.bindings, node.path)
        if any(is_under(node.path, known) for known in self.known_paths):
            return None
        raise FormulaError(
            f"Unknown identifier '{node.path}' at position {node.pos}",
            identifier=node.path,
            position=node.pos,
        )

    def _binary(self, node: Binary):
        op = node.op
        if op == "&&":
            left = self._eval(node.left)
            return self._eval(node.right) if left else left
        if op == "||":
            left = self._eval(node.left)
            return left if left else self._eval(node.right)

        left = self._eval(node.left)
        right = self._eval(node.right)

        if op == "==":
            return _loose_equal(left, right)
        if op == "!=":
            return not _loose_equal(left, right)
        if op in ("<", ">", "<=", ">="):
            return _compare(op, left, right)
        if op == "+" and (isinstance(left, str) or isinstance(right, str)):
            return _to_text(left) + _to_text(right)

        a = _to_number(left, f"'{op}'")
        b = _to_number(right, f"'{op}'")
        if op == "+":
            return a + b
        if op == "-":
            return a - b
        if op == "*":
            return a * b
        if op == "/":
            if b == 0:
                raise FormulaError("Division by zero")
            return _normalize_number(a / b)
        if op == "%":
            if b == 0:
                raise FormulaError("Division by zero")
            return _normalize_number(math.fmod(a, b))
        if op == "^":
            return _normalize_number(math.pow(a, b))
        raise FormulaError(f"Unsupported operator '{op}'")

    def _call(self, node: Call):
        if node.name == "if":
            if len(node.args) not in (2, 3):
                raise FormulaError(
                    f"if() takes 2 or 3 arguments, got {len(node.args)}",
                    identifier="if",
                    position=node.pos,
                )
            if self._eval(node.args[0]):
                return self._eval(node.args[1])
            return self._eval(node.args[2]) if len(node.args) == 3 else None

        fn, min_args, max_args = FUNCTIONS[node.name]
        count = len(node.args)
        if count < min_args or (max_args is not None and count > max_args):
            expected = str(min_args) if min_args == max_args else (
                f"at least {min_args}" if max_args is None else f"{min_args}-{max_args}"
            )
            raise FormulaError(
                f"{node.name}() takes {expected} arguments, got {count}",
                identifier=node.name,
                position=node.pos,
            )
        return fn(*[self._eval(arg) for arg in node.args])


def evaluate(
    formula: str,
    bindings: Mapping[str, Any],
    known_paths: Optional[Iterable[str]] = None,
) -> Any:
    """Evaluate a formula against flat field bindings.

    Args:
        formula: Formula text
        bindings: Flat ``path -> value`` map (values merged with derived values)
        known_paths: Field paths declared by the form. A reference to a known
            path that has no value resolves to None instead of failing.

    Returns:
        The result: number, string, boolean, list or None

    Raises:
        FormulaError: On parse failure, unknown identifier or function,
            wrong argument count, or type mismatch
    """
    if not formula or not formula.strip():
        return None
    tree = parse_formula(formula)
    return _Evaluator(formula, bindings, tuple(known_paths or ())).run(tree)


def validate_formula(formula: str) -> Tuple[bool, Optional[str]]:
    """Check formula syntax without evaluating it.

    Returns:
        (True, None) if the formula parses, else (False, error message)
    """
    if not formula or not formula.strip():
        return True, None
    try:
        parse_formula(formula)
    except FormulaError as exc:
        return False, str(exc)
    return True, None


def extract_field_references(formula: str) -> List[str]:
    """List the field paths a formula references, in order of appearance.

    Unparseable formulas yield an empty list.

    Examples:
        >>> extract_field_references("round(subtotal * (1 + tax.rate / 100), 2)")
        ['subtotal', 'tax.rate']
    """
    if not formula or not formula.strip():
        return []
    try:
        tree = parse_formula(formula)
    except FormulaError:
        return []

    found: List[str] = []

    def _walk(node):
        if isinstance(node, Reference):
            if node.path not in found:
                found.append(node.path)
        elif isinstance(node, Unary):
            _walk(node.operand)
        elif isinstance(node, Binary):
            _walk(node.left)
            _walk(node.right)
        elif isinstance(node, Call):
            for arg in node.args:
                _walk(arg)

    _walk(tree)
    return found


# ============================================
# Computed fields
# ============================================

def _computed_fields(fields: Iterable[FieldConfig]) -> List[FieldConfig]:
    return [f for f in fields if f.computed is not None and f.included]


def _dependencies(field: FieldConfig, computed_paths: Sequence[str]) -> List[str]:
    declared = list(field.computed.dependencies) + extract_field_references(field.computed.formula)
    deps: List[str] = []
    for dep in declared:
        for path in computed_paths:
            if (is_under(dep, path) or is_under(path, dep)) and path not in deps:
                deps.append(path)
    return deps


def _find_cycle(graph: Dict[str, List[str]], remaining: Sequence[str]) -> List[str]:
    pending = set(remaining)
    trail: List[str] = []
    node = remaining[0]
    while node not in trail:
        trail.append(node)
        node = next(dep for dep in graph[node] if dep in pending)
    return trail[trail.index(node):] + [node]


def resolve_computation_order(fields: Iterable[FieldConfig]) -> List[FieldConfig]:
    """Order computed fields so every field follows the fields it depends on.

    Dependencies come from ``computed.dependencies`` plus the references in
    the formula itself. Ties keep declaration order.

    Raises:
        FormulaError: If the dependencies form a cycle; ``cycle`` lists it
    """
    computed = _computed_fields(fields)
    by_path = {f.path: f for f in computed}
    paths = list(by_path)
    graph = {f.path: _dependencies(f, paths) for f in computed}

    ordered: List[str] = []
    remaining = list(paths)
    while remaining:
        ready = next(
            (p for p in remaining if all(dep in ordered for dep in graph[p])),
            None,
        )
        if ready is None:
            cycle = _find_cycle(graph, remaining)
            raise FormulaError(
                f"Computed field dependency cycle: {' -> '.join(cycle)}",
                cycle=cycle,
            )
        ordered.append(ready)
        remaining.remove(ready)
    return [by_path[p] for p in ordered]


def coerce_output(value: Any, output_type: Optional[str]) -> Any:
    """Coerce a formula result to a computed field's declared output type.

    Raises:
        FormulaError: If a number is required but the result is not numeric
    """
    if value is None or output_type is None:
        return value
    if output_type == "number":
        if isinstance(value, bool):
            raise FormulaError(f"Expected a number result, got {value!r}")
        return _to_number(value, "computed result")
    if output_type == "string":
        return _to_text(value)
    if output_type == "boolean":
        return bool(value)
    return value


def compute_derived_values(
    fields: Sequence[FieldConfig],
    values: Mapping[str, Any],
) -> Dict[str, Any]:
    """Evaluate every computed field in dependency order.

    A field whose formula fails is left out of the result; fields depending
    on it then see it as empty.

    Raises:
        FormulaError: Only for dependency cycles, which are configuration bugs
    """
    order = resolve_computation_order(fields)
    known_paths = [f.path for f in fields]
    computed_paths = {f.path for f in order}
    # Computed paths resolve through derived only, never through stored values
    inputs = {k: v for k, v in values.items() if k not in computed_paths}
    derived: Dict[str, Any] = {}
    for field in order:
        bindings = dict(inputs)
        bindings.update(derived)
        try:
            parse_formula(field.computed.formula)
        except FormulaError as exc:
            logger.warning("Computed field '%s' has an invalid formula: %s", field.path, exc)
            continue
        try:
            result = coerce_output(
                evaluate(field.computed.formula, bindings, known_paths),
                field.computed.output_type,
            )
        except FormulaError as exc:
            logger.debug("Computed field '%s' is undefined: %s", field.path, exc)
            continue
        if result is not None:
            derived[field.path] = result
    return derived


__all__ = [
    "FUNCTIONS",
    "tokenize",
    "parse_formula",
    "evaluate",
    "validate_formula",
    "extract_field_references",
    "resolve_computation_order",
    "coerce_output",
    "compute_derived_values",
]
