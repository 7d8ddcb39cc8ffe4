"""Exception taxonomy and structured error types for the form runtime.

Exceptions are reserved for configuration bugs a form author must fix:
- PathError: malformed dotted path (fatal to the single operation)
- FormulaError: unknown identifier, parse failure, type mismatch or
  dependency cycle in a formula
- ConfigurationError: invalid form configuration (duplicate paths, unknown
  modes or types, invalid question attributes)

Validation failures caused by end-user input are never raised. They are
returned as data: plain ``path -> message`` dicts from ``validate_form``, or
FieldError objects where callers need codes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class FormEngineError(Exception):
    """Base class for all form engine exceptions."""


class ConfigurationError(FormEngineError):
    """Raised when a form configuration is invalid."""


class PathError(FormEngineError):
    """Raised for malformed dotted paths.

    Attributes:
        path: The offending path
    """

    def __init__(self, path: Any, message: Optional[str] = None):
        self.path = path
        super().__init__(message or f"Invalid field path: {path!r}")


class FormulaError(FormEngineError):
    """Raised when a formula cannot be parsed or evaluated.

    Callers computing a single derived value or custom rule treat this as
    "undefined for this field" rather than a failure of the whole form.

    Attributes:
        formula: The formula text, if known
        identifier: Offending identifier or function name, if any
        position: Character offset of a syntax error, if any
        cycle: Field paths forming a dependency cycle, if any
    """

    def __init__(
        self,
        message: str,
        formula: Optional[str] = None,
        identifier: Optional[str] = None,
        position: Optional[int] = None,
        cycle: Optional[List[str]] = None,
    ):
        self.formula = formula
        self.identifier = identifier
        self.position = position
        self.cycle = cycle
        super().__init__(message)


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures."""
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    TOO_SMALL = "too_small"
    TOO_LARGE = "too_large"
    CUSTOM = "custom"


@dataclass(frozen=True)
class FieldError:
    """One failed rule on one form field.

    ``message`` is the label-based text shown next to the field in the
    form; ``code`` lets API callers branch without parsing it. Also used
    for question type attribute errors, with paths under ``attributes.``.

    Attributes:
        path: Field path the failure belongs to (e.g., "contact.email")
        code: Which rule failed
        message: Display message built from the field label
        expected: The bound or constraint that was violated, if any
        received: The offending value, if any

    Examples:
        >>> err = FieldError(
        ...     path="qty",
        ...     code=FieldErrorCode.TOO_SMALL,
        ...     message="Quantity must be at least 1",
        ...     received=0,
        ... )
        >>> err.to_dict()["code"]
        'too_small'
    """
    path: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses, omitting unset details."""
        result: Dict[str, Any] = {"path": self.path, "code": self.code.value, "message": self.message}
        for key in ("expected", "received"):
            detail = getattr(self, key)
            if detail is not None:
                result[key] = detail
        return result


__all__ = [
    "FormEngineError",
    "ConfigurationError",
    "PathError",
    "FormulaError",
    "FieldErrorCode",
    "FieldError",
]
