"""Question type registry and attribute validation.

A question is a tagged variant: a ``question_type`` discriminator plus an
``attributes`` payload whose shape depends on the type (options for a
multiple choice question, a maximum rating for a rating question, ...).

Each registered type carries a JSON Schema for its attributes. Payloads are
validated with jsonschema's Draft7Validator and failures are translated into
structured FieldError objects, the same format validation uses for values.

Usage:
    >>> field = create_field("rating", path="satisfaction", label="Satisfaction")
    >>> field.type, field.attributes["maxRating"]
    (<FieldType.NUMBER: 'number'>, 5)
    >>> errors = validate_attributes("rating", {"maxRating": 50})
    >>> errors[0].path
    'attributes.maxRating'
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import jsonschema
from jsonschema import Draft7Validator

from formengine.errors import ConfigurationError, FieldError, FieldErrorCode
from formengine.types import FieldConfig, FieldType, ValidationRules

logger = logging.getLogger(__name__)


class QuestionCategory(str, Enum):
    """Groups used to organize question types in a builder palette."""
    TEXT_INPUT = "text_input"
    CHOICE = "choice"
    RATING_SCALE = "rating_scale"
    DATE_TIME = "date_time"
    ADVANCED = "advanced"
    SPECIALIZED = "specialized"


# Schema building blocks
_BOOL = {"type": "boolean"}
_STRING = {"type": "string"}
_NUMBER = {"type": "number"}
_STRING_LIST = {"type": "array", "items": _STRING}


def _int(minimum: Optional[int] = None, maximum: Optional[int] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "integer"}
    if minimum is not None:
        schema["minimum"] = minimum
    if maximum is not None:
        schema["maximum"] = maximum
    return schema


def _enum(*values: str) -> Dict[str, Any]:
    return {"type": "string", "enum": list(values)}


def _object(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


_OPTION = _object(
    {
        "id": _STRING,
        "label": _STRING,
        "value": _STRING,
        "imageUrl": _STRING,
        "description": _STRING,
        "disabled": _BOOL,
    },
    required=["id", "label", "value"],
)

_CHOICE_LAYOUT = {
    "options": {"type": "array", "items": _OPTION},
    "layout": _enum("vertical", "horizontal", "grid"),
    "columns": _int(1, 6),
    "randomize": _BOOL,
    "allowOther": _BOOL,
    "otherLabel": _STRING,
}


def _default_options() -> List[Dict[str, str]]:
    return [
        {"id": "option_1", "label": "Option 1", "value": "option_1"},
        {"id": "option_2", "label": "Option 2", "value": "option_2"},
    ]


@dataclass(frozen=True)
class QuestionTypeEntry:
    """A registered question type.

    Attributes:
        id: Discriminator stored on the question (e.g. "multiple_choice")
        display_name: Human-readable name
        category: Palette category
        field_type: Storage type of the answer
        attribute_schema: Draft 7 JSON Schema for the attributes payload
        defaults: Attributes applied when a question of this type is created
    """
    id: str
    display_name: str
    category: QuestionCategory
    field_type: FieldType
    attribute_schema: Dict[str, Any]
    defaults: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "id": self.id,
            "displayName": self.display_name,
            "category": self.category.value,
            "fieldType": self.field_type.value,
            "attributeSchema": self.attribute_schema,
            "defaults": copy.deepcopy(self.defaults),
        }


_ENTRIES = [
    # Text & input
    QuestionTypeEntry(
        id="short_text",
        display_name="Short Text",
        category=QuestionCategory.TEXT_INPUT,
        field_type=FieldType.STRING,
        attribute_schema=_object({
            "maxLength": _int(1, 10000),
            "showCharacterCount": _BOOL,
            "inputMask": _STRING,
            "autoCapitalize": _enum("none", "sentences", "words", "characters"),
            "spellcheck": _BOOL,
            "autocomplete": _STRING,
        }),
        defaults={"maxLength": 255, "showCharacterCount": False},
    ),
    QuestionTypeEntry(
        id="long_text",
        display_name="Long Text",
        category=QuestionCategory.TEXT_INPUT,
        field_type=FieldType.STRING,
        attribute_schema=_object({
            "minLength": _int(0),
            "maxLength": _int(1),
            "rows": _int(1, 50),
            "autoResize": _BOOL,
            "showCharacterCount": _BOOL,
            "richText": _BOOL,
            "spellcheck": _BOOL,
        }),
        defaults={"rows": 4, "autoResize": True, "showCharacterCount": True},
    ),
    QuestionTypeEntry(
        id="number",
        display_name="Number",
        category=QuestionCategory.TEXT_INPUT,
        field_type=FieldType.NUMBER,
        attribute_schema=_object({
            "min": _NUMBER,
            "max": _NUMBER,
            "step": {"type": "number", "minimum": 0},
            "decimalPlaces": _int(0, 10),
            "format": _enum("number", "currency", "percentage"),
            "currencyCode": _STRING,
            "showStepper": _BOOL,
            "useThousandSeparator": _BOOL,
            "prefix": _STRING,
            "suffix": _STRING,
        }),
        defaults={"step": 1, "format": "number", "showStepper": True},
    ),
    QuestionTypeEntry(
        id="email",
        display_name="Email",
        category=QuestionCategory.TEXT_INPUT,
        field_type=FieldType.EMAIL,
        attribute_schema=_object({
            "allowMultiple": _BOOL,
            "validateFormat": _BOOL,
            "blockDisposable": _BOOL,
            "allowedDomains": _STRING_LIST,
            "blockedDomains": _STRING_LIST,
            "confirmEmail": _BOOL,
        }),
        defaults={"validateFormat": True},
    ),
    QuestionTypeEntry(
        id="phone",
        display_name="Phone",
        category=QuestionCategory.TEXT_INPUT,
        field_type=FieldType.PHONE,
        attribute_schema=_object({
            "defaultCountry": _STRING,
            "showCountrySelector": _BOOL,
            "allowedCountries": _STRING_LIST,
            "format": _enum("national", "international", "e164"),
            "validateFormat": _BOOL,
        }),
        defaults={"format": "international", "validateFormat": True},
    ),
    QuestionTypeEntry(
        id="url",
        display_name="URL",
        category=QuestionCategory.TEXT_INPUT,
        field_type=FieldType.URL,
        attribute_schema=_object({
            "requireHttps": _BOOL,
            "validateFormat": _BOOL,
            "allowedProtocols": _STRING_LIST,
            "showPreview": _BOOL,
        }),
        defaults={"validateFormat": True},
    ),
    # Choice
    QuestionTypeEntry(
        id="multiple_choice",
        display_name="Multiple Choice",
        category=QuestionCategory.CHOICE,
        field_type=FieldType.STRING,
        attribute_schema=_object(
            dict(_CHOICE_LAYOUT, showImages=_BOOL, imageSize=_enum("small", "medium", "large")),
            required=["options"],
        ),
        defaults={"options": _default_options(), "layout": "vertical"},
    ),
    QuestionTypeEntry(
        id="checkboxes",
        display_name="Checkboxes",
        category=QuestionCategory.CHOICE,
        field_type=FieldType.ARRAY,
        attribute_schema=_object(
            dict(
                _CHOICE_LAYOUT,
                minSelections=_int(0),
                maxSelections=_int(0),
                showSelectAll=_BOOL,
            ),
            required=["options"],
        ),
        defaults={"options": _default_options(), "layout": "vertical"},
    ),
    QuestionTypeEntry(
        id="dropdown",
        display_name="Dropdown",
        category=QuestionCategory.CHOICE,
        field_type=FieldType.STRING,
        attribute_schema=_object({
            "options": {"type": "array", "items": _OPTION},
            "multiple": _BOOL,
            "searchable": _BOOL,
            "allowCreate": _BOOL,
            "clearable": _BOOL,
            "lookup": _object({
                "collection": _STRING,
                "displayField": _STRING,
                "valueField": _STRING,
                "filterField": _STRING,
                "filterSourceField": _STRING,
                "searchable": _BOOL,
                "preloadOptions": _BOOL,
            }),
        }),
        defaults={"options": _default_options(), "searchable": False, "clearable": True},
    ),
    QuestionTypeEntry(
        id="yes_no",
        display_name="Yes / No",
        category=QuestionCategory.CHOICE,
        field_type=FieldType.BOOLEAN,
        attribute_schema=_object({
            "style": _enum("toggle", "buttons", "radio"),
            "yesLabel": _STRING,
            "noLabel": _STRING,
            "defaultValue": _BOOL,
            "valueType": _enum("boolean", "string"),
        }),
        defaults={"style": "toggle", "yesLabel": "Yes", "noLabel": "No"},
    ),
    # Rating & scale
    QuestionTypeEntry(
        id="rating",
        display_name="Rating",
        category=QuestionCategory.RATING_SCALE,
        field_type=FieldType.NUMBER,
        attribute_schema=_object({
            "maxRating": _int(1, 10),
            "iconType": _enum("star", "heart", "thumb", "emoji", "number", "custom"),
            "iconSize": _enum("small", "medium", "large"),
            "showLabels": _BOOL,
            "labels": {"type": "object"},
            "allowHalf": _BOOL,
        }),
        defaults={"maxRating": 5, "iconType": "star", "allowHalf": False},
    ),
    QuestionTypeEntry(
        id="scale",
        display_name="Scale",
        category=QuestionCategory.RATING_SCALE,
        field_type=FieldType.NUMBER,
        attribute_schema=_object({
            "minValue": _int(),
            "maxValue": _int(),
            "step": _int(1),
            "lowLabel": _STRING,
            "highLabel": _STRING,
            "middleLabel": _STRING,
            "displayStyle": _enum("buttons", "slider", "radio"),
        }),
        defaults={"minValue": 1, "maxValue": 10, "step": 1, "displayStyle": "buttons"},
    ),
    QuestionTypeEntry(
        id="slider",
        display_name="Slider",
        category=QuestionCategory.RATING_SCALE,
        field_type=FieldType.NUMBER,
        attribute_schema=_object({
            "min": _NUMBER,
            "max": _NUMBER,
            "step": _NUMBER,
            "defaultValue": _NUMBER,
            "showTicks": _BOOL,
            "showValue": _BOOL,
            "valuePosition": _enum("above", "below", "tooltip"),
            "range": _BOOL,
        }),
        defaults={"min": 0, "max": 100, "step": 1, "showValue": True},
    ),
    QuestionTypeEntry(
        id="nps",
        display_name="Net Promoter Score",
        category=QuestionCategory.RATING_SCALE,
        field_type=FieldType.NUMBER,
        attribute_schema=_object({
            "detractorLabel": _STRING,
            "passiveLabel": _STRING,
            "promoterLabel": _STRING,
            "showCategoryLabels": _BOOL,
            "useColorCoding": _BOOL,
        }),
        defaults={
            "detractorLabel": "Not likely",
            "promoterLabel": "Very likely",
            "useColorCoding": True,
        },
    ),
    # Date & time
    QuestionTypeEntry(
        id="date",
        display_name="Date",
        category=QuestionCategory.DATE_TIME,
        field_type=FieldType.DATE,
        attribute_schema=_object({
            "displayFormat": _STRING,
            "storageFormat": _enum("iso", "unix", "string"),
            "minDate": _STRING,
            "maxDate": _STRING,
            "disableWeekends": _BOOL,
            "disablePast": _BOOL,
            "disableFuture": _BOOL,
            "firstDayOfWeek": _int(0, 6),
            "pickerStyle": _enum("calendar", "input", "both"),
        }),
        defaults={"storageFormat": "iso", "firstDayOfWeek": 0, "pickerStyle": "calendar"},
    ),
    QuestionTypeEntry(
        id="time",
        display_name="Time",
        category=QuestionCategory.DATE_TIME,
        field_type=FieldType.TIME,
        attribute_schema=_object({
            "format": _enum("12h", "24h"),
            "minuteStep": _int(1, 60),
            "minTime": _STRING,
            "maxTime": _STRING,
            "showSeconds": _BOOL,
        }),
        defaults={"format": "24h", "minuteStep": 15},
    ),
    QuestionTypeEntry(
        id="datetime",
        display_name="Date & Time",
        category=QuestionCategory.DATE_TIME,
        field_type=FieldType.DATETIME,
        attribute_schema=_object({
            "dateFormat": _STRING,
            "timeFormat": _enum("12h", "24h"),
            "storageFormat": _enum("iso", "unix"),
            "timezone": _enum("local", "utc", "custom"),
            "customTimezone": _STRING,
            "minuteStep": _int(1, 60),
        }),
        defaults={"timeFormat": "24h", "storageFormat": "iso", "timezone": "local"},
    ),
    # Advanced
    QuestionTypeEntry(
        id="ranking",
        display_name="Ranking",
        category=QuestionCategory.ADVANCED,
        field_type=FieldType.ARRAY,
        attribute_schema=_object(
            {
                "items": {
                    "type": "array",
                    "items": _object({"id": _STRING, "label": _STRING}, required=["id", "label"]),
                },
                "minRank": _int(0),
                "maxRank": _int(0),
                "showRankNumbers": _BOOL,
                "allowTies": _BOOL,
            },
            required=["items"],
        ),
        defaults={
            "items": [{"id": "item_1", "label": "Item 1"}, {"id": "item_2", "label": "Item 2"}],
            "showRankNumbers": True,
        },
    ),
    # Specialized
    QuestionTypeEntry(
        id="address",
        display_name="Address",
        category=QuestionCategory.SPECIALIZED,
        field_type=FieldType.OBJECT,
        attribute_schema=_object({
            "components": {
                "type": "array",
                "items": _enum("street1", "street2", "city", "state", "postalCode", "country"),
            },
            "defaultCountry": _STRING,
            "requireAll": _BOOL,
            "allowedCountries": _STRING_LIST,
            "displayMode": _enum("single", "multi"),
        }),
        defaults={
            "components": ["street1", "street2", "city", "state", "postalCode", "country"],
            "displayMode": "multi",
        },
    ),
    QuestionTypeEntry(
        id="tags",
        display_name="Tags",
        category=QuestionCategory.SPECIALIZED,
        field_type=FieldType.ARRAY,
        attribute_schema=_object({
            "suggestions": _STRING_LIST,
            "allowCustom": _BOOL,
            "minTags": _int(0),
            "maxTags": _int(0),
            "maxTagLength": _int(1),
            "validationPattern": _STRING,
            "caseHandling": _enum("preserve", "lowercase", "uppercase"),
        }),
        defaults={"allowCustom": True, "caseHandling": "preserve"},
    ),
    QuestionTypeEntry(
        id="color_picker",
        display_name="Color Picker",
        category=QuestionCategory.SPECIALIZED,
        field_type=FieldType.STRING,
        attribute_schema=_object({
            "defaultColor": _STRING,
            "format": _enum("hex", "rgb", "hsl"),
            "showAlpha": _BOOL,
            "presetColors": _STRING_LIST,
            "presetsOnly": _BOOL,
        }),
        defaults={"format": "hex", "showAlpha": False},
    ),
]

QUESTION_TYPES: Dict[str, QuestionTypeEntry] = {entry.id: entry for entry in _ENTRIES}

_VALIDATORS: Dict[str, Draft7Validator] = {}


def get_question_type(type_id: str) -> QuestionTypeEntry:
    """Look up a registered question type.

    Raises:
        ConfigurationError: If the type is not registered
    """
    try:
        return QUESTION_TYPES[type_id]
    except KeyError:
        raise ConfigurationError(f"Unknown question type '{type_id}'") from None


def list_question_types(category: Optional[QuestionCategory] = None) -> List[QuestionTypeEntry]:
    """Registered question types in palette order, optionally filtered by category."""
    return [e for e in _ENTRIES if category is None or e.category == category]


def default_attributes(type_id: str) -> Dict[str, Any]:
    """A fresh copy of the type's default attributes."""
    return copy.deepcopy(get_question_type(type_id).defaults)


def _validator_for(entry: QuestionTypeEntry) -> Draft7Validator:
    validator = _VALIDATORS.get(entry.id)
    if validator is None:
        Draft7Validator.check_schema(entry.attribute_schema)
        validator = Draft7Validator(entry.attribute_schema)
        _VALIDATORS[entry.id] = validator
    return validator


def _translate_error(error: jsonschema.ValidationError) -> FieldError:
    """Translate a jsonschema ValidationError into a FieldError.

    Paths are prefixed with ``attributes`` so they read like the stored
    question document (``attributes.options.0.label``).
    """
    path = ".".join(["attributes"] + [str(p) for p in error.path])

    if error.validator == "required":
        missing = error.message.split("'")[1] if "'" in error.message else "field"
        full_path = f"{path}.{missing}"
        return FieldError(
            path=full_path,
            code=FieldErrorCode.REQUIRED,
            message=f"Attribute '{full_path}' is required",
            expected="required attribute",
        )

    if error.validator == "type":
        received_type = type(error.instance).__name__
        return FieldError(
            path=path,
            code=FieldErrorCode.INVALID_TYPE,
            message=f"Attribute '{path}' must be of type {error.validator_value}, got {received_type}",
            expected=error.validator_value,
            received=received_type,
        )

    if error.validator == "enum":
        return FieldError(
            path=path,
            code=FieldErrorCode.INVALID_VALUE,
            message=f"Attribute '{path}' must be one of: {', '.join(map(str, error.validator_value))}",
            expected=error.validator_value,
            received=error.instance,
        )

    if error.validator == "minimum":
        return FieldError(
            path=path,
            code=FieldErrorCode.TOO_SMALL,
            message=f"Attribute '{path}' must be at least {error.validator_value}",
            expected=f"minimum: {error.validator_value}",
            received=error.instance,
        )

    if error.validator == "maximum":
        return FieldError(
            path=path,
            code=FieldErrorCode.TOO_LARGE,
            message=f"Attribute '{path}' must be at most {error.validator_value}",
            expected=f"maximum: {error.validator_value}",
            received=error.instance,
        )

    return FieldError(
        path=path,
        code=FieldErrorCode.CUSTOM,
        message=f"Attribute '{path}' is invalid: {error.message}",
        expected=error.validator_value,
        received=error.instance,
    )


def validate_attributes(type_id: str, attributes: Mapping[str, Any]) -> List[FieldError]:
    """Validate an attributes payload against the type's schema.

    Returns:
        FieldErrors sorted by path (empty if the payload is valid)

    Raises:
        ConfigurationError: If the type is not registered
    """
    validator = _validator_for(get_question_type(type_id))
    errors = [_translate_error(e) for e in validator.iter_errors(dict(attributes))]
    return sorted(errors, key=lambda e: e.path)


def check_field_attributes(field_config: FieldConfig) -> None:
    """Ensure a field's question type is known and its attributes are valid.

    Fields without a question type pass unchecked.

    Raises:
        ConfigurationError: With every attribute error in the message
    """
    if field_config.question_type is None:
        return
    errors = validate_attributes(field_config.question_type, field_config.attributes)
    if errors:
        details = "; ".join(e.message for e in errors)
        raise ConfigurationError(
            f"Field '{field_config.path}' has invalid {field_config.question_type} attributes: {details}"
        )


def _rules_from_attributes(type_id: str, attributes: Mapping[str, Any]) -> Optional[ValidationRules]:
    # Attribute limits that map directly onto value validation
    if type_id in ("short_text", "long_text"):
        if "minLength" in attributes or "maxLength" in attributes:
            return ValidationRules(
                min_length=attributes.get("minLength"),
                max_length=attributes.get("maxLength"),
            )
    elif type_id in ("number", "slider"):
        if "min" in attributes or "max" in attributes:
            return ValidationRules(min=attributes.get("min"), max=attributes.get("max"))
    elif type_id == "rating":
        return ValidationRules(min=0, max=attributes.get("maxRating", 5))
    elif type_id == "nps":
        return ValidationRules(min=0, max=10)
    return None


def create_field(
    type_id: str,
    path: str,
    label: str,
    attributes: Optional[Mapping[str, Any]] = None,
    **overrides: Any,
) -> FieldConfig:
    """Create a FieldConfig for a question type.

    Attributes are the type's defaults overlaid with ``attributes``. Length
    and range attributes seed the field's validation rules unless
    ``validation`` is passed explicitly. Any other FieldConfig argument can
    be given as a keyword.

    Raises:
        ConfigurationError: If the type is unknown or the attributes invalid

    Examples:
        >>> field = create_field("short_text", "name", "Name", {"maxLength": 40})
        >>> field.validation.max_length
        40
    """
    entry = get_question_type(type_id)
    merged = default_attributes(type_id)
    merged.update(attributes or {})

    field_config = FieldConfig(
        path=path,
        label=label,
        type=entry.field_type,
        question_type=type_id,
        attributes=merged,
        validation=_rules_from_attributes(type_id, merged),
    )
    if overrides:
        field_config = replace(field_config, **overrides)
    check_field_attributes(field_config)
    logger.debug("Created %s field '%s'", type_id, path)
    return field_config


__all__ = [
    "QuestionCategory",
    "QuestionTypeEntry",
    "QUESTION_TYPES",
    "get_question_type",
    "list_question_types",
    "default_attributes",
    "validate_attributes",
    "check_field_attributes",
    "create_field",
]
