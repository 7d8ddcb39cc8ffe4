"""Core type definitions for the form runtime engine.

This module defines the declarative configuration a form author produces and
the engine consumes:
- FormMode: The request context every behavior decision depends on
- FieldType: Storage/editor type of a configured field
- ConditionOperator: Operators shared by conditional logic and custom rules
- FieldConfig and its parts (ValidationRules, ModeConfig, ComputedConfig,
  ConditionalLogic)
- FormConfiguration: The immutable input handed to the runtime

Every dataclass round-trips through ``to_dict``/``from_dict`` using the
camelCase keys stored by the form builder.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from dateutil import parser as date_parser

from formengine.errors import ConfigurationError, PathError
from formengine.paths import validate_path

if TYPE_CHECKING:
    from formengine.lifecycle import FormLifecycle


class FormMode(str, Enum):
    """Form rendering/execution modes.

    ``create`` and ``clone`` produce new documents; ``edit`` and ``view``
    hydrate from an existing document; ``search`` builds a filter.
    """
    CREATE = "create"
    EDIT = "edit"
    VIEW = "view"
    CLONE = "clone"
    SEARCH = "search"

    @property
    def is_new(self) -> bool:
        return self in (FormMode.CREATE, FormMode.CLONE)


class FieldType(str, Enum):
    """Field types understood by the runtime."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    ARRAY = "array"
    ARRAY_OBJECT = "array-object"
    OBJECT = "object"
    OBJECT_ID = "objectId"
    SECTION_HEADER = "section-header"
    DIVIDER = "divider"
    SPACER = "spacer"

    @property
    def is_layout(self) -> bool:
        """Layout-only types never hold a value."""
        return self in (FieldType.SECTION_HEADER, FieldType.DIVIDER, FieldType.SPACER)


class ConditionOperator(str, Enum):
    """Operators available to conditional logic."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"
    IS_TRUE = "isTrue"
    IS_FALSE = "isFalse"


def parse_mode(mode: Union[str, FormMode]) -> FormMode:
    """Normalize a mode string to FormMode.

    Raises:
        ConfigurationError: If the mode is not one of the known modes
    """
    if isinstance(mode, FormMode):
        return mode
    try:
        return FormMode(mode)
    except ValueError:
        raise ConfigurationError(
            f"Unknown form mode '{mode}'. Expected one of: "
            f"{', '.join(m.value for m in FormMode)}"
        ) from None


def _parse_modes(raw: Optional[List[str]]) -> Optional[FrozenSet[FormMode]]:
    if raw is None:
        return None
    return frozenset(parse_mode(m) for m in raw)


def _dump_modes(modes: FrozenSet[FormMode]) -> List[str]:
    # Stable order for serialization
    return [m.value for m in FormMode if m in modes]


@dataclass(frozen=True)
class ValidationRules:
    """Per-field validation rules.

    Attributes:
        min: Minimum numeric value (number fields)
        max: Maximum numeric value (number fields)
        min_length: Minimum string length
        max_length: Maximum string length
        pattern: Regular expression a textual value must match (search semantics)
        pattern_message: Message used instead of the generic format error
        custom_validator: Formula that must evaluate truthy for the value to pass
        custom_message: Message used when the custom validator fails
    """
    min: Optional[float] = None
    max: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None
    custom_validator: Optional[str] = None
    custom_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        pairs = [
            ("min", self.min),
            ("max", self.max),
            ("minLength", self.min_length),
            ("maxLength", self.max_length),
            ("pattern", self.pattern),
            ("patternMessage", self.pattern_message),
            ("customValidator", self.custom_validator),
            ("customMessage", self.custom_message),
        ]
        return {key: value for key, value in pairs if value is not None}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValidationRules":
        """Create ValidationRules from dict."""
        return cls(
            min=data.get("min"),
            max=data.get("max"),
            min_length=data.get("minLength"),
            max_length=data.get("maxLength"),
            pattern=data.get("pattern"),
            pattern_message=data.get("patternMessage"),
            custom_validator=data.get("customValidator"),
            custom_message=data.get("customMessage"),
        )


@dataclass(frozen=True)
class ModeConfig:
    """Mode-specific overrides for a field.

    ``None`` means "no override" for that behavior; an empty set means
    "in no mode".
    """
    visible_in: Optional[FrozenSet[FormMode]] = None
    editable_in: Optional[FrozenSet[FormMode]] = None
    required_in: Optional[FrozenSet[FormMode]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {}
        if self.visible_in is not None:
            result["visibleIn"] = _dump_modes(self.visible_in)
        if self.editable_in is not None:
            result["editableIn"] = _dump_modes(self.editable_in)
        if self.required_in is not None:
            result["requiredIn"] = _dump_modes(self.required_in)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModeConfig":
        """Create ModeConfig from dict."""
        return cls(
            visible_in=_parse_modes(data.get("visibleIn")),
            editable_in=_parse_modes(data.get("editableIn")),
            required_in=_parse_modes(data.get("requiredIn")),
        )


@dataclass(frozen=True)
class ComputedConfig:
    """Formula-driven value for a computed field.

    Attributes:
        formula: Expression evaluated by formengine.formula
        dependencies: Field paths the formula reads (used for ordering)
        output_type: Optional coercion of the result: number, string or boolean
    """
    formula: str
    dependencies: Tuple[str, ...] = ()
    output_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "formula": self.formula,
            "dependencies": list(self.dependencies),
        }
        if self.output_type is not None:
            result["outputType"] = self.output_type
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComputedConfig":
        """Create ComputedConfig from dict."""
        return cls(
            formula=data.get("formula", ""),
            dependencies=tuple(data.get("dependencies") or ()),
            output_type=data.get("outputType"),
        )


@dataclass(frozen=True)
class FieldCondition:
    """A single condition: ``<field> <operator> <value>``."""
    field: str
    operator: ConditionOperator
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"field": self.field, "operator": self.operator.value}
        if self.value is not None:
            result["value"] = self.value
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldCondition":
        """Create FieldCondition from dict."""
        return cls(
            field=data["field"],
            operator=ConditionOperator(data["operator"]),
            value=data.get("value"),
        )


@dataclass(frozen=True)
class ConditionalLogic:
    """Show/hide a field depending on other field values.

    Attributes:
        action: "show" (visible when conditions are met) or "hide"
        logic_type: "all" (AND) or "any" (OR)
        conditions: Conditions to combine
    """
    action: str = "show"
    logic_type: str = "all"
    conditions: Tuple[FieldCondition, ...] = ()

    def __post_init__(self):
        if self.action not in ("show", "hide"):
            raise ConfigurationError(f"Invalid conditional logic action '{self.action}'")
        if self.logic_type not in ("all", "any"):
            raise ConfigurationError(f"Invalid conditional logic type '{self.logic_type}'")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "action": self.action,
            "logicType": self.logic_type,
            "conditions": [c.to_dict() for c in self.conditions],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConditionalLogic":
        """Create ConditionalLogic from dict."""
        return cls(
            action=data.get("action", "show"),
            logic_type=data.get("logicType", "all"),
            conditions=tuple(FieldCondition.from_dict(c) for c in data.get("conditions") or ()),
        )


@dataclass(frozen=True)
class FieldConfig:
    """One configured form field.

    Attributes:
        path: Dotted document path, unique within a form (e.g. "user.email")
        label: Display label, also used in validation messages
        type: Field type
        included: Whether the field participates in the form at all
        required: Static requiredness (overridden by mode_config.required_in)
        include_in_document: Explicit inclusion in the persisted document.
            None means default: included for ordinary fields, excluded for
            computed fields.
        default_value: Value applied in create mode (and to cleared clone fields)
        validation: Validation rules
        mode_config: Per-mode visibility/editability/requiredness overrides
        computed: Formula configuration for derived fields
        conditional_logic: Show/hide rules evaluated against current values
        question_type: Optional question type id (see formengine.question_types)
        attributes: Type-specific attribute payload for question_type

    Examples:
        >>> field = FieldConfig(path="user.email", label="Email", type=FieldType.EMAIL)
        >>> field.persists
        True
        >>> total = FieldConfig(
        ...     path="total", label="Total", type=FieldType.NUMBER,
        ...     computed=ComputedConfig(formula="quantity * price"),
        ... )
        >>> total.persists
        False
    """
    path: str
    label: str
    type: FieldType = FieldType.STRING
    included: bool = True
    required: bool = False
    include_in_document: Optional[bool] = None
    default_value: Any = None
    validation: Optional[ValidationRules] = None
    mode_config: Optional[ModeConfig] = None
    computed: Optional[ComputedConfig] = None
    conditional_logic: Optional[ConditionalLogic] = None
    placeholder: Optional[str] = None
    description: Optional[str] = None
    question_type: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_default(self) -> bool:
        return self.default_value is not None

    @property
    def persists(self) -> bool:
        """Whether this field's value belongs in the persisted document."""
        if self.include_in_document is not None:
            return self.include_in_document
        return self.computed is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "path": self.path,
            "label": self.label,
            "type": self.type.value,
            "included": self.included,
            "required": self.required,
        }
        if self.include_in_document is not None:
            result["includeInDocument"] = self.include_in_document
        if self.default_value is not None:
            result["defaultValue"] = self.default_value
        if self.validation is not None:
            result["validation"] = self.validation.to_dict()
        if self.mode_config is not None:
            result["modeConfig"] = self.mode_config.to_dict()
        if self.computed is not None:
            result["computed"] = self.computed.to_dict()
        if self.conditional_logic is not None:
            result["conditionalLogic"] = self.conditional_logic.to_dict()
        if self.placeholder is not None:
            result["placeholder"] = self.placeholder
        if self.description is not None:
            result["description"] = self.description
        if self.question_type is not None:
            result["questionType"] = self.question_type
        if self.attributes:
            result["attributes"] = self.attributes
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldConfig":
        """Create FieldConfig from dict.

        Raises:
            ConfigurationError: If the field type is unknown
        """
        raw_type = data.get("type", FieldType.STRING.value)
        try:
            field_type = FieldType(raw_type)
        except ValueError:
            raise ConfigurationError(
                f"Field '{data.get('path')}' has unknown type '{raw_type}'"
            ) from None

        def _optional(key: str, parser):
            raw = data.get(key)
            return parser(raw) if raw is not None else None

        return cls(
            path=data["path"],
            label=data.get("label") or data["path"],
            type=field_type,
            included=data.get("included", True),
            required=data.get("required", False),
            include_in_document=data.get("includeInDocument"),
            default_value=data.get("defaultValue"),
            validation=_optional("validation", ValidationRules.from_dict),
            mode_config=_optional("modeConfig", ModeConfig.from_dict),
            computed=_optional("computed", ComputedConfig.from_dict),
            conditional_logic=_optional("conditionalLogic", ConditionalLogic.from_dict),
            placeholder=data.get("placeholder"),
            description=data.get("description"),
            question_type=data.get("questionType"),
            attributes=dict(data.get("attributes") or {}),
        )


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if raw is None or isinstance(raw, datetime):
        return raw
    try:
        return date_parser.isoparse(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid timestamp '{raw}'") from None


@dataclass(frozen=True)
class FormConfiguration:
    """A complete form definition: fields plus lifecycle policy.

    The runtime treats this as immutable input; it is never mutated.

    Raises:
        ConfigurationError: If two fields share the same path
    """
    id: str
    name: str
    field_configs: Tuple[FieldConfig, ...] = ()
    lifecycle: Optional["FormLifecycle"] = None
    collection: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "field_configs", tuple(self.field_configs))
        seen = set()
        for field_config in self.field_configs:
            try:
                validate_path(field_config.path)
            except PathError as exc:
                raise ConfigurationError(f"Form '{self.id}': {exc}") from exc
            if field_config.path in seen:
                raise ConfigurationError(
                    f"Duplicate field path '{field_config.path}' in form '{self.id}'"
                )
            seen.add(field_config.path)

    def get_field(self, path: str) -> Optional[FieldConfig]:
        for field_config in self.field_configs:
            if field_config.path == path:
                return field_config
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "fieldConfigs": [f.to_dict() for f in self.field_configs],
        }
        if self.lifecycle is not None:
            result["lifecycle"] = self.lifecycle.to_dict()
        if self.collection is not None:
            result["collection"] = self.collection
        if self.created_at is not None:
            result["createdAt"] = self.created_at.isoformat()
        if self.updated_at is not None:
            result["updatedAt"] = self.updated_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormConfiguration":
        """Create FormConfiguration from dict."""
        from formengine.lifecycle import FormLifecycle

        lifecycle = data.get("lifecycle")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            field_configs=tuple(FieldConfig.from_dict(f) for f in data.get("fieldConfigs") or ()),
            lifecycle=FormLifecycle.from_dict(lifecycle) if lifecycle is not None else None,
            collection=data.get("collection"),
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )


def load_form_configuration(source: Union[str, bytes, Mapping[str, Any]]) -> FormConfiguration:
    """Parse a form configuration from builder JSON or an already-decoded dict.

    Raises:
        ConfigurationError: If the JSON is malformed or the configuration invalid
    """
    if isinstance(source, (str, bytes)):
        try:
            source = json.loads(source)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Form configuration is not valid JSON: {exc}") from exc
    if not isinstance(source, Mapping):
        raise ConfigurationError("Form configuration must be a JSON object")
    try:
        return FormConfiguration.from_dict(source)
    except KeyError as exc:
        raise ConfigurationError(f"Form configuration is missing key {exc}") from exc


__all__ = [
    "FormMode",
    "FieldType",
    "ConditionOperator",
    "parse_mode",
    "ValidationRules",
    "ModeConfig",
    "ComputedConfig",
    "FieldCondition",
    "ConditionalLogic",
    "FieldConfig",
    "FormConfiguration",
    "load_form_configuration",
]
