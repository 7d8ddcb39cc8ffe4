"""Form runtime: state creation, updates and document preparation.

This module ties the engine together. It builds the initial FormState for a
mode, applies single-field updates (recomputing derived values and the dirty
flag), and prepares the nested document handed to an external persistence
layer together with the lifecycle's submit configuration.

Usage:
    >>> from formengine.runtime import FormRuntime
    >>> from formengine.types import ComputedConfig, FieldConfig, FieldType, FormConfiguration
    >>> config = FormConfiguration(
    ...     id="order",
    ...     name="Order",
    ...     collection="orders",
    ...     field_configs=(
    ...         FieldConfig(path="quantity", label="Quantity", type=FieldType.NUMBER, default_value=1),
    ...         FieldConfig(path="price", label="Price", type=FieldType.NUMBER, default_value=10),
    ...         FieldConfig(
    ...             path="total", label="Total", type=FieldType.NUMBER,
    ...             computed=ComputedConfig(formula="quantity * price"),
    ...         ),
    ...     ),
    ... )
    >>> runtime = FormRuntime(config)
    >>> state = runtime.create_state("create")
    >>> state.derived["total"]
    10
    >>> runtime.update(state, "quantity", 7).derived["total"]
    70
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from formengine.behavior import (
    evaluate_conditional_logic,
    is_field_editable,
    is_field_required,
    is_field_visible,
)
from formengine.errors import ConfigurationError
from formengine.formula import compute_derived_values, resolve_computation_order
from formengine.lifecycle import (
    DeleteConfig,
    FormLifecycle,
    SubmitConfig,
    SubmitTransforms,
    get_clear_fields,
    get_create_defaults,
    get_default_lifecycle,
    get_delete_config,
    get_submit_config,
)
from formengine.paths import (
    delete_path,
    drop_paths,
    flatten,
    get_path,
    has_path,
    set_path,
    unflatten,
    validate_path,
)
from formengine.question_types import check_field_attributes
from formengine.state import FormMeta, FormState
from formengine.types import FieldConfig, FormConfiguration, FormMode, parse_mode
from formengine.validation import ValidationEngine, ValidationResult

logger = logging.getLogger(__name__)


# ============================================
# State initialization
# ============================================

def create_form_state(
    config: FormConfiguration,
    mode: Union[str, FormMode],
    existing_data: Optional[Mapping[str, Any]] = None,
    document_id: Optional[str] = None,
    lifecycle: Optional[FormLifecycle] = None,
) -> FormState:
    """Create the initial form state for a mode.

    - create: field-level defaults, then lifecycle create defaults for paths
      no field default has set (field-level defaults win)
    - edit/view: the flattened existing document; no defaults of any kind
    - clone: the flattened existing document minus the lifecycle's clear
      fields; a cleared field gets its own default back if it declares one
    - search: the flattened existing data (an initial filter), no defaults

    Args:
        config: The form configuration (never mutated)
        mode: Form mode
        existing_data: Nested document for edit/view/clone/search
        document_id: Identifier of the existing document (dropped for new documents)
        lifecycle: Overrides ``config.lifecycle`` when given

    Raises:
        PathError: If the existing document has malformed keys
        FormulaError: If computed fields form a dependency cycle
    """
    mode = parse_mode(mode)
    lifecycle = lifecycle if lifecycle is not None else config.lifecycle

    if mode == FormMode.CREATE:
        values = _apply_create_defaults(config.field_configs, get_create_defaults(lifecycle))
    elif mode == FormMode.CLONE:
        values = flatten(existing_data or {})
        cleared = get_clear_fields(lifecycle)
        values = drop_paths(values, cleared)
        for path in cleared:
            field_config = config.get_field(path)
            if field_config is not None and field_config.has_default:
                values[path] = copy.deepcopy(field_config.default_value)
    else:
        values = flatten(existing_data or {})

    derived = compute_derived_values(config.field_configs, values)

    logger.debug(
        "Created form state for '%s' in %s mode with %d values",
        config.id, mode.value, len(values),
    )

    return FormState(
        values=values,
        derived=derived,
        errors={},
        touched={},
        meta=FormMeta(
            mode=mode,
            is_new=mode.is_new,
            document_id=None if mode.is_new else document_id,
            is_submitting=False,
            is_dirty=False,
        ),
        initial_values=copy.deepcopy(values),
    )


def _apply_create_defaults(
    fields: Sequence[FieldConfig],
    lifecycle_defaults: Mapping[str, Any],
) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field_config in fields:
        if field_config.has_default:
            values[field_config.path] = copy.deepcopy(field_config.default_value)
    for path, default in lifecycle_defaults.items():
        validate_path(path)
        if path not in values:
            values[path] = copy.deepcopy(default)
    return values


# ============================================
# State updates
# ============================================

def _same_value(left: Any, right: Any) -> bool:
    # Strict equality: True and 1 differ, 5 and 5.0 do not
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


def values_differ(current: Mapping[str, Any], initial: Mapping[str, Any]) -> bool:
    """Key-by-key comparison used for the dirty flag."""
    if current.keys() != initial.keys():
        return True
    return any(not _same_value(current[key], initial[key]) for key in current)


def update_form_state(
    state: FormState,
    path: str,
    value: Any,
    fields: Sequence[FieldConfig],
) -> FormState:
    """Return a new state with one field changed.

    Sets the value and touched flag, recomputes every derived value and
    recomputes the dirty flag against the creation snapshot. The given
    state is not modified.

    Raises:
        PathError: If ``path`` is malformed
    """
    validate_path(path)
    values = dict(state.values)
    values[path] = value
    touched = dict(state.touched)
    touched[path] = True

    return replace(
        state,
        values=values,
        touched=touched,
        derived=compute_derived_values(fields, values),
        meta=replace(state.meta, is_dirty=values_differ(values, state.initial_values)),
    )


# ============================================
# Document preparation
# ============================================

def apply_transforms(document: Dict[str, Any], transforms: SubmitTransforms) -> Dict[str, Any]:
    """Apply submit transforms in place: omit, then rename, then add."""
    for path in transforms.omit_fields:
        delete_path(document, path)
    for old_path, new_path in transforms.rename_fields.items():
        if has_path(document, old_path):
            moved = get_path(document, old_path)
            delete_path(document, old_path)
            set_path(document, new_path, moved)
    for path, value in transforms.add_fields.items():
        set_path(document, path, copy.deepcopy(value))
    return document


def prepare_document(
    state: FormState,
    fields: Sequence[FieldConfig],
    submit_config: Optional[SubmitConfig] = None,
) -> Dict[str, Any]:
    """Build the nested document to persist.

    Starts from the flat values, drops fields excluded from the document
    (``include_in_document=False``) and computed fields (unless they
    explicitly opt in, in which case their derived value is used),
    unflattens the rest and applies the submit transforms.

    Examples:
        >>> state = FormState(values={"user.name": "John", "user.email": "a@b.com"})
        >>> prepare_document(state, [])
        {'user': {'name': 'John', 'email': 'a@b.com'}}
    """
    excluded = [f.path for f in fields if not f.persists]
    flat = drop_paths(copy.deepcopy(state.values), excluded)
    for field_config in fields:
        if field_config.computed is not None and field_config.persists:
            if field_config.path in state.derived:
                flat[field_config.path] = copy.deepcopy(state.derived[field_config.path])

    document = unflatten(flat)
    if submit_config is not None and submit_config.transforms is not None:
        apply_transforms(document, submit_config.transforms)
    return document


# ============================================
# Orchestrator
# ============================================

@dataclass(frozen=True)
class FieldBehavior:
    """Resolved behavior of one field for the current state."""
    path: str
    visible: bool
    editable: bool
    required: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "visible": self.visible,
            "editable": self.editable,
            "required": self.required,
        }


@dataclass(frozen=True)
class SubmissionPlan:
    """Everything the persistence layer needs to carry out a submit.

    Attributes:
        ok: False when validation failed; document and config are then unset
        state: The state after validation (errors populated)
        errors: Validation errors, ``path -> message``
        document: Nested document to write
        submit_config: How to write it (insert/update, collection)
        document_id: Identifier for updates
    """
    ok: bool
    state: FormState
    errors: Dict[str, str] = field(default_factory=dict)
    document: Optional[Dict[str, Any]] = None
    submit_config: Optional[SubmitConfig] = None
    document_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"ok": self.ok}
        if self.errors:
            result["errors"] = dict(self.errors)
        if self.document is not None:
            result["document"] = self.document
        if self.submit_config is not None:
            result["submitConfig"] = self.submit_config.to_dict()
        if self.document_id is not None:
            result["documentId"] = self.document_id
        return result


class FormRuntime:
    """Orchestrator binding one form configuration to the engine.

    Forms without an explicit lifecycle fall back to the conventional
    lifecycle for their collection, when one is configured.

    Attributes:
        config: The form configuration
        lifecycle: The effective lifecycle (explicit or default)

    Raises:
        FormulaError: At construction, if computed fields form a cycle
        ConfigurationError: At construction, if a question type or its
            attributes are invalid
    """

    def __init__(self, config: FormConfiguration):
        self.config = config
        if config.lifecycle is not None:
            self.lifecycle: Optional[FormLifecycle] = config.lifecycle
        elif config.collection:
            self.lifecycle = get_default_lifecycle(config.collection)
        else:
            self.lifecycle = None
        for field_config in config.field_configs:
            check_field_attributes(field_config)
        # Raises on dependency cycles
        resolve_computation_order(config.field_configs)
        self._validation_engine = ValidationEngine(config.field_configs)

    @property
    def fields(self) -> Sequence[FieldConfig]:
        return self.config.field_configs

    def create_state(
        self,
        mode: Union[str, FormMode],
        existing_data: Optional[Mapping[str, Any]] = None,
        document_id: Optional[str] = None,
    ) -> FormState:
        """Create the initial state for a mode (see create_form_state)."""
        return create_form_state(self.config, mode, existing_data, document_id, self.lifecycle)

    def update(self, state: FormState, path: str, value: Any) -> FormState:
        """Apply a single field change.

        Raises:
            ConfigurationError: If the field is not editable in the state's mode
        """
        field_config = self.config.get_field(path)
        if field_config is not None and not is_field_editable(field_config, state.mode, self.lifecycle):
            raise ConfigurationError(
                f"Field '{path}' is not editable in {state.mode.value} mode"
            )
        return update_form_state(state, path, value, self.fields)

    def validate(self, state: FormState) -> FormState:
        """Return a new state whose errors reflect the current values."""
        return state.with_errors(self._validation_engine.validate(state))

    def validate_detailed(self, state: FormState) -> ValidationResult:
        return self._validation_engine.validate_detailed(state)

    def field_behavior(self, state: FormState) -> Dict[str, FieldBehavior]:
        """Resolve visibility, editability and requiredness for every included field."""
        bindings = state.bindings()
        behaviors: Dict[str, FieldBehavior] = {}
        for field_config in self.fields:
            if not field_config.included:
                continue
            behaviors[field_config.path] = FieldBehavior(
                path=field_config.path,
                visible=is_field_visible(field_config, state.mode)
                and evaluate_conditional_logic(field_config.conditional_logic, bindings),
                editable=is_field_editable(field_config, state.mode, self.lifecycle),
                required=is_field_required(field_config, state.mode),
            )
        return behaviors

    def submit_config(self, mode: Union[str, FormMode]) -> Optional[SubmitConfig]:
        return get_submit_config(self.lifecycle, mode)

    def delete_config(self, mode: Union[str, FormMode]) -> Optional[DeleteConfig]:
        """Delete configuration for the mode, only if deletion is enabled."""
        config = get_delete_config(self.lifecycle, mode)
        return config if config is not None and config.enabled else None

    def prepare_submission(self, state: FormState) -> SubmissionPlan:
        """Validate and, if valid, prepare the document and submit config.

        Raises:
            ConfigurationError: If the state's mode has no submit configuration
        """
        submit_config = self.submit_config(state.mode)
        if submit_config is None:
            raise ConfigurationError(
                f"Form '{self.config.id}' has no submit configuration for {state.mode.value} mode"
            )

        validated = self.validate(state).mark_submitted()
        if validated.errors:
            logger.info(
                "Submission for form '%s' blocked by %d validation errors",
                self.config.id, len(validated.errors),
            )
            return SubmissionPlan(ok=False, state=validated, errors=dict(validated.errors))

        return SubmissionPlan(
            ok=True,
            state=validated,
            document=prepare_document(validated, self.fields, submit_config),
            submit_config=submit_config,
            document_id=validated.meta.document_id,
        )


__all__ = [
    "create_form_state",
    "update_form_state",
    "values_differ",
    "apply_transforms",
    "prepare_document",
    "FieldBehavior",
    "SubmissionPlan",
    "FormRuntime",
]
