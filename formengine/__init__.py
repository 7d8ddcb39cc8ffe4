"""Form runtime engine for mode-aware data-entry forms.

A single declarative form configuration drives every way a form is used:
- create, edit, view, clone and search modes with per-field visibility,
  editability and requiredness
- computed fields evaluated from a small spreadsheet-like formula language
- validation with human-readable, per-field messages
- lifecycle policies (create defaults, immutable fields, clone clearing,
  submit transforms) applied when preparing the persisted document

Values are held flat (``{"user.name": "John"}``) while editing and are
converted to a nested document on submit. Persistence itself is left to
the caller.

Basic usage:
    >>> from formengine import FormRuntime, load_form_configuration
    >>> config = load_form_configuration({
    ...     "id": "contact",
    ...     "name": "Contact",
    ...     "collection": "contacts",
    ...     "fieldConfigs": [
    ...         {"path": "user.name", "label": "Name", "required": True},
    ...     ],
    ... })
    >>> runtime = FormRuntime(config)
    >>> state = runtime.update(runtime.create_state("create"), "user.name", "Ada")
    >>> runtime.prepare_submission(state).document
    {'user': {'name': 'Ada'}}
"""

__version__ = "0.1.0"
__author__ = "FormEngine Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formengine.errors import ConfigurationError, FormEngineError, FormulaError, PathError
from formengine.runtime import FormRuntime, create_form_state, prepare_document, update_form_state
from formengine.state import FormState
from formengine.types import FieldConfig, FormConfiguration, FormMode, load_form_configuration
from formengine.validation import validate_form

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormRuntime",
    "FormState",
    "FormMode",
    "FieldConfig",
    "FormConfiguration",
    "load_form_configuration",
    "create_form_state",
    "update_form_state",
    "prepare_document",
    "validate_form",
    "FormEngineError",
    "ConfigurationError",
    "PathError",
    "FormulaError",
]
