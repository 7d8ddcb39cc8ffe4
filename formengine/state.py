"""Immutable runtime state for a form-editing session.

A FormState is created once per session by ``create_form_state`` and then
replaced, never mutated: every update returns a new object. This keeps undo
and redo trivial and makes the dirty check reliable.

Values are kept flat (``{"user.name": "John"}``) and computed outputs live in
a separate ``derived`` map so they can never be hand-edited.

Usage:
    >>> from formengine.types import FormMode
    >>> meta = FormMeta(mode=FormMode.CREATE, is_new=True)
    >>> state = FormState(values={"name": "Ada"}, meta=meta)
    >>> busy = state.with_submitting(True)
    >>> busy.meta.is_submitting, state.meta.is_submitting
    (True, False)
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

from formengine.types import FormMode


@dataclass(frozen=True)
class FormMeta:
    """Session metadata.

    Attributes:
        mode: The mode the form was opened in
        is_new: True for create and clone (the submit produces a new document)
        document_id: Identifier of the edited/viewed document, None for new ones
        is_submitting: Toggled by the caller around the external submit call
        is_dirty: Whether values differ from the snapshot taken at creation
        submit_count: Number of submit attempts recorded by the caller
    """
    mode: FormMode
    is_new: bool
    document_id: Optional[str] = None
    is_submitting: bool = False
    is_dirty: bool = False
    submit_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "mode": self.mode.value,
            "isNew": self.is_new,
            "isSubmitting": self.is_submitting,
            "isDirty": self.is_dirty,
            "submitCount": self.submit_count,
        }
        if self.document_id is not None:
            result["documentId"] = self.document_id
        return result


@dataclass(frozen=True)
class FormState:
    """The live runtime object bound by the UI.

    Attributes:
        values: Flat ``path -> value`` map of user-editable values
        derived: Computed field outputs, separate from values
        errors: Last validation result, ``path -> message``
        touched: Paths the user has changed during the session
        meta: Session metadata
        initial_values: Snapshot of values at creation, used for dirty checks
    """
    values: Dict[str, Any] = field(default_factory=dict)
    derived: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    touched: Dict[str, bool] = field(default_factory=dict)
    meta: FormMeta = field(default_factory=lambda: FormMeta(mode=FormMode.CREATE, is_new=True))
    initial_values: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def mode(self) -> FormMode:
        return self.meta.mode

    def get_value(self, path: str, default: Any = None) -> Any:
        """Read a value, falling back to the derived map for computed fields."""
        if path in self.values:
            return self.values[path]
        return self.derived.get(path, default)

    def bindings(self) -> Dict[str, Any]:
        """Values merged with derived values, as seen by formulas."""
        merged = dict(self.values)
        merged.update(self.derived)
        return merged

    def with_errors(self, errors: Mapping[str, str]) -> "FormState":
        return replace(self, errors=dict(errors))

    def with_submitting(self, is_submitting: bool) -> "FormState":
        return replace(self, meta=replace(self.meta, is_submitting=is_submitting))

    def mark_submitted(self) -> "FormState":
        """Record a submit attempt and mark every value as touched."""
        touched = dict(self.touched)
        touched.update({path: True for path in self.values})
        return replace(
            self,
            touched=touched,
            meta=replace(self.meta, submit_count=self.meta.submit_count + 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization (the snapshot is not included)."""
        return {
            "values": dict(self.values),
            "derived": dict(self.derived),
            "errors": dict(self.errors),
            "touched": dict(self.touched),
            "meta": self.meta.to_dict(),
        }


__all__ = [
    "FormMeta",
    "FormState",
]
