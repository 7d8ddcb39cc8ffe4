"""Lifecycle policy for forms: per-mode defaults, field rules and actions.

A FormLifecycle bundles what happens in each mode:
- create: static defaults and the insert configuration
- edit: immutable fields, the update configuration and delete configuration
- view: available actions (edit, clone, ...)
- clone: fields cleared from the copied document and the insert configuration

The resolver functions gate every lookup on the mode. Only create, edit and
clone have submit semantics, and only edit can delete. The engine never
performs the write itself; it hands these configs to an external executor.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from formengine.errors import ConfigurationError
from formengine.types import FormMode, parse_mode

SUBMIT_MODES = ("insert", "update")
SUCCESS_ACTIONS = ("toast", "navigate", "reset", "close", "none")


@dataclass(frozen=True)
class ActionSuccessConfig:
    """What the UI does after a successful submit or delete."""
    action: str = "toast"
    message: Optional[str] = None
    target: Optional[str] = None

    def __post_init__(self):
        if self.action not in SUCCESS_ACTIONS:
            raise ConfigurationError(f"Unknown success action '{self.action}'")

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"action": self.action}
        if self.message is not None:
            result["message"] = self.message
        if self.target is not None:
            result["target"] = self.target
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActionSuccessConfig":
        return cls(
            action=data.get("action", "toast"),
            message=data.get("message"),
            target=data.get("target"),
        )


@dataclass(frozen=True)
class ActionErrorConfig:
    """What the UI does when a submit or delete fails."""
    action: str = "toast"
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"action": self.action}
        if self.message is not None:
            result["message"] = self.message
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActionErrorConfig":
        return cls(action=data.get("action", "toast"), message=data.get("message"))


@dataclass(frozen=True)
class SubmitTransforms:
    """Transforms applied to a prepared document, in order: omit, rename, add.

    Attributes:
        omit_fields: Dotted paths removed from the document
        rename_fields: Mapping of old dotted path to new dotted path
        add_fields: Static values merged in, overwriting on conflict
    """
    omit_fields: Tuple[str, ...] = ()
    rename_fields: Dict[str, str] = field(default_factory=dict)
    add_fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.omit_fields:
            result["omitFields"] = list(self.omit_fields)
        if self.rename_fields:
            result["renameFields"] = dict(self.rename_fields)
        if self.add_fields:
            result["addFields"] = dict(self.add_fields)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SubmitTransforms":
        return cls(
            omit_fields=tuple(data.get("omitFields") or ()),
            rename_fields=dict(data.get("renameFields") or {}),
            add_fields=dict(data.get("addFields") or {}),
        )


@dataclass(frozen=True)
class SubmitConfig:
    """How the persistence layer should store a prepared document.

    Attributes:
        mode: "insert" or "update"
        collection: Target collection name
        transforms: Optional document transforms
        success: Optional success behavior
        error: Optional error behavior
    """
    mode: str
    collection: str
    transforms: Optional[SubmitTransforms] = None
    success: Optional[ActionSuccessConfig] = None
    error: Optional[ActionErrorConfig] = None

    def __post_init__(self):
        if self.mode not in SUBMIT_MODES:
            raise ConfigurationError(
                f"Submit mode must be one of {', '.join(SUBMIT_MODES)}, got '{self.mode}'"
            )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"mode": self.mode, "collection": self.collection}
        if self.transforms is not None:
            result["transforms"] = self.transforms.to_dict()
        if self.success is not None:
            result["success"] = self.success.to_dict()
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SubmitConfig":
        transforms = data.get("transforms")
        success = data.get("success")
        error = data.get("error")
        return cls(
            mode=data.get("mode", "insert"),
            collection=data.get("collection", ""),
            transforms=SubmitTransforms.from_dict(transforms) if transforms is not None else None,
            success=ActionSuccessConfig.from_dict(success) if success is not None else None,
            error=ActionErrorConfig.from_dict(error) if error is not None else None,
        )


@dataclass(frozen=True)
class ConfirmConfig:
    """Confirmation dialog shown before a destructive action."""
    title: str = "Confirm"
    message: str = "Are you sure?"
    confirm_label: str = "Confirm"
    cancel_label: str = "Cancel"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "message": self.message,
            "confirmLabel": self.confirm_label,
            "cancelLabel": self.cancel_label,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConfirmConfig":
        defaults = cls()
        return cls(
            title=data.get("title", defaults.title),
            message=data.get("message", defaults.message),
            confirm_label=data.get("confirmLabel", defaults.confirm_label),
            cancel_label=data.get("cancelLabel", defaults.cancel_label),
        )


@dataclass(frozen=True)
class DeleteConfig:
    """Delete behavior for edit mode."""
    enabled: bool = False
    confirm: Optional[ConfirmConfig] = None
    success: Optional[ActionSuccessConfig] = None
    error: Optional[ActionErrorConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"enabled": self.enabled}
        if self.confirm is not None:
            result["confirm"] = self.confirm.to_dict()
        if self.success is not None:
            result["success"] = self.success.to_dict()
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeleteConfig":
        confirm = data.get("confirm")
        success = data.get("success")
        error = data.get("error")
        return cls(
            enabled=bool(data.get("enabled", False)),
            confirm=ConfirmConfig.from_dict(confirm) if confirm is not None else None,
            success=ActionSuccessConfig.from_dict(success) if success is not None else None,
            error=ActionErrorConfig.from_dict(error) if error is not None else None,
        )


@dataclass(frozen=True)
class ViewAction:
    """A button offered in view mode (e.g. switch to edit or clone)."""
    id: str
    label: str
    action: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "action": self.action}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ViewAction":
        return cls(id=data["id"], label=data.get("label", data["id"]), action=data["action"])


@dataclass(frozen=True)
class CreateLifecycle:
    defaults: Dict[str, Any] = field(default_factory=dict)
    on_submit: Optional[SubmitConfig] = None


@dataclass(frozen=True)
class EditLifecycle:
    immutable_fields: Tuple[str, ...] = ()
    on_submit: Optional[SubmitConfig] = None
    on_delete: Optional[DeleteConfig] = None


@dataclass(frozen=True)
class ViewLifecycle:
    actions: Tuple[ViewAction, ...] = ()


@dataclass(frozen=True)
class CloneLifecycle:
    clear_fields: Tuple[str, ...] = ()
    on_submit: Optional[SubmitConfig] = None


def _submit_or_none(data: Mapping[str, Any]) -> Optional[SubmitConfig]:
    raw = data.get("onSubmit")
    return SubmitConfig.from_dict(raw) if raw is not None else None


@dataclass(frozen=True)
class FormLifecycle:
    """Per-mode policy bundle for a form.

    Examples:
        >>> lifecycle = FormLifecycle.from_dict({
        ...     "create": {"defaults": {"status": "draft"}},
        ...     "clone": {"clearFields": ["_id"]},
        ... })
        >>> lifecycle.create.defaults
        {'status': 'draft'}
        >>> lifecycle.clone.clear_fields
        ('_id',)
    """
    create: Optional[CreateLifecycle] = None
    edit: Optional[EditLifecycle] = None
    view: Optional[ViewLifecycle] = None
    clone: Optional[CloneLifecycle] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {}
        if self.create is not None:
            create: Dict[str, Any] = {}
            if self.create.defaults:
                create["defaults"] = dict(self.create.defaults)
            if self.create.on_submit is not None:
                create["onSubmit"] = self.create.on_submit.to_dict()
            result["create"] = create
        if self.edit is not None:
            edit: Dict[str, Any] = {}
            if self.edit.immutable_fields:
                edit["immutableFields"] = list(self.edit.immutable_fields)
            if self.edit.on_submit is not None:
                edit["onSubmit"] = self.edit.on_submit.to_dict()
            if self.edit.on_delete is not None:
                edit["onDelete"] = self.edit.on_delete.to_dict()
            result["edit"] = edit
        if self.view is not None:
            result["view"] = {"actions": [a.to_dict() for a in self.view.actions]}
        if self.clone is not None:
            clone: Dict[str, Any] = {}
            if self.clone.clear_fields:
                clone["clearFields"] = list(self.clone.clear_fields)
            if self.clone.on_submit is not None:
                clone["onSubmit"] = self.clone.on_submit.to_dict()
            result["clone"] = clone
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormLifecycle":
        """Create FormLifecycle from dict."""
        create = edit = view = clone = None
        if data.get("create") is not None:
            raw = data["create"]
            create = CreateLifecycle(
                defaults=dict(raw.get("defaults") or {}),
                on_submit=_submit_or_none(raw),
            )
        if data.get("edit") is not None:
            raw = data["edit"]
            on_delete = raw.get("onDelete")
            edit = EditLifecycle(
                immutable_fields=tuple(raw.get("immutableFields") or ()),
                on_submit=_submit_or_none(raw),
                on_delete=DeleteConfig.from_dict(on_delete) if on_delete is not None else None,
            )
        if data.get("view") is not None:
            view = ViewLifecycle(
                actions=tuple(ViewAction.from_dict(a) for a in data["view"].get("actions") or ()),
            )
        if data.get("clone") is not None:
            raw = data["clone"]
            clone = CloneLifecycle(
                clear_fields=tuple(raw.get("clearFields") or ()),
                on_submit=_submit_or_none(raw),
            )
        return cls(create=create, edit=edit, view=view, clone=clone)


# ============================================
# Resolvers
# ============================================

def get_submit_config(
    lifecycle: Optional[FormLifecycle],
    mode: Union[str, FormMode],
) -> Optional[SubmitConfig]:
    """Get the submit configuration for a mode.

    Only create, edit and clone have submit semantics; view and search
    always return None.
    """
    mode = parse_mode(mode)
    if lifecycle is None:
        return None
    if mode == FormMode.CREATE and lifecycle.create is not None:
        return lifecycle.create.on_submit
    if mode == FormMode.EDIT and lifecycle.edit is not None:
        return lifecycle.edit.on_submit
    if mode == FormMode.CLONE and lifecycle.clone is not None:
        return lifecycle.clone.on_submit
    return None


def get_delete_config(
    lifecycle: Optional[FormLifecycle],
    mode: Union[str, FormMode],
) -> Optional[DeleteConfig]:
    """Get the delete configuration. Only available in edit mode."""
    mode = parse_mode(mode)
    if mode != FormMode.EDIT or lifecycle is None or lifecycle.edit is None:
        return None
    return lifecycle.edit.on_delete


def get_create_defaults(lifecycle: Optional[FormLifecycle]) -> Dict[str, Any]:
    if lifecycle is None or lifecycle.create is None:
        return {}
    return dict(lifecycle.create.defaults)


def get_immutable_fields(lifecycle: Optional[FormLifecycle]) -> Tuple[str, ...]:
    if lifecycle is None or lifecycle.edit is None:
        return ()
    return lifecycle.edit.immutable_fields


def get_clear_fields(lifecycle: Optional[FormLifecycle]) -> Tuple[str, ...]:
    if lifecycle is None or lifecycle.clone is None:
        return ()
    return lifecycle.clone.clear_fields


def get_view_actions(lifecycle: Optional[FormLifecycle]) -> List[ViewAction]:
    if lifecycle is None or lifecycle.view is None:
        return []
    return list(lifecycle.view.actions)


def get_default_lifecycle(collection: str) -> FormLifecycle:
    """Synthesize the conventional lifecycle for a collection.

    Create and clone insert into ``collection``, edit updates it and allows
    deletion behind a confirmation dialog, and clone clears the identifier
    and timestamps copied from the source document.

    Examples:
        >>> lifecycle = get_default_lifecycle("customers")
        >>> get_submit_config(lifecycle, "create").mode
        'insert'
        >>> get_delete_config(lifecycle, "edit").enabled
        True
    """
    return FormLifecycle(
        create=CreateLifecycle(
            on_submit=SubmitConfig(
                mode="insert",
                collection=collection,
                success=ActionSuccessConfig(action="toast", message="Document created successfully"),
                error=ActionErrorConfig(action="toast"),
            ),
        ),
        edit=EditLifecycle(
            on_submit=SubmitConfig(
                mode="update",
                collection=collection,
                success=ActionSuccessConfig(action="toast", message="Document updated successfully"),
                error=ActionErrorConfig(action="toast"),
            ),
            on_delete=DeleteConfig(
                enabled=True,
                confirm=ConfirmConfig(
                    title="Delete Document",
                    message="Are you sure you want to delete this document? This action cannot be undone.",
                    confirm_label="Delete",
                    cancel_label="Cancel",
                ),
                success=ActionSuccessConfig(
                    action="navigate", target="back", message="Document deleted successfully"
                ),
                error=ActionErrorConfig(action="toast"),
            ),
        ),
        view=ViewLifecycle(
            actions=(
                ViewAction(id="edit", label="Edit", action="edit"),
                ViewAction(id="clone", label="Clone", action="clone"),
            ),
        ),
        clone=CloneLifecycle(
            clear_fields=("_id", "createdAt", "updatedAt"),
            on_submit=SubmitConfig(
                mode="insert",
                collection=collection,
                success=ActionSuccessConfig(action="toast", message="Document cloned successfully"),
                error=ActionErrorConfig(action="toast"),
            ),
        ),
    )


__all__ = [
    "ActionSuccessConfig",
    "ActionErrorConfig",
    "SubmitTransforms",
    "SubmitConfig",
    "ConfirmConfig",
    "DeleteConfig",
    "ViewAction",
    "CreateLifecycle",
    "EditLifecycle",
    "ViewLifecycle",
    "CloneLifecycle",
    "FormLifecycle",
    "get_submit_config",
    "get_delete_config",
    "get_create_defaults",
    "get_immutable_fields",
    "get_clear_fields",
    "get_view_actions",
    "get_default_lifecycle",
]
