"""Dotted-path utilities for mapping between flat form values and documents.

Form state keeps values in a flat ``{"user.name": "John"}`` map so that
dependency tracking and dirty checks work per field. Persisted documents are
nested (``{"user": {"name": "John"}}``). This module converts between the
two shapes and provides nested get/set/delete helpers.

Path collisions in ``unflatten`` (a flat map holding both ``user`` and
``user.name``) follow a single rule: longer paths win. Keys are written
shortest-first, and a deeper key that has to descend through a non-dict
value replaces that value with a dict.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from formengine.errors import PathError

logger = logging.getLogger(__name__)

_MISSING = object()


def validate_path(path: Any) -> List[str]:
    """Validate a dotted path and return its segments.

    Raises:
        PathError: If the path is not a string, is empty, starts or ends with
            a dot, or contains an empty segment

    Examples:
        >>> validate_path("user.address.city")
        ['user', 'address', 'city']
    """
    if not isinstance(path, str) or not path:
        raise PathError(path, f"Field path must be a non-empty string, got {path!r}")
    if path.startswith(".") or path.endswith("."):
        raise PathError(path, f"Field path '{path}' must not start or end with '.'")
    segments = path.split(".")
    if any(not segment for segment in segments):
        raise PathError(path, f"Field path '{path}' contains an empty segment")
    return segments


def flatten(nested: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten a nested document into dotted keys.

    Lists and scalars are leaves; lists are never expanded into indexed
    paths. An empty dict is kept as a leaf so it survives a round trip.

    Raises:
        PathError: If a key is not a string, is empty or contains a dot

    Examples:
        >>> flatten({"user": {"name": "John", "tags": ["a", "b"]}, "age": 3})
        {'user.name': 'John', 'user.tags': ['a', 'b'], 'age': 3}
    """
    flat: Dict[str, Any] = {}
    for key, value in nested.items():
        if not isinstance(key, str) or not key or "." in key:
            location = f"{prefix}.{key}" if prefix else key
            raise PathError(location, f"Cannot flatten document key {key!r} at {location!r}")
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, Mapping) and value:
            flat.update(flatten(value, path))
        else:
            flat[path] = value
    return flat


def unflatten(flat: Mapping[str, Any]) -> Dict[str, Any]:
    """Build a nested document from dotted keys.

    Intermediate dicts are created on demand. When keys collide, the longer
    path wins (see module docstring).

    Raises:
        PathError: If any key is a malformed path

    Examples:
        >>> unflatten({"user.name": "John", "user.email": "a@b.com"})
        {'user': {'name': 'John', 'email': 'a@b.com'}}
        >>> unflatten({"user": "John", "user.name": "Jane"})
        {'user': {'name': 'Jane'}}
    """
    segmented = [(validate_path(key), value) for key, value in flat.items()]
    # Stable sort keeps insertion order among keys of equal depth
    segmented.sort(key=lambda item: len(item[0]))

    document: Dict[str, Any] = {}
    for segments, value in segmented:
        _assign(document, segments, _copy_mapping(value))
    return document


def _copy_mapping(value: Any) -> Any:
    # Dict values are copied so later deeper keys never write into caller data
    if isinstance(value, Mapping):
        return {k: _copy_mapping(v) for k, v in value.items()}
    return value


def _assign(document: Dict[str, Any], segments: List[str], value: Any) -> None:
    target = document
    for depth, segment in enumerate(segments[:-1]):
        current = target.get(segment, _MISSING)
        if not isinstance(current, dict):
            if current is not _MISSING:
                logger.debug(
                    "Path collision at '%s': replacing leaf with object",
                    ".".join(segments[: depth + 1]),
                )
            current = {}
            target[segment] = current
        target = current
    target[segments[-1]] = value


def get_path(document: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path from a nested document.

    Examples:
        >>> get_path({"user": {"name": "John"}}, "user.name")
        'John'
        >>> get_path({"user": {}}, "user.name", "n/a")
        'n/a'
    """
    current: Any = document
    for segment in validate_path(path):
        if not isinstance(current, Mapping) or segment not in current:
            return default
        current = current[segment]
    return current


def has_path(document: Mapping[str, Any], path: str) -> bool:
    """Check whether a dotted path exists in a nested document."""
    return get_path(document, path, _MISSING) is not _MISSING


def set_path(document: Dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted path into a nested document in place.

    Non-dict values on the way are replaced by dicts (longer paths win).
    """
    _assign(document, validate_path(path), value)


def delete_path(document: Dict[str, Any], path: str) -> bool:
    """Delete a dotted path from a nested document in place.

    Empty parents are left in place.

    Returns:
        True if a value was removed
    """
    segments = validate_path(path)
    target: Any = document
    for segment in segments[:-1]:
        if not isinstance(target, dict) or segment not in target:
            return False
        target = target[segment]
    if isinstance(target, dict) and segments[-1] in target:
        del target[segments[-1]]
        return True
    return False


def is_under(path: str, prefix: str) -> bool:
    """True if ``path`` equals ``prefix`` or lies beneath it."""
    return path == prefix or path.startswith(prefix + ".")


def drop_paths(flat: Mapping[str, Any], prefixes: Iterable[str]) -> Dict[str, Any]:
    """Return a copy of a flat map without the given paths or anything beneath them."""
    prefixes = list(prefixes)
    return {
        key: value
        for key, value in flat.items()
        if not any(is_under(key, prefix) for prefix in prefixes)
    }


def resolve_value(flat: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Look up a dotted path in a flat value map.

    The exact key is tried first. Otherwise the longest prefix that holds a
    dict is descended into, so ``address.city`` resolves against a flat map
    holding ``{"address": {"city": "Paris"}}``.

    Examples:
        >>> resolve_value({"user.name": "John"}, "user.name")
        'John'
        >>> resolve_value({"address": {"city": "Paris"}}, "address.city")
        'Paris'
    """
    if path in flat:
        return flat[path]
    segments = validate_path(path)
    for cut in range(len(segments) - 1, 0, -1):
        head = ".".join(segments[:cut])
        container = flat.get(head, _MISSING)
        if isinstance(container, Mapping):
            return get_path(container, ".".join(segments[cut:]), default)
    return default


def contains_path(flat: Mapping[str, Any], path: str) -> bool:
    """Check whether ``resolve_value`` would find ``path``."""
    return resolve_value(flat, path, _MISSING) is not _MISSING


def generate_field_path(label: str, existing_paths: Optional[Iterable[str]] = None) -> str:
    """Generate a camelCase field path from a human-readable label.

    Examples:
        >>> generate_field_path("Your Name")
        'yourName'
        >>> generate_field_path("Phone Number (Optional)")
        'phoneNumberOptional'
        >>> generate_field_path("Email", ["email"])
        'email1'
    """
    cleaned = re.sub(r"[^a-z0-9\s]", "", label.strip().lower())
    words = [w for w in re.split(r"\s+", cleaned) if w]
    base = "".join(w if i == 0 else w[:1].upper() + w[1:] for i, w in enumerate(words))
    if not base:
        base = "question"

    taken = set(existing_paths or ())
    candidate = base
    counter = 1
    while candidate in taken:
        candidate = f"{base}{counter}"
        counter += 1
    return candidate


__all__ = [
    "validate_path",
    "flatten",
    "unflatten",
    "get_path",
    "has_path",
    "set_path",
    "delete_path",
    "is_under",
    "drop_paths",
    "resolve_value",
    "contains_path",
    "generate_field_path",
]
