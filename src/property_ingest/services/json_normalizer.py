"""Recursive removal of empty values from parsed JSON."""

from typing import Any


def is_empty_value(value: Any) -> bool:
    """True for None, empty strings and empty lists or dicts."""
    if value is None:
        return True
    if isinstance(value, (str, list, dict)) and len(value) == 0:
        return True
    return False


def remove_empty_values(value: Any) -> Any:
    """
    Drop empty values from a JSON tree.

    Objects and arrays are walked depth-first; a key or array slot is dropped
    when its value is None, "", [] or {} after its own children were
    normalized. Primitives are returned unchanged.

    Returns:
        The normalized value, or None when the whole value is empty.
    """
    if isinstance(value, dict):
        cleaned: dict[str, Any] = {}
        for key, child in value.items():
            child = remove_empty_values(child)
            if child is not None:
                cleaned[key] = child
        return cleaned or None
    if isinstance(value, list):
        items = [remove_empty_values(item) for item in value]
        items = [item for item in items if item is not None]
        return items or None
    if is_empty_value(value):
        return None
    return value


# Short alias used by the cleaners
normalize = remove_empty_values
