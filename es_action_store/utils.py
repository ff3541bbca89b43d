import calendar
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def get(obj: Any, path: str) -> Any:
    """
    Deeply get a key inside a nested dictionary.

    Args:
        obj: Dictionary (or anything) to look into
        path: Dotted path, e.g. 'foo.bar' returns obj['foo']['bar']

    Returns:
        The value found at the path, or None if any hop is missing
    """
    current = obj
    for part in (path or "").split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def remove_sensitive_keys(
    value: Any, keys: Optional[Iterable[str]] = None, parents: Optional[List[Any]] = None
) -> Any:
    """
    Deeply remove a list of sensitive keys from anywhere in a value.

    Also breaks any circular references: a dictionary value or list element
    that is the very same object as one of its ancestors (or as its own
    container) is left out of the result.

    Args:
        value: Value to sanitize
        keys: Dictionary keys to drop wherever they appear
        parents: Ancestor containers of ``value`` (used for recursion)

    Returns:
        A new sanitized value; the input is never modified
    """
    keys = set(keys or ())
    parents = parents or []

    if isinstance(value, list):
        ancestors = parents + [value]
        return [
            remove_sensitive_keys(elem, keys, ancestors)
            for elem in value
            if not _is_cyclic(elem, value, parents)
        ]

    if not isinstance(value, dict):
        return value

    ancestors = parents + [value]
    sanitized = {}
    for key, child in value.items():
        if key in keys:
            continue

        if _is_cyclic(child, value, parents):
            continue

        if isinstance(child, (dict, list)):
            sanitized[key] = remove_sensitive_keys(child, keys, ancestors)
        else:
            sanitized[key] = child

    return sanitized


def break_circular_references(value: Any, parents: Optional[List[Any]] = None) -> Any:
    """Deeply break any circular references inside a value."""
    return remove_sensitive_keys(value, (), parents)


def _is_cyclic(child: Any, container: Any, parents: List[Any]) -> bool:
    if not isinstance(child, (dict, list)):
        return False
    return child is container or any(child is parent for parent in parents)


def deep_compare_objects(a: Any, b: Any) -> bool:
    """
    Deeply compare two values for structural equality.

    Lists are compared index by index (order matters), dictionaries over the
    union of both key sets, so a key missing on either side fails.

    Args:
        a: First value
        b: Second value

    Returns:
        True if both values have the same structure and leaves
    """
    if isinstance(a, dict) or isinstance(b, dict):
        if not (isinstance(a, dict) and isinstance(b, dict)):
            return False
        for key in {**a, **b}:
            if key not in a or key not in b:
                return False
            if not deep_compare_objects(a[key], b[key]):
                return False
        return True

    if isinstance(a, list) or isinstance(b, list):
        if not (isinstance(a, list) and isinstance(b, list)):
            return False
        if len(a) != len(b):
            return False
        return all(deep_compare_objects(x, y) for x, y in zip(a, b))

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b

    if type(a) is not type(b):
        return False

    return a == b


def stringify(value: Any) -> str:
    """Return strings untouched and JSON-encode everything else."""
    if isinstance(value, str):
        return value
    return json.dumps(
        break_circular_references(value), separators=(",", ":"), default=str
    )


def transform_object_to_list(obj: Optional[Dict[str, Any]]) -> Optional[List[Dict[str, str]]]:
    """
    Flatten a key/value map into a list of {key, value} records.

    Args:
        obj: Metadata map, or None

    Returns:
        List of {"key": ..., "value": ...} in the map's order, or None
    """
    if obj is None:
        return None
    return [{"key": key, "value": stringify(value)} for key, value in obj.items()]


def transform_list_to_object(items: Optional[List[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    """
    Rebuild a key/value map from a list of {key, value} records.

    Duplicate keys resolve to the last record.
    """
    if items is None:
        return None
    return {item["key"]: item.get("value") for item in items}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Naive values are taken to be UTC already.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime as UTC ISO-8601 with milliseconds, e.g. 2024-07-01T00:00:00.000Z"""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def add_months(value: datetime, months: int) -> datetime:
    """Shift a datetime by whole calendar months, clamping the day to the month's end."""
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
