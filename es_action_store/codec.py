"""
Document codec between caller-facing Actions and Elasticsearch documents.

Elasticsearch needs its mapping fixed up front, so every dynamic key/value map
of an Action (meta, agents.meta, targets.meta, changes.meta, cost.meta,
response.body, response.headers) is stored as a nested list of generic
{key, value} records. The request payload gets the same treatment with an
extra `parent` for one level of nesting. Values are always stored as strings.
"""

from typing import Any, Dict, List

from es_action_store.utils import (
    stringify,
    transform_list_to_object,
    transform_object_to_list,
)

Action = Dict[str, Any]
StorageDocument = Dict[str, Any]


def _with_meta(entity: Dict[str, Any], transform) -> Dict[str, Any]:
    converted = dict(entity)
    if entity.get("meta") is not None:
        converted["meta"] = transform(entity["meta"])
    return converted


def serialize_request(request: Dict[str, Any]) -> List[Dict[str, str]]:
    """
    Flatten a request payload into {key, parent?, value} records.

    Scalars (and lists) become top-level records; a dictionary value becomes
    one record per child with the dictionary's key as `parent`. Records whose
    value is None or ends up empty are dropped.

    Args:
        request: Request payload of an Action

    Returns:
        List of flattened request records
    """
    entries = []
    for key, value in request.items():
        if isinstance(value, dict):
            for nested_key, nested_value in value.items():
                if nested_value is None:
                    continue
                entries.append(
                    {"key": nested_key, "parent": key, "value": stringify(nested_value)}
                )
        elif value is not None:
            entries.append({"key": key, "value": stringify(value)})

    return [entry for entry in entries if entry["value"]]


def deserialize_request(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Rebuild a request payload from its flattened records."""
    request: Dict[str, Any] = {}
    for entry in entries:
        parent = entry.get("parent")
        if not parent:
            request[entry["key"]] = entry.get("value")
        else:
            request.setdefault(parent, {})[entry["key"]] = entry.get("value")
    return request


def _serialize_change(change: Dict[str, Any]) -> Dict[str, Any]:
    converted = _with_meta(change, transform_object_to_list)
    for field in ("before", "after"):
        value = change.get(field)
        if value is None or value == "":
            converted.pop(field, None)
        else:
            converted[field] = stringify(value)
    return converted


def serialize(action: Action) -> StorageDocument:
    """
    Convert an Action into the document stored in Elasticsearch.

    Args:
        action: Caller-facing Action

    Returns:
        A new storage document; the Action is left untouched
    """
    document = dict(action)

    if action.get("agents") is not None:
        document["agents"] = [
            _with_meta(agent, transform_object_to_list) for agent in action["agents"]
        ]

    if action.get("targets") is not None:
        document["targets"] = [
            _with_meta(target, transform_object_to_list) for target in action["targets"]
        ]

    if action.get("request") is not None:
        document["request"] = serialize_request(action["request"])

    if action.get("response") is not None:
        response = dict(action["response"])
        for field in ("body", "headers"):
            if response.get(field) is not None:
                response[field] = transform_object_to_list(response[field])
        document["response"] = response

    if action.get("changes") is not None:
        document["changes"] = [_serialize_change(change) for change in action["changes"]]

    if action.get("cost") is not None:
        document["cost"] = _with_meta(action["cost"], transform_object_to_list)

    if action.get("meta") is not None:
        document["meta"] = transform_object_to_list(action["meta"])

    return document


def deserialize(document: StorageDocument) -> Action:
    """
    Convert a stored Elasticsearch document back into an Action.

    Args:
        document: Document as found in a hit's `_source`

    Returns:
        A new caller-facing Action
    """
    action = dict(document)

    if document.get("agents") is not None:
        action["agents"] = [
            _with_meta(agent, transform_list_to_object) for agent in document["agents"]
        ]

    if document.get("targets") is not None:
        action["targets"] = [
            _with_meta(target, transform_list_to_object) for target in document["targets"]
        ]

    if document.get("request") is not None:
        action["request"] = deserialize_request(document["request"])

    if document.get("response") is not None:
        response = dict(document["response"])
        for field in ("body", "headers"):
            if response.get(field) is not None:
                response[field] = transform_list_to_object(response[field])
        action["response"] = response

    if document.get("changes") is not None:
        action["changes"] = [
            _with_meta(change, transform_list_to_object) for change in document["changes"]
        ]

    if document.get("cost") is not None:
        action["cost"] = _with_meta(document["cost"], transform_list_to_object)

    if document.get("meta") is not None:
        action["meta"] = transform_list_to_object(document["meta"])

    return action
