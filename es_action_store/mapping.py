KEYWORD = {"type": "keyword"}

TEXT_WITH_KEYWORD = {
    "type": "text",
    "fields": {
        "keyword": {"type": "keyword"},
    },
}

# Dynamic key/value maps are stored as a nested list of generic records so the
# mapping never grows with the caller's keys.
KEY_VALUE = {
    "type": "nested",
    "properties": {
        "key": KEYWORD,
        "value": TEXT_WITH_KEYWORD,
    },
}

ENTITY = {
    "type": "nested",
    "properties": {
        "id": KEYWORD,
        "type": KEYWORD,
        "name": TEXT_WITH_KEYWORD,
        "meta": KEY_VALUE,
    },
}

INDEX_MAPPING = {
    "id": KEYWORD,
    "timestamp": {
        "type": "date",
        "format": "date_time",
    },
    "companyId": KEYWORD,
    "clientId": KEYWORD,
    "app": KEYWORD,
    "environment": KEYWORD,
    "framework": {
        "properties": {
            "name": KEYWORD,
            "version": KEYWORD,
        }
    },
    "sessionId": KEYWORD,
    "traceIds": KEYWORD,
    "action": {
        "properties": {
            "id": KEYWORD,
            "type": KEYWORD,
            "verb": KEYWORD,
            "object": TEXT_WITH_KEYWORD,
        }
    },
    "agents": ENTITY,
    "targets": ENTITY,
    "request": {
        "type": "nested",
        "properties": {
            "key": KEYWORD,
            "parent": KEYWORD,
            "value": TEXT_WITH_KEYWORD,
        },
    },
    "response": {
        "properties": {
            "status": KEYWORD,
            "time": {"type": "float"},
            "body": KEY_VALUE,
            "headers": KEY_VALUE,
        }
    },
    "changes": {
        "type": "nested",
        "properties": {
            "model": KEYWORD,
            "operation": KEYWORD,
            "id": KEYWORD,
            "path": TEXT_WITH_KEYWORD,
            "before": TEXT_WITH_KEYWORD,
            "after": TEXT_WITH_KEYWORD,
            "meta": KEY_VALUE,
        },
    },
    "cost": {
        "properties": {
            "amount": {"type": "float"},
            "currency": KEYWORD,
            "components": {
                "type": "nested",
                "properties": {
                    "type": KEYWORD,
                    "key": KEYWORD,
                    "amount": {"type": "float"},
                },
            },
            "meta": KEY_VALUE,
        }
    },
    "meta": KEY_VALUE,
}
