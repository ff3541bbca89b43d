import copy
from unittest.mock import AsyncMock, MagicMock

import pytest

from es_action_store import ElasticsearchEngine, EngineConfig

ACTION_TEMPLATE = {
    "companyId": "company123",
    "clientId": "client456",
    "app": "testApp",
    "environment": "production",
    "framework": {"name": "elastic", "version": "18.2.0"},
    "sessionId": "session789",
    "traceIds": ["trace1", "trace2"],
    "action": {"id": "action123", "type": "USER_ACTION", "verb": "CLICK", "object": "BUTTON"},
    "agents": [
        {"id": "agent1", "type": "pwn", "name": "anyi", "meta": {"role": "user", "age": "30"}},
        {"id": "agent2", "type": "pwn", "name": "snickers", "meta": {"version": "1.0"}},
    ],
    "targets": [
        {"id": "target1", "type": "stuff", "name": "target", "meta": {"location": "header"}},
    ],
    "request": {
        "url": "/api/submit",
        "method": "POST",
        "body": {
            "data": {"mock": True},
            "test": None,
            "number": 2222,
            "array": [],
            "transactionId": "transaction_123",
        },
        "params": {"storeId": "store_123", "transactionId": "transaction_123"},
    },
    "response": {
        "status": "200",
        "time": 150,
        "body": {"result": "success"},
        "headers": {"Content-Type": "application/json"},
    },
    "changes": [
        {
            "model": "model",
            "operation": "update",
            "id": "model_123",
            "path": "/status",
            "before": "pending",
            "after": "completed",
            "meta": {"eye": "ball"},
        }
    ],
    "cost": {
        "amount": 0.00045,
        "currency": "USD",
        "components": [
            {"type": "gpt-4o-mini", "key": "promptTokens", "amount": 0.00026},
            {"type": "gpt-4o-mini", "key": "responseTokens", "amount": 0.00019},
        ],
        "meta": {"promptTokens": "1733", "responseTokens": "317"},
    },
    "meta": {"importance": "high", "category": "user-interaction"},
}

ELASTICSEARCH_ACTION_TEMPLATE = {
    **ACTION_TEMPLATE,
    "agents": [
        {
            **ACTION_TEMPLATE["agents"][0],
            "meta": [{"key": "role", "value": "user"}, {"key": "age", "value": "30"}],
        },
        {**ACTION_TEMPLATE["agents"][1], "meta": [{"key": "version", "value": "1.0"}]},
    ],
    "targets": [
        {**ACTION_TEMPLATE["targets"][0], "meta": [{"key": "location", "value": "header"}]},
    ],
    "request": [
        {"key": "url", "value": "/api/submit"},
        {"key": "method", "value": "POST"},
        {"key": "data", "parent": "body", "value": '{"mock":true}'},
        {"key": "number", "parent": "body", "value": "2222"},
        {"key": "array", "parent": "body", "value": "[]"},
        {"key": "transactionId", "parent": "body", "value": "transaction_123"},
        {"key": "storeId", "parent": "params", "value": "store_123"},
        {"key": "transactionId", "parent": "params", "value": "transaction_123"},
    ],
    "response": {
        **ACTION_TEMPLATE["response"],
        "body": [{"key": "result", "value": "success"}],
        "headers": [{"key": "Content-Type", "value": "application/json"}],
    },
    "changes": [
        {**ACTION_TEMPLATE["changes"][0], "meta": [{"key": "eye", "value": "ball"}]},
    ],
    "cost": {
        **ACTION_TEMPLATE["cost"],
        "meta": [
            {"key": "promptTokens", "value": "1733"},
            {"key": "responseTokens", "value": "317"},
        ],
    },
    "meta": [
        {"key": "importance", "value": "high"},
        {"key": "category", "value": "user-interaction"},
    ],
}

TIMESTAMP = "2024-07-15T10:30:00.000Z"


@pytest.fixture
def action():
    """A complete caller-facing Action."""
    return {"timestamp": TIMESTAMP, **copy.deepcopy(ACTION_TEMPLATE)}


@pytest.fixture
def stored_action():
    """The same Action as it is stored in Elasticsearch."""
    return {"timestamp": TIMESTAMP, **copy.deepcopy(ELASTICSEARCH_ACTION_TEMPLATE)}


@pytest.fixture
def config():
    return EngineConfig(auto_update_index_mappings=False)


@pytest.fixture
def es_client():
    """An AsyncElasticsearch stand-in whose API calls are AsyncMocks."""
    client = MagicMock()
    client.index = AsyncMock(return_value={"result": "created"})
    client.search = AsyncMock(return_value={"took": 3, "hits": {"total": {"value": 0}, "hits": []}})
    client.close = AsyncMock()
    client.indices.put_index_template = AsyncMock(return_value={"acknowledged": True})
    client.indices.get_index_template = AsyncMock(return_value={"index_templates": []})
    client.indices.get_mapping = AsyncMock(return_value={})
    client.indices.put_mapping = AsyncMock(return_value={"acknowledged": True})
    client.cat.indices = AsyncMock(return_value=[])
    # options() hands back the same client, bound to a timeout
    client.options = MagicMock(return_value=client)
    return client


@pytest.fixture
def engine(config, es_client):
    return ElasticsearchEngine(config, client=es_client)
