"""
Tests for converting Actions to and from their stored Elasticsearch form.
"""

import copy

from es_action_store.codec import deserialize, deserialize_request, serialize, serialize_request
from es_action_store.models import ElasticsearchAction


class TestSerialize:
    """Test suite for serialize()."""

    def test_serializes_a_complete_action(self, action, stored_action):
        assert serialize(action) == stored_action

    def test_result_validates_against_the_document_model(self, action):
        ElasticsearchAction.model_validate(serialize(action))

    def test_input_not_modified(self, action):
        snapshot = copy.deepcopy(action)
        serialize(action)
        assert action == snapshot

    def test_absent_optional_parts_stay_absent(self):
        action = {
            "timestamp": "2024-07-01T00:00:00.000Z",
            "companyId": "c1",
            "action": {"type": "HTTP", "verb": "GET"},
            "agents": [{"type": "USER"}],
        }
        assert serialize(action) == action

    def test_non_string_meta_values_stringified(self):
        document = serialize(
            {
                "timestamp": "2024-07-01T00:00:00.000Z",
                "action": {"type": "HTTP", "verb": "GET"},
                "agents": [{"type": "USER", "meta": {"admin": True, "age": 30}}],
                "meta": {"tags": ["a", "b"]},
            }
        )
        assert document["agents"][0]["meta"] == [
            {"key": "admin", "value": "true"},
            {"key": "age", "value": "30"},
        ]
        assert document["meta"] == [{"key": "tags", "value": '["a","b"]'}]

    def test_change_values_stringified_and_empty_ones_omitted(self):
        document = serialize(
            {
                "timestamp": "2024-07-01T00:00:00.000Z",
                "action": {"type": "HTTP", "verb": "PATCH"},
                "agents": [{"type": "USER"}],
                "changes": [
                    {"model": "Invoice", "operation": "update", "before": 10, "after": {"a": 1}},
                    {"model": "Invoice", "operation": "create", "before": "", "after": "new"},
                ],
            }
        )
        assert document["changes"] == [
            {"model": "Invoice", "operation": "update", "before": "10", "after": '{"a":1}'},
            {"model": "Invoice", "operation": "create", "after": "new"},
        ]


class TestRequestRecords:
    """Test suite for request flattening."""

    def test_nested_values_get_a_parent(self):
        assert serialize_request({"params": {"storeId": "s1"}, "url": "/x"}) == [
            {"key": "storeId", "parent": "params", "value": "s1"},
            {"key": "url", "value": "/x"},
        ]

    def test_empty_values_dropped(self):
        assert serialize_request({"a": "", "b": None, "c": {"d": "", "e": None, "f": "1"}}) == [
            {"key": "f", "parent": "c", "value": "1"},
        ]

    def test_deeper_values_stringified_under_their_parent(self):
        assert serialize_request({"body": {"data": {"mock": True}}}) == [
            {"key": "data", "parent": "body", "value": '{"mock":true}'},
        ]

    def test_rebuilds_one_level_of_nesting(self):
        entries = [
            {"key": "url", "value": "/x"},
            {"key": "storeId", "parent": "params", "value": "s1"},
            {"key": "page", "parent": "params", "value": "2"},
        ]
        assert deserialize_request(entries) == {"url": "/x", "params": {"storeId": "s1", "page": "2"}}


class TestDeserialize:
    """Test suite for deserialize()."""

    def test_deserializes_a_stored_action(self, action, stored_action):
        expected = copy.deepcopy(action)
        # request values come back as their stored strings
        expected["request"]["body"] = {
            "data": '{"mock":true}',
            "number": "2222",
            "array": "[]",
            "transactionId": "transaction_123",
        }
        assert deserialize(stored_action) == expected

    def test_round_trip_of_string_valued_action(self, action):
        action["request"]["body"] = {"transactionId": "transaction_123"}
        assert deserialize(serialize(action)) == action

    def test_keeps_unknown_top_level_fields(self, stored_action):
        stored_action["id"] = "abc"
        assert deserialize(stored_action)["id"] == "abc"
