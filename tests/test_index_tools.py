"""
Tests for index routing and for keeping index mappings up to date.
"""

import asyncio
import copy
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from elasticsearch import NotFoundError

from es_action_store.mapping import INDEX_MAPPING
from es_action_store.tools.index_tools import IndexMappingManager, IndexRouter


def not_found():
    return NotFoundError("not found", meta=MagicMock(status=404), body={})


def template_response(properties):
    return {
        "index_templates": [
            {
                "name": "acro_actions",
                "index_template": {
                    "index_patterns": ["actions_*"],
                    "template": {"mappings": {"properties": properties}},
                },
            }
        ]
    }


class TestIndexRouter:
    """Test suite for IndexRouter."""

    def setup_method(self):
        self.router = IndexRouter()

    def test_write_index(self):
        action = {"companyId": "c1", "timestamp": "2024-07-15T10:30:00.000Z"}
        assert self.router.get_index_name(action) == "actions_c1_2024_07"

    def test_write_index_uses_utc(self):
        action = {"companyId": "c1", "timestamp": "2024-08-01T01:00:00+02:00"}
        assert self.router.get_index_name(action) == "actions_c1_2024_07"

    def test_custom_pattern(self):
        router = IndexRouter("logs-{year}.{month}-{companyId}")
        assert router.format_index_name("acme", 2025, 1) == "logs-2025.01-acme"

    def test_two_month_range(self):
        names = self.router.get_index_name_range("c1", "2024-07-01T00:00:00Z", "2024-08-31T23:59:59Z")
        assert names == "actions_c1_2024_07,actions_c1_2024_08"

    def test_range_ending_on_month_boundary(self):
        names = self.router.get_index_name_range("c1", "2024-07-01T00:00:00Z", "2024-08-01T00:00:00Z")
        assert names == "actions_c1_2024_07"

    def test_mid_month_range_spans_year_end(self):
        names = self.router.get_index_name_range("c1", "2024-11-20T00:00:00Z", "2025-01-05T00:00:00Z")
        assert names == "actions_c1_2024_11,actions_c1_2024_12,actions_c1_2025_01"

    def test_default_range_is_six_months(self):
        now = datetime(2024, 8, 15, tzinfo=timezone.utc)
        names = self.router.get_index_name_range("c1", now=now).split(",")
        assert names == [f"actions_c1_2024_{month:02d}" for month in range(2, 9)]

    def test_empty_range(self):
        assert self.router.get_index_name_range("c1", "2024-08-01T00:00:00Z", "2024-07-01T00:00:00Z") == ""


class TestIndexMappingManager:
    """Test suite for IndexMappingManager."""

    def test_create_template(self, es_client, config):
        manager = IndexMappingManager(es_client, config)
        asyncio.run(manager.create_index_template())

        es_client.indices.put_index_template.assert_awaited_once_with(
            name="acro_actions",
            index_patterns=["actions_*"],
            template={
                "settings": {"index": {"number_of_shards": 5, "number_of_replicas": 1}},
                "mappings": {"properties": INDEX_MAPPING},
            },
        )

    def test_create_template_error_is_logged_not_raised(self, es_client, config, caplog):
        es_client.indices.put_index_template.side_effect = RuntimeError("boom")
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.create_index_template())

        assert "Error creating index template" in caplog.text

    def test_upsert_creates_missing_template(self, es_client, config):
        es_client.indices.get_index_template.side_effect = not_found()
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.upsert_index_template())

        es_client.indices.put_index_template.assert_awaited_once()

    def test_upsert_leaves_matching_template(self, es_client, config):
        es_client.indices.get_index_template.return_value = template_response(
            copy.deepcopy(INDEX_MAPPING)
        )
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.upsert_index_template())

        es_client.indices.put_index_template.assert_not_awaited()

    def test_upsert_leaves_different_template_untouched(self, es_client, config, caplog):
        es_client.indices.get_index_template.return_value = template_response({"id": {"type": "keyword"}})
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.upsert_index_template())

        es_client.indices.put_index_template.assert_not_awaited()
        assert "does not match mapping" in caplog.text

    def test_upsert_swallows_other_errors(self, es_client, config):
        es_client.indices.get_index_template.side_effect = RuntimeError("unreachable")
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.upsert_index_template())

        es_client.indices.put_index_template.assert_not_awaited()

    def test_update_mapping_when_it_differs(self, es_client, config):
        es_client.indices.get_mapping.return_value = {
            "actions_c1_2024_07": {"mappings": {"properties": {"id": {"type": "keyword"}}}}
        }
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.update_index_mapping("actions_c1_2024_07"))

        es_client.indices.put_mapping.assert_awaited_once_with(
            index="actions_c1_2024_07", properties=INDEX_MAPPING
        )

    def test_no_update_when_mapping_matches(self, es_client, config):
        es_client.indices.get_mapping.return_value = {
            "actions_c1_2024_07": {"mappings": {"properties": copy.deepcopy(INDEX_MAPPING)}}
        }
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.update_index_mapping("actions_c1_2024_07"))

        es_client.indices.put_mapping.assert_not_awaited()

    def test_update_all_indices_isolates_failures(self, es_client, config):
        es_client.cat.indices.return_value = [
            {"index": "actions_c1_2024_07"},
            {"index": "actions_c1_2024_08"},
        ]
        es_client.indices.put_mapping.side_effect = [RuntimeError("closed index"), {"acknowledged": True}]
        manager = IndexMappingManager(es_client, config)

        asyncio.run(manager.update_index_mappings())

        assert es_client.indices.put_mapping.await_count == 2
        es_client.cat.indices.assert_awaited_once_with(index="actions_*", format="json", h="index")

    def test_reconcile_runs_template_then_indices(self, es_client, config):
        manager = IndexMappingManager(es_client, config)
        manager.upsert_index_template = AsyncMock()
        manager.update_index_mappings = AsyncMock()

        asyncio.run(manager.reconcile())

        manager.upsert_index_template.assert_awaited_once()
        manager.update_index_mappings.assert_awaited_once()
