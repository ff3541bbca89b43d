import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from elasticsearch import AsyncElasticsearch, NotFoundError

from es_action_store.config import DEFAULT_START_MONTHS_AGO, INDEX_PATTERN, EngineConfig
from es_action_store.mapping import INDEX_MAPPING
from es_action_store.tools.connection import describe_error, response_body
from es_action_store.utils import add_months, deep_compare_objects, get, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class IndexRouter:
    """Maps actions and date ranges onto time-sharded index names."""

    def __init__(
        self,
        index_pattern: str = INDEX_PATTERN,
        default_start_months_ago: int = DEFAULT_START_MONTHS_AGO,
    ):
        self.index_pattern = index_pattern
        self.default_start_months_ago = default_start_months_ago

    def format_index_name(self, company_id: Optional[str], year: int, month: int) -> str:
        return (
            self.index_pattern.replace("{companyId}", company_id or "")
            .replace("{year}", f"{year:04d}")
            .replace("{month}", f"{month:02d}")
        )

    def get_index_name(self, action: Dict[str, Any]) -> str:
        """
        Get the index to store an action in.

        Args:
            action: Action or storage document with a timestamp and companyId

        Returns:
            Index name for the action's company and UTC year/month
        """
        timestamp = parse_timestamp(action["timestamp"])
        return self.format_index_name(action.get("companyId"), timestamp.year, timestamp.month)

    def get_index_name_range(
        self,
        company_id: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Get the indices covering a date range, one per calendar month.

        Each month is named after the last instant it covers, so a partial
        final month still resolves to its own index even if that index does
        not exist yet; searches ignore missing indices.

        Args:
            company_id: Company whose indices are searched
            start: ISO-8601 start of the range (defaults to N months ago)
            end: ISO-8601 end of the range (defaults to now)
            now: Instant used for the defaults

        Returns:
            Comma-joined index names, empty when the range is empty
        """
        now = now or utc_now()
        start_date = parse_timestamp(start) if start else add_months(now, -self.default_start_months_ago)
        end_date = parse_timestamp(end) if end else now

        names = []
        bucket_start = start_date
        while bucket_start < end_date:
            month_start = bucket_start.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
            bucket_end = min(add_months(month_start, 1), end_date)
            last_instant = bucket_end - timedelta(microseconds=1)
            names.append(
                self.format_index_name(company_id, last_instant.year, last_instant.month)
            )
            bucket_start = bucket_end

        return ",".join(names)


class IndexMappingManager:
    """Keeps the index template and existing index mappings in line with INDEX_MAPPING."""

    def __init__(
        self,
        client: AsyncElasticsearch,
        config: EngineConfig,
        mapping: Dict[str, Any] = INDEX_MAPPING,
    ):
        self.es = client
        self.config = config
        self.mapping = mapping

    async def create_index_template(self) -> None:
        """Create the dynamic index template applied to every action index."""
        try:
            await self.es.indices.put_index_template(
                name=self.config.index_template_name,
                index_patterns=[self.config.index_template_pattern],
                template={
                    "settings": {
                        "index": {
                            "number_of_shards": self.config.index_template_num_shards,
                            "number_of_replicas": self.config.index_template_num_replicas,
                        }
                    },
                    "mappings": {"properties": self.mapping},
                },
            )
            logger.info(f"Index template {self.config.index_template_name} created")

        except Exception as e:
            logger.error(f"Error creating index template: {describe_error(e)}")

    async def upsert_index_template(self) -> None:
        """
        Create the index template if it doesn't exist.

        An existing template whose mapping differs is reported and left
        untouched.
        """
        name = self.config.index_template_name
        try:
            result = response_body(await self.es.indices.get_index_template(name=name))
        except NotFoundError:
            logger.info(f"Index template {name} does not exist; creating now")
            await self.create_index_template()
            return
        except Exception as e:
            logger.error(f"Error getting index template {name}: {describe_error(e)}")
            return

        templates = result.get("index_templates") or [{}]
        properties = get(templates[0], "index_template.template.mappings.properties")

        if properties is None:
            logger.info(f"Index template {name} has no mapping; creating now")
            await self.create_index_template()
        elif deep_compare_objects(properties, self.mapping):
            logger.debug(f"Index template {name} already exists & matches mapping")
        else:
            logger.warning(
                f"Index template {name} already exists but does not match mapping; leaving it untouched"
            )
            logger.debug(f"Index template {name} mapping: {properties}")

    async def get_index_mapping(self, index_name: str) -> Optional[Dict[str, Any]]:
        """
        Get the mapping properties of an existing index.

        Args:
            index_name: Name of the Elasticsearch index

        Returns:
            The index's mapping properties, or None when it has none
        """
        mapping = response_body(await self.es.indices.get_mapping(index=index_name))
        index_mapping = mapping.get(index_name, {})
        return index_mapping.get("mappings", {}).get("properties")

    async def update_index_mapping(self, index_name: str) -> None:
        """Update one existing index mapping, if it differs from the declared one."""
        try:
            properties = await self.get_index_mapping(index_name)
        except Exception as e:
            logger.error(f"Error getting mapping for index {index_name}: {describe_error(e)}")
            properties = None

        if properties is not None and deep_compare_objects(properties, self.mapping):
            logger.debug(f"Index {index_name} already matches mapping")
            return

        try:
            # mappings can only grow; new fields are added, existing ones are kept
            await self.es.indices.put_mapping(index=index_name, properties=self.mapping)
            logger.info(f"Index {index_name} mapping updated to match template")

        except Exception as e:
            logger.error(f"Error updating mapping for index {index_name}: {describe_error(e)}")

    async def list_indices(self) -> List[str]:
        """List the names of all indices matching the template pattern."""
        try:
            indices_response = response_body(
                await self.es.cat.indices(
                    index=self.config.index_template_pattern, format="json", h="index"
                )
            )
        except Exception as e:
            logger.error(f"Error listing indices: {describe_error(e)}")
            return []

        indices = [index.get("index", "") for index in indices_response or []]
        logger.debug(f"Found {len(indices)} action indices")
        return [index for index in indices if index]

    async def update_index_mappings(self) -> None:
        """Update every existing action index mapping concurrently."""
        indices = await self.list_indices()
        if not indices:
            return

        results = await asyncio.gather(
            *(self.update_index_mapping(index) for index in indices), return_exceptions=True
        )
        for index, result in zip(indices, results):
            if isinstance(result, Exception):
                logger.error(f"Error reconciling index {index}: {describe_error(result)}")

    async def reconcile(self) -> None:
        """Upsert the index template, then bring existing indices in line."""
        await self.upsert_index_template()
        await self.update_index_mappings()
