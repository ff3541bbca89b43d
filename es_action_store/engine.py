import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

from elasticsearch import AsyncElasticsearch
from elasticsearch.helpers import async_bulk

from es_action_store import codec
from es_action_store.config import EngineConfig
from es_action_store.models import ElasticsearchAction
from es_action_store.tools.connection import (
    ElasticsearchConnection,
    describe_error,
    response_body,
    with_timeout,
)
from es_action_store.tools.execution_tools import QueryExecutionTools, build_search_body
from es_action_store.tools.index_tools import IndexMappingManager, IndexRouter
from es_action_store.tools.query_tools import FindManyQueryBuilder
from es_action_store.utils import utc_now

logger = logging.getLogger(__name__)

Action = Dict[str, Any]


class StorageEngine(Protocol):
    """Capabilities every action storage engine provides."""

    async def create_action(self, action: Action) -> Action: ...

    async def create_many_actions(self, actions: List[Action]) -> List[Action]: ...

    async def find_many(
        self, options: Optional[Dict[str, Any]], filters: Dict[str, Any]
    ) -> List[Action]: ...

    async def find_by_id(self, id: str) -> Action: ...


class ElasticsearchEngine:
    """
    Stores Actions in time-sharded Elasticsearch indices and searches them.

    Actions are flattened by the codec before they are written, filters are
    compiled by FindManyQueryBuilder, and index names come from IndexRouter.
    When enabled, the index template and existing mappings are reconciled in
    the background once the engine is created.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        client: Optional[AsyncElasticsearch] = None,
    ):
        self.config = config or EngineConfig()
        self.connection = ElasticsearchConnection(self.config, client)
        self.es = self.connection.get_client()

        self.router = IndexRouter(self.config.index_pattern, self.config.default_start_months_ago)
        self.query_builder = FindManyQueryBuilder(self.config.default_start_months_ago)
        self.mapping_manager = IndexMappingManager(self.es, self.config)
        self.execution_tools = QueryExecutionTools(self.es)

        self._maintenance_task: Optional[asyncio.Task] = None
        self._maintenance_scheduled = False
        self._start_index_maintenance()

    async def __aenter__(self) -> "ElasticsearchEngine":
        self._start_index_maintenance()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _start_index_maintenance(self) -> None:
        """Schedule template/mapping reconciliation once, without waiting for it."""
        if self._maintenance_scheduled or not self.config.auto_update_index_mappings:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; index maintenance starts with the first request")
            return

        self._maintenance_scheduled = True
        self._maintenance_task = loop.create_task(self._run_index_maintenance())

    async def _run_index_maintenance(self) -> None:
        try:
            await self.mapping_manager.reconcile()
        except Exception as e:
            logger.error(f"Index maintenance failed: {describe_error(e)}")

    async def close(self) -> None:
        if self._maintenance_task is not None and not self._maintenance_task.done():
            self._maintenance_task.cancel()
            await asyncio.gather(self._maintenance_task, return_exceptions=True)
        await self.connection.close()

    def serialize(self, action: Action) -> Dict[str, Any]:
        """Convert an Action into the document stored in Elasticsearch."""
        return codec.serialize(action)

    def deserialize(self, document: Dict[str, Any]) -> Action:
        """Convert a stored document back into an Action."""
        return codec.deserialize(document)

    def _prepare(self, document: Dict[str, Any]) -> Dict[str, Any]:
        # raises pydantic.ValidationError before anything reaches the cluster
        ElasticsearchAction.model_validate(document)
        return {**document, "id": document.get("id") or str(uuid4())}

    async def create(
        self, document: Dict[str, Any], request_timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Index a single storage document, waiting for it to become searchable.

        Args:
            document: Serialized action
            request_timeout: Per-request timeout in seconds

        Returns:
            The indexed document, with its id
        """
        self._start_index_maintenance()

        body = self._prepare(document)
        index_name = self.router.get_index_name(body)

        try:
            response = await with_timeout(self.es, request_timeout).index(
                index=index_name, id=body["id"], document=body, refresh=True
            )
        except Exception as e:
            logger.error(f"Error indexing action into {index_name}: {describe_error(e)}")
            raise

        logger.debug(f"Indexed action {body['id']} into {index_name}: {response_body(response)}")
        return body

    async def create_many(
        self, documents: List[Dict[str, Any]], request_timeout: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """
        Bulk index storage documents.

        Every document is validated first; a single invalid one fails the
        whole batch before any request is sent.

        Args:
            documents: Serialized actions
            request_timeout: Per-request timeout in seconds

        Returns:
            The indexed documents, with their ids
        """
        self._start_index_maintenance()

        bodies = [self._prepare(document) for document in documents or []]
        if not bodies:
            return []

        actions = [
            {"_index": self.router.get_index_name(body), "_id": body["id"], "_source": body}
            for body in bodies
        ]

        try:
            indexed, _ = await async_bulk(with_timeout(self.es, request_timeout), actions)
        except Exception as e:
            logger.error(f"Error bulk indexing {len(actions)} actions: {describe_error(e)}")
            raise

        logger.debug(f"Bulk indexed {indexed} actions")
        return bodies

    async def create_action(self, action: Action, request_timeout: Optional[float] = None) -> Action:
        """Serialize, index and return an Action."""
        created = await self.create(self.serialize(action), request_timeout=request_timeout)
        return self.deserialize(created)

    async def create_many_actions(
        self, actions: List[Action], request_timeout: Optional[float] = None
    ) -> List[Action]:
        """Serialize, bulk index and return several Actions."""
        documents = [self.serialize(action) for action in actions or []]
        created = await self.create_many(documents, request_timeout=request_timeout)
        return [self.deserialize(document) for document in created]

    async def find_by_id(self, id: str) -> Action:
        raise NotImplementedError("find_by_id is not implemented")

    def build_find_many_query(
        self,
        options: Optional[Dict[str, Any]],
        filters: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Compile findMany filters into the clauses of a bool.must query."""
        return self.query_builder.build(options, filters, now)

    async def find_many(
        self,
        options: Optional[Dict[str, Any]],
        filters: Dict[str, Any],
        request_timeout: Optional[float] = None,
    ) -> List[Action]:
        """
        Find the Actions matching the filters, one page at a time.

        Args:
            options: page, limit, sortBy and sortDirection
            filters: Filters of the search; companyId is required
            request_timeout: Per-request timeout in seconds

        Returns:
            Deserialized Actions of the requested page
        """
        self._start_index_maintenance()

        now = utc_now()
        clauses = self.build_find_many_query(options, filters, now)
        index_name = self.router.get_index_name_range(
            filters["companyId"], filters.get("start"), filters.get("end"), now
        )
        if not index_name:
            logger.debug("findMany date range is empty; nothing to search")
            return []

        body = build_search_body(clauses, options, self.config.default_page_size)
        results = await self.execution_tools.execute_search(index_name, body, request_timeout)

        return [
            self.deserialize(document["source"])
            for document in results["documents"]
            if document.get("source")
        ]
