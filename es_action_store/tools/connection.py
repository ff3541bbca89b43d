import logging
from typing import Any, Optional

from elasticsearch import AsyncElasticsearch

from es_action_store.config import EngineConfig

logger = logging.getLogger(__name__)


class ElasticsearchConnection:
    """Elasticsearch connection shared by the engine and its tools."""

    def __init__(self, config: EngineConfig, client: Optional[AsyncElasticsearch] = None):
        self.config = config
        self._es_client = client

    def get_client(self) -> AsyncElasticsearch:
        """Get or create the Elasticsearch client."""
        if self._es_client is None:
            self._es_client = self._connect_to_elasticsearch()
        return self._es_client

    def _connect_to_elasticsearch(self) -> AsyncElasticsearch:
        """
        Create Elasticsearch connection from the engine configuration.

        Returns:
            AsyncElasticsearch client instance
        """
        es_host = self.config.es_host

        if self.config.es_api_key:
            es_client = AsyncElasticsearch(
                es_host, api_key=self.config.es_api_key, verify_certs=self.config.verify_certs
            )
        else:
            # For local development without API key
            es_client = AsyncElasticsearch(es_host, verify_certs=self.config.verify_certs)

        logger.info(f"Connected to Elasticsearch at {es_host}")
        return es_client

    async def close(self) -> None:
        if self._es_client is not None:
            await self._es_client.close()
            self._es_client = None


def response_body(response: Any) -> Any:
    """Unwrap the body of an Elasticsearch API response."""
    return getattr(response, "body", response)


def describe_error(error: Exception) -> str:
    """Describe a client error with its HTTP status code, when it has one."""
    meta = getattr(error, "meta", None)
    status = getattr(meta, "status", None)
    body = getattr(error, "body", None)
    description = f"{status} {type(error).__name__} {error}"
    if body:
        description += f" {body}"
    return description


def with_timeout(client: AsyncElasticsearch, request_timeout: Optional[float] = None) -> AsyncElasticsearch:
    """Return the client bound to a per-request timeout, in seconds."""
    if request_timeout is None:
        return client
    return client.options(request_timeout=request_timeout)
