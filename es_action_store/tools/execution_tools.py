import logging
from typing import Any, Dict, List, Optional

from elasticsearch import AsyncElasticsearch

from es_action_store.config import DEFAULT_PAGE_SIZE
from es_action_store.tools.connection import describe_error, response_body, with_timeout

logger = logging.getLogger(__name__)


def build_search_body(
    clauses: List[Dict[str, Any]],
    options: Optional[Dict[str, Any]] = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    """
    Wrap compiled clauses into a paginated, sorted search body.

    Args:
        clauses: Clauses from the query builder, ANDed together
        options: page (default 1), limit, sortBy (default "timestamp"),
            sortDirection (default "desc")
        default_page_size: Page size when no limit is given

    Returns:
        Search body with query, from, size and sort
    """
    options = options or {}
    page = options.get("page") or 1
    limit = options.get("limit") or default_page_size

    return {
        "query": {"bool": {"must": clauses}},
        "from": (page - 1) * limit,
        "size": limit,
        "sort": [
            {options.get("sortBy") or "timestamp": {"order": options.get("sortDirection") or "desc"}}
        ],
    }


class QueryExecutionTools:
    """Tools for executing searches against Elasticsearch."""

    def __init__(self, client: AsyncElasticsearch):
        self.es = client

    async def execute_search(
        self, index_name: str, body: Dict[str, Any], request_timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Execute a search over one or more indices, ignoring missing ones.

        Args:
            index_name: Comma-joined index names
            body: Search body from build_search_body
            request_timeout: Per-request timeout in seconds

        Returns:
            Search results with total hits and document sources
        """
        logger.debug(f"findMany search on {index_name}: {body}")

        try:
            response = response_body(
                await with_timeout(self.es, request_timeout).search(
                    index=index_name,
                    ignore_unavailable=True,
                    query=body["query"],
                    from_=body["from"],
                    size=body["size"],
                    sort=body["sort"],
                )
            )
        except Exception as e:
            logger.error(f"Error executing search on {index_name}: {describe_error(e)}")
            raise

        hits = response.get("hits", {})
        total = hits.get("total", {})
        return {
            "total_hits": total.get("value", 0) if isinstance(total, dict) else total,
            "documents": [
                {"id": hit.get("_id"), "source": hit.get("_source")}
                for hit in hits.get("hits", [])
            ],
            "took_ms": response.get("took"),
        }
