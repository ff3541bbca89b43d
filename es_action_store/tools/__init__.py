# Tools package for the Elasticsearch action store

from es_action_store.tools.connection import ElasticsearchConnection
from es_action_store.tools.index_tools import IndexMappingManager, IndexRouter
from es_action_store.tools.query_tools import FindManyQueryBuilder, build_find_many_query
from es_action_store.tools.execution_tools import QueryExecutionTools, build_search_body

__all__ = [
    "ElasticsearchConnection",
    "IndexMappingManager",
    "IndexRouter",
    "FindManyQueryBuilder",
    "build_find_many_query",
    "QueryExecutionTools",
    "build_search_body",
]
