# Elasticsearch storage engine for Action audit records

from es_action_store.codec import deserialize, serialize
from es_action_store.config import EngineConfig
from es_action_store.engine import ElasticsearchEngine, StorageEngine
from es_action_store.mapping import INDEX_MAPPING
from es_action_store.models import ElasticsearchAction

__all__ = [
    "ElasticsearchEngine",
    "StorageEngine",
    "EngineConfig",
    "ElasticsearchAction",
    "INDEX_MAPPING",
    "serialize",
    "deserialize",
]
