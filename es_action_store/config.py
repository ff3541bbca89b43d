import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# revolving index names follow this pattern
INDEX_PATTERN = "actions_{companyId}_{year}_{month}"

# dynamic index template applied to every action index
INDEX_TEMPLATE_NAME = "acro_actions"
INDEX_TEMPLATE_PATTERN = "actions_*"
INDEX_TEMPLATE_NUM_SHARDS = 5
INDEX_TEMPLATE_NUM_REPLICAS = 1

DEFAULT_START_MONTHS_AGO = 6
DEFAULT_PAGE_SIZE = 25


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


@dataclass(frozen=True)
class EngineConfig:
    """Settings of an ElasticsearchEngine, built once at startup."""

    es_host: str = "http://localhost:9200"
    es_api_key: Optional[str] = None
    verify_certs: bool = True
    index_pattern: str = INDEX_PATTERN
    index_template_name: str = INDEX_TEMPLATE_NAME
    index_template_pattern: str = INDEX_TEMPLATE_PATTERN
    index_template_num_shards: int = INDEX_TEMPLATE_NUM_SHARDS
    index_template_num_replicas: int = INDEX_TEMPLATE_NUM_REPLICAS
    auto_update_index_mappings: bool = True
    default_start_months_ago: int = DEFAULT_START_MONTHS_AGO
    default_page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build the configuration from environment variables (and a .env file).

        Returns:
            EngineConfig with every unset variable left at its default
        """
        load_dotenv()

        return cls(
            es_host=os.getenv("ES_HOST", cls.es_host),
            es_api_key=os.getenv("ES_API_KEY") or None,
            verify_certs=_env_bool("ES_VERIFY_CERTS", cls.verify_certs),
            index_pattern=os.getenv("ES_INDEX_PATTERN", cls.index_pattern),
            index_template_name=os.getenv("ES_INDEX_TEMPLATE_NAME", cls.index_template_name),
            index_template_pattern=os.getenv(
                "ES_INDEX_TEMPLATE_PATTERN", cls.index_template_pattern
            ),
            index_template_num_shards=_env_int(
                "ES_INDEX_TEMPLATE_SHARDS", cls.index_template_num_shards
            ),
            index_template_num_replicas=_env_int(
                "ES_INDEX_TEMPLATE_REPLICAS", cls.index_template_num_replicas
            ),
            auto_update_index_mappings=_env_bool(
                "ES_AUTO_UPDATE_MAPPINGS", cls.auto_update_index_mappings
            ),
            default_start_months_ago=_env_int(
                "ES_DEFAULT_START_MONTHS_AGO", cls.default_start_months_ago
            ),
            default_page_size=_env_int("ES_DEFAULT_PAGE_SIZE", cls.default_page_size),
        )
