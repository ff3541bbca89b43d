import logging

from es_action_store import ElasticsearchEngine

logger = logging.getLogger(__name__)


async def setup_index(engine: ElasticsearchEngine):
    await engine.mapping_manager.reconcile()


async def bulk_insert(engine: ElasticsearchEngine, actions: list, batch_size: int = 500) -> int:
    inserted = 0
    for start in range(0, len(actions), batch_size):
        batch = actions[start:start + batch_size]
        created = await engine.create_many_actions(batch)
        inserted += len(created)
        logger.info(f"Inserted {inserted}/{len(actions)} actions")
    return inserted
