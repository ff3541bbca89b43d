import asyncio
import os
from dataclasses import replace

from es_action_store import ElasticsearchEngine, EngineConfig
from fake_data_generator.data_generator import generate_bulk_actions
from fake_data_generator.es_client import setup_index, bulk_insert


async def seed(n: int, company_id: str) -> int:
    # the template is set up in the foreground below, not in the background
    config = replace(EngineConfig.from_env(), auto_update_index_mappings=False)
    async with ElasticsearchEngine(config) as engine:
        await setup_index(engine)
        actions = generate_bulk_actions(n, company_id)
        return await bulk_insert(engine, actions)


if __name__ == "__main__":
    company_id = os.getenv("SEED_COMPANY_ID", "company123")
    inserted = asyncio.run(seed(10000, company_id))
    print(f"✅ Inserted {inserted} synthetic actions for {company_id}.")
