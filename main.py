import sys
import json
import asyncio
import logging
import argparse
from pathlib import Path
from dataclasses import replace

from es_action_store import ElasticsearchEngine, EngineConfig
from es_action_store.tools.index_tools import IndexRouter
from es_action_store.tools.query_tools import FindManyQueryBuilder, validate_fields_against_schema
from es_action_store.utils import utc_now


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Set up logging configuration with both file and console handlers.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    # Create logs directory
    root_folder = Path(__file__).parent
    log_folder = root_folder / "logs"
    log_folder.mkdir(exist_ok=True)

    log_file = log_folder / "es_action_store.log"

    # Configure logging format
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    # Clear any existing handlers
    logger = logging.getLogger()
    logger.handlers.clear()

    # Set logging level
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    # File handler - logs everything
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(log_format, date_format))
    logger.addHandler(file_handler)

    # Console handler - logs INFO and above
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    return logger


def load_json_argument(value: str) -> dict:
    """Parse a JSON argument, reading it from a file when prefixed with '@'."""
    if value.startswith("@"):
        value = Path(value[1:]).read_text(encoding="utf-8")
    return json.loads(value)


def foreground_config() -> EngineConfig:
    # commands that touch mappings run them in the foreground
    return replace(EngineConfig.from_env(), auto_update_index_mappings=False)


async def run_search(args, logger: logging.Logger) -> None:
    filters = load_json_argument(args.filters)
    options = {
        "page": args.page,
        "limit": args.limit,
        "sortBy": args.sort_by,
        "sortDirection": args.sort_direction,
    }

    async with ElasticsearchEngine(EngineConfig.from_env()) as engine:
        actions = await engine.find_many(options, filters, request_timeout=args.timeout)

    logger.info(f"Found {len(actions)} actions")
    print(json.dumps(actions, indent=2))


async def run_reconcile(args, logger: logging.Logger) -> None:
    async with ElasticsearchEngine(foreground_config()) as engine:
        await engine.mapping_manager.reconcile()
    logger.info("Index template and mappings reconciled")


async def run_seed(args, logger: logging.Logger) -> None:
    from fake_data_generator.main import seed

    inserted = await seed(args.count, args.company_id)
    print(f"✅ Inserted {inserted} synthetic actions for {args.company_id}.")


def run_show_query(args) -> None:
    filters = load_json_argument(args.filters)
    config = EngineConfig.from_env()
    now = utc_now()

    # no client is needed to compile a query
    clauses = FindManyQueryBuilder(config.default_start_months_ago).build({}, filters, now)
    router = IndexRouter(config.index_pattern, config.default_start_months_ago)
    index_name = router.get_index_name_range(
        filters["companyId"], filters.get("start"), filters.get("end"), now
    )

    print(json.dumps({"index": index_name, "query": {"bool": {"must": clauses}}}, indent=2))

    validation = validate_fields_against_schema(clauses)
    if not validation["valid"]:
        print(f"⚠️  {validation['error']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Elasticsearch Action Store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py seed --count 1000
  python main.py search '{"companyId": "company123", "agents": {"type": "USER"}}'
  python main.py show-query @filters.json
  python main.py reconcile
        """,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    seed_parser = subparsers.add_parser("seed", help="Insert synthetic actions")
    seed_parser.add_argument("--count", type=int, default=1000)
    seed_parser.add_argument("--company-id", default="company123")

    search_parser = subparsers.add_parser("search", help="Find actions matching filters")
    search_parser.add_argument("filters", help="Filters as JSON, or @file.json")
    search_parser.add_argument("--page", type=int, default=1)
    search_parser.add_argument("--limit", type=int, default=None)
    search_parser.add_argument("--sort-by", default="timestamp")
    search_parser.add_argument("--sort-direction", choices=["asc", "desc"], default="desc")
    search_parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")

    show_parser = subparsers.add_parser("show-query", help="Print the compiled query without searching")
    show_parser.add_argument("filters", help="Filters as JSON, or @file.json")

    subparsers.add_parser("reconcile", help="Create the index template and update index mappings")

    return parser


def main():
    """Main entry point."""
    args = build_parser().parse_args()
    logger = setup_logging(args.log_level)

    try:
        if args.command == "show-query":
            run_show_query(args)
        elif args.command == "search":
            asyncio.run(run_search(args, logger))
        elif args.command == "reconcile":
            asyncio.run(run_reconcile(args, logger))
        elif args.command == "seed":
            asyncio.run(run_seed(args, logger))
    except Exception as e:
        logger.error(f"Command {args.command} failed: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
