"""CLI entry point: python -m event_conflict.cli {analyze,seed}"""

import argparse
import asyncio
import datetime as dt
import json
import sys
from pathlib import Path

import structlog

from event_conflict.config.settings import get_settings
from event_conflict.db.engine import get_engine
from event_conflict.db.session import get_session_factory
from event_conflict.engine.analyzer import build_analyzer
from event_conflict.engine.config import load_engine_config
from event_conflict.events import Event
from event_conflict.ingestion.providers import JsonFileProvider
from event_conflict.logging_config import configure_logging
from event_conflict.preprocessing.normalizer import load_city_aliases, make_city_normalizer
from event_conflict.signals.holiday import load_holiday_calendar
from event_conflict.signals.seasonal import load_seasonal_rules
from event_conflict.store.client import RetryingStore, create_all
from event_conflict.store.seed import seed_reference_data


async def run_analyze(args: argparse.Namespace) -> dict:
    """Analyze the planned event described by ``args`` and return the result dict."""
    settings = get_settings()
    config_path = Path(args.config) if args.config else settings.engine_config_path
    config = load_engine_config(config_path)

    normalize = make_city_normalizer(load_city_aliases(settings.city_aliases_path))
    providers = [JsonFileProvider(Path(p), normalize=normalize) for p in args.events]
    analyzer = build_analyzer(settings, config, providers=providers)

    start = dt.date.fromisoformat(args.start)
    end = dt.date.fromisoformat(args.end)
    planned = Event(
        id="planned",
        title=args.title,
        date=start,
        city=args.city,
        category=args.category,
        subcategory=args.subcategory,
        venue=args.venue,
        expected_attendees=args.attendees,
    )
    result = await analyzer.analyze(planned, start, end, enable_advanced=not args.basic)
    return result.to_dict()


async def run_seed(years: list[int]) -> dict[str, int]:
    """Create tables and upsert the shipped holiday and seasonal tables."""
    log = structlog.get_logger()
    settings = get_settings()
    config = load_engine_config(settings.engine_config_path)

    await create_all(get_engine())
    store = RetryingStore(get_session_factory(), config.store)
    counts = await seed_reference_data(
        store,
        load_holiday_calendar(settings.holidays_path),
        load_seasonal_rules(settings.seasonal_rules_path),
        years,
    )
    log.info("seed_complete", **counts)
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="event_conflict.cli",
        description="Event Conflict Scoring CLI",
    )
    subparsers = parser.add_subparsers(dest="command")

    analyze_parser = subparsers.add_parser(
        "analyze", help="Score candidate dates for a planned event"
    )
    analyze_parser.add_argument(
        "--events",
        action="append",
        required=True,
        help="JSON file of competing events (repeatable, one provider per file)",
    )
    analyze_parser.add_argument("--title", required=True)
    analyze_parser.add_argument("--category", required=True)
    analyze_parser.add_argument("--subcategory", default=None)
    analyze_parser.add_argument("--city", required=True)
    analyze_parser.add_argument("--venue", default=None)
    analyze_parser.add_argument("--attendees", type=int, default=None)
    analyze_parser.add_argument("--start", required=True, help="First candidate date (YYYY-MM-DD)")
    analyze_parser.add_argument("--end", required=True, help="Last candidate date (YYYY-MM-DD)")
    analyze_parser.add_argument(
        "--basic",
        action="store_true",
        help="Rule-based overlap only; skip AI prediction and venue pressure",
    )
    analyze_parser.add_argument("--config", default=None, help="Engine config YAML")

    seed_parser = subparsers.add_parser(
        "seed", help="Load holiday and seasonal tables into the database"
    )
    seed_parser.add_argument(
        "--years",
        type=int,
        nargs="+",
        default=None,
        help="Years to materialize holidays for (default: this year and the next)",
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)

    if args.command == "analyze":
        try:
            result = asyncio.run(run_analyze(args))
        except ValueError as e:
            parser.error(str(e))
        json.dump(result, sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")

    elif args.command == "seed":
        this_year = dt.date.today().year
        years = args.years or [this_year, this_year + 1]
        asyncio.run(run_seed(years))


if __name__ == "__main__":
    main()
