"""
Seaside Beacon: Sunrise Quality Forecaster

Scores tomorrow's sunrise for each Chennai beach from AccuWeather and
Open-Meteo data, through the cached, coalesced, retrying acquisition layer.

Commands:
    points                 - list configured beaches and their grid cells
    score [ids...]         - score the next sunrise (all beaches by default)
    warmup [label]         - force-refresh provider caches ("all" by default)
    schedule               - run the model-cycle warmup loop until Ctrl+C

RELIABILITY FIRST - stale data beats no data.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from colorama import Fore, Style, init
from dotenv import load_dotenv

from seaside_beacon.config import Settings
from seaside_beacon.errors import SeasideBeaconError
from seaside_beacon.forecast import build_forecaster
from seaside_beacon.models import Recommendation
from seaside_beacon.scheduler import ALL_PROVIDERS, WarmupScheduler

init()

# Load environment variables
load_dotenv()

settings = Settings.from_env(load_env_file=False)


def configure_logging(settings):
    """Log to logs/seaside_beacon.log and stdout at settings.log_level."""
    # Ensure logs directory exists
    os.makedirs("logs", exist_ok=True)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler("logs/seaside_beacon.log", mode='a', encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )


configure_logging(settings)
logger = logging.getLogger(__name__)

RECOMMENDATION_COLORS = {
    Recommendation.GO: Fore.GREEN,
    Recommendation.MAYBE: Fore.YELLOW,
    Recommendation.SKIP: Fore.RED,
    Recommendation.NO: Fore.RED,
}


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Seaside Beacon - Sunrise Quality Forecaster'
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("points", help="List configured beaches")

    score = sub.add_parser("score", help="Score the next sunrise")
    score.add_argument("points", nargs="*", help="Beach ids (default: all)")
    score.add_argument("--json", action="store_true", help="Print full results as JSON")

    warmup = sub.add_parser("warmup", help="Force-refresh provider caches")
    warmup.add_argument("label", nargs="?", default=ALL_PROVIDERS,
                        help="Trigger label or 'all'")

    sub.add_parser("schedule", help="Run the warmup scheduler")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "score"
        args.points = []
        args.json = False
    return args


def print_banner():
    """Print the system banner."""
    print(f"\n{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}   SEASIDE BEACON: SUNRISE QUALITY FORECASTER{Style.RESET_ALL}")
    print(f"{Fore.CYAN}   Chennai beaches, next 6 AM sunrise{Style.RESET_ALL}")
    print(f"{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.WHITE}   [SOURCES] AccuWeather (hourly, daily) + Open-Meteo (forecast, air quality){Style.RESET_ALL}")
    print()


def print_points(forecaster):
    for point in forecaster.points.values():
        keys = forecaster.provider_keys(point)
        print(f"   {point.key:<15} {point.name:<22} ({point.lat:.4f}, {point.lon:.4f})  "
              f"accuweather={keys['accuweather']}  cell={keys['open_meteo']}")


def print_score(result):
    color = RECOMMENDATION_COLORS.get(result.recommendation, Fore.WHITE)
    print(f"\n{Fore.WHITE}{result.point_name}{Style.RESET_ALL}  "
          f"{color}{result.score}/100 {result.verdict.value} -> {result.recommendation.value}{Style.RESET_ALL}")

    for name, factor in result.breakdown.factors.items():
        print(f"   {name:<18} {factor.score:>3}/{factor.max_score:<3} value={factor.value}")
    b = result.breakdown
    print(f"   {'adjustments':<18} synergy={b.synergy:+d} post_rain=+{b.post_rain_bonus} solar={b.solar_bonus:+d}")
    print(f"   {'labels':<18} cloud={result.labels['cloud_label']}, humidity={result.labels['humidity_label']}, "
          f"layers={result.labels['cloud_layer_label']}, air={result.labels['aod_label']}")
    if result.degraded_sources:
        print(f"   {Fore.YELLOW}degraded: {', '.join(result.degraded_sources)}{Style.RESET_ALL}")


async def run_score(forecaster, point_ids, as_json=False):
    window = forecaster.availability()
    if not window.available:
        print(f"{Fore.YELLOW}{window.message} (scoring anyway){Style.RESET_ALL}")
        logger.info(f"[main] Outside the prediction window: {window.message}")

    results = await forecaster.get_scores(point_ids or None)

    failures = 0
    payload = {}
    for point_id, result in results.items():
        if isinstance(result, Exception):
            failures += 1
            logger.error(f"[main] {point_id}: {result}")
            print(f"{Fore.RED}{point_id}: {result}{Style.RESET_ALL}")
            payload[point_id] = {"error": str(result)}
            continue
        if as_json:
            payload[point_id] = result.to_dict()
        else:
            print_score(result)

    if as_json:
        print(json.dumps(payload, indent=2, default=str))
    return 1 if failures == len(results) else 0


async def main(args=None, config=None):
    """Main entry point for Seaside Beacon."""
    args = args or parse_args()
    config = config or settings
    forecaster = build_forecaster(config)

    if not getattr(args, "json", False):
        print_banner()

    try:
        if args.command == "points":
            print_points(forecaster)
            return 0

        if args.command == "score":
            return await run_score(forecaster, args.points, as_json=args.json)

        warmer = WarmupScheduler(forecaster)
        if args.command == "warmup":
            report = await warmer.warmup(args.label)
            print(f"Warmup '{report.label}': {report.refreshed} refreshed, {report.failed} failed")
            for error in report.errors:
                print(f"   {Fore.YELLOW}{error}{Style.RESET_ALL}")
            return 0 if report.failed == 0 and not report.errors else 1

        if args.command == "schedule":
            logger.info(f"[main] Warmup scheduler started ({config.timezone})")
            await warmer.run_forever()
            return 0

        return 2

    except SeasideBeaconError as e:
        logger.error(f"FAILED: {e}", exc_info=True)
        print(f"\n{Fore.RED}ERROR: {e}{Style.RESET_ALL}")
        return 1
    finally:
        await forecaster.aclose()


if __name__ == "__main__":
    args = parse_args()
    try:
        exit_code = asyncio.run(main(args))
    except KeyboardInterrupt:
        exit_code = 130
    sys.exit(exit_code)
