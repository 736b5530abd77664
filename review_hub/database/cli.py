"""
Database CLI for App Review Hub.

Command-line interface for managing tracked apps and inspecting the store.

Usage:
    python -m review_hub.database.cli add --name "My App" \
        --app-store-id 123456789 --app-store-regions US,GB --app-store-frequency daily
    python -m review_hub.database.cli list            # List tracked apps
    python -m review_hub.database.cli delete APP_ID   # Delete app and its reviews
    python -m review_hub.database.cli clear APP_ID    # Delete reviews only
    python -m review_hub.database.cli stats           # Show store statistics
    python -m review_hub.database.cli export APP_ID   # Write reviews to CSV
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from review_hub.config.settings import SUPPORTED_FREQUENCIES
from review_hub.database.db_manager import DatabaseManager
from review_hub.exceptions import AppNotFoundError, InvalidAppConfig
from review_hub.ingestion.pipeline import IngestionPipeline
from review_hub.registry.app_registry import AppRegistry
from review_hub.storage.csv_export import export_filename, save_reviews_csv
from review_hub.utils.logger import setup_logger


def _split(value: Optional[str]) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()] if value else []


async def cmd_add(db: DatabaseManager, args) -> int:
    """Register a new app."""
    registry = AppRegistry(db)
    config = {
        "name": args.name,
        "icon": args.icon,
        "appStoreId": args.app_store_id,
        "playStoreId": args.play_store_id,
        "appStoreRegions": _split(args.app_store_regions),
        "playStoreRegions": _split(args.play_store_regions),
        "appStoreFrequency": args.app_store_frequency,
        "playStoreFrequency": args.play_store_frequency,
    }
    try:
        app = await registry.create_app(config)
    except InvalidAppConfig as e:
        print(f"Invalid app configuration: {e}")
        return 1

    print(f"Created app {app.id}: {app.name}")
    return 0


async def cmd_list(db: DatabaseManager, args) -> int:
    """List tracked apps."""
    apps = await db.get_all_apps()
    if not apps:
        print("\nNo apps tracked yet.\n")
        return 0

    print(f"\n  {'ID':<15} {'Name':<30} {'Reviews':>8} {'Rating':>7}  Last updated")
    print("  " + "-" * 88)
    for app in apps:
        print(
            f"  {app.id:<15} {app.name[:30]:<30} {app.review_count:>8} "
            f"{app.rating:>7.2f}  {app.last_updated or '-'}"
        )
    print()
    return 0


async def cmd_delete(db: DatabaseManager, args) -> int:
    """Delete an app and everything stored for it."""
    if not args.yes:
        confirm = input(
            f"This will DELETE app {args.app_id} and all its reviews. Are you sure? [y/N]: "
        )
        if confirm.lower() != "y":
            print("Aborted.")
            return 1

    try:
        await AppRegistry(db).delete_app(args.app_id)
    except AppNotFoundError as e:
        print(f"Error: {e}")
        return 1

    print(f"Deleted app {args.app_id}")
    return 0


async def cmd_clear(db: DatabaseManager, args) -> int:
    """Delete an app's reviews and reset its aggregates."""
    pipeline = IngestionPipeline(db)
    try:
        app = await pipeline.clear_reviews(args.app_id)
    except AppNotFoundError as e:
        print(f"Error: {e}")
        return 1

    print(f"Cleared reviews of {app.name} ({app.id})")
    return 0


async def cmd_stats(db: DatabaseManager, args) -> int:
    """Show store statistics."""
    stats = await db.get_stats()

    print("\n" + "=" * 50)
    print("STORE STATISTICS")
    print("=" * 50)
    print("\nOverall:")
    print(f"  Total reviews  : {stats.total_reviews:,}")
    print(f"  Total apps     : {stats.total_apps}")
    print(f"  Average rating : {stats.average_rating:.2f}")
    print(f"  This week      : {stats.reviews_trend} ({stats.rating_trend})")

    apps = await db.get_all_apps()
    if apps:
        print("\nPer-app breakdown:")
        print(f"  {'App':<40} {'Reviews':>8} {'Avg Rating':>10}")
        print("  " + "-" * 60)
        for app in apps:
            print(f"  {app.name[:40]:<40} {app.review_count:>8} {app.rating:>10.2f}")

            regions = await db.get_region_distribution(app.id)
            if regions:
                top = ", ".join(f"{r.name}:{r.value}" for r in regions[:5])
                print(f"    regions: {top}")

    print()
    return 0


async def cmd_export(db: DatabaseManager, args) -> int:
    """Write an app's reviews to a CSV file."""
    app = await db.get_app_by_id(args.app_id)
    if app is None:
        print(f"Error: App not found: {args.app_id}")
        return 1

    reviews = await db.get_reviews(app.id)
    path = save_reviews_csv(
        reviews,
        filename=args.output or export_filename(app.name),
        output_dir=args.output_dir,
    )
    print(f"Exported {len(reviews)} reviews to {path}")
    return 0


COMMANDS = {
    "add": cmd_add,
    "list": cmd_list,
    "delete": cmd_delete,
    "clear": cmd_clear,
    "stats": cmd_stats,
    "export": cmd_export,
}


async def run(args: argparse.Namespace) -> int:
    async with DatabaseManager() as db:
        return await COMMANDS[args.command](db, args)


def main():
    parser = argparse.ArgumentParser(
        description="App Review Hub database CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # add
    add_parser = subparsers.add_parser("add", help="Register a new app")
    add_parser.add_argument("--name", required=True, help="Display name")
    add_parser.add_argument("--icon", help="Icon URL")
    add_parser.add_argument("--app-store-id", help="Numeric App Store id")
    add_parser.add_argument("--play-store-id", help="Google Play package name")
    add_parser.add_argument(
        "--app-store-regions", help="Comma-separated regions, e.g. US,GB"
    )
    add_parser.add_argument(
        "--play-store-regions", help="Comma-separated regions, e.g. US,en-GB"
    )
    add_parser.add_argument(
        "--app-store-frequency", choices=SUPPORTED_FREQUENCIES,
        help="How often App Store reviews are collected"
    )
    add_parser.add_argument(
        "--play-store-frequency", choices=SUPPORTED_FREQUENCIES,
        help="How often Google Play reviews are collected"
    )

    # list
    subparsers.add_parser("list", help="List tracked apps")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete an app and its reviews")
    delete_parser.add_argument("app_id", help="App id")
    delete_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation"
    )

    # clear
    clear_parser = subparsers.add_parser("clear", help="Delete an app's reviews only")
    clear_parser.add_argument("app_id", help="App id")

    # stats
    subparsers.add_parser("stats", help="Show store statistics")

    # export
    export_parser = subparsers.add_parser("export", help="Export an app's reviews to CSV")
    export_parser.add_argument("app_id", help="App id")
    export_parser.add_argument("--output", help="Output filename")
    export_parser.add_argument("--output-dir", help="Output directory (default: data)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logger("database", log_to_file=False)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
