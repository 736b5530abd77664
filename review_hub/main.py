"""
App Review Hub - ad-hoc scrape entry point

Scrapes reviews for an app that does not need to be registered and writes
them to a CSV file. Nothing is stored.

Usage:
    # Full scrape of both stores in two regions
    python -m review_hub.main --name "Spotify" --app-store-id 324684580 \
        --play-store-id com.spotify.music --regions US,GB

    # Latest 100 reviews per region only
    python -m review_hub.main --play-store-id com.whatsapp --regions US --latest
"""

import argparse
import asyncio
import sys
from collections import Counter
from typing import List, Tuple

from tqdm import tqdm

from review_hub.config.settings import (
    APP_STORE,
    DEFAULT_DELAY,
    PLAY_STORE,
)
from review_hub.models.app import App
from review_hub.models.review import Review
from review_hub.scraper.app_store_scraper import AppStoreReviewScraper
from review_hub.scraper.google_play_scraper import GooglePlayReviewScraper
from review_hub.scraper.rate_limiter import RateLimiter
from review_hub.storage.csv_export import export_filename, save_reviews_csv
from review_hub.utils.logger import setup_logger


# Reviews collected so far, saved on interrupt
_collected_reviews: List[Review] = []


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="App Review Hub - scrape App Store and Google Play reviews to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --name Spotify --app-store-id 324684580 --regions US,GB
  %(prog)s --play-store-id com.whatsapp --regions US,en-IN --latest
        """
    )

    parser.add_argument("--name", type=str, default="", help="App display name")
    parser.add_argument("--app-store-id", type=str, help="Numeric App Store id")
    parser.add_argument("--play-store-id", type=str, help="Google Play package name")
    parser.add_argument(
        "--regions",
        type=str,
        default="US",
        help="Comma-separated regions for both stores (default: US)"
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Fetch only the latest 100 reviews per region instead of a full scrape"
    )

    # Rate limiting
    parser.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_DELAY,
        help=f"Delay between requests in seconds (default: {DEFAULT_DELAY})"
    )

    # Output options
    parser.add_argument("--output", type=str, help="Output CSV filename")
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data",
        help="Output directory (default: data)"
    )

    # Other options
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()
    if not args.app_store_id and not args.play_store_id:
        parser.error("at least one of --app-store-id or --play-store-id is required")
    return args


def build_app(args: argparse.Namespace) -> App:
    """Unsaved App configuration for the requested stores and regions."""
    regions = [r.strip() for r in args.regions.split(",") if r.strip()]
    return App.from_dict({
        "name": args.name or args.play_store_id or args.app_store_id,
        "appStoreId": args.app_store_id,
        "playStoreId": args.play_store_id,
        "appStoreRegions": regions if args.app_store_id else [],
        "playStoreRegions": regions if args.play_store_id else [],
    })


async def scrape(args: argparse.Namespace, app: App, logger) -> None:
    """Fetch every (store, region) pair, one bar step per finished pair."""
    sources = {
        APP_STORE: AppStoreReviewScraper(
            rate_limiter=RateLimiter(default_delay=args.delay), logger=logger
        ),
        PLAY_STORE: GooglePlayReviewScraper(
            rate_limiter=RateLimiter(default_delay=args.delay), logger=logger
        ),
    }

    async def fetch(store: str, region: str) -> Tuple[str, str, List[Review]]:
        reviews = await sources[store].fetch_reviews(
            app.external_id(store),
            region,
            full_scrape=not args.latest,
            app_id=app.id,
            app_name=app.name,
        )
        return store, region, reviews

    jobs = [
        fetch(store, region)
        for store in app.enabled_stores()
        for region in app.regions(store)
    ]

    with tqdm(total=len(jobs), desc="Scraping", unit="region",
              disable=args.no_progress) as bar:
        for finished in asyncio.as_completed(jobs):
            store, region, reviews = await finished
            _collected_reviews.extend(reviews)
            bar.set_postfix_str(f"{store}/{region}: {len(reviews)}")
            bar.update(1)

    for source in sources.values():
        source.progress.log_summary()


def save(args: argparse.Namespace, app: App) -> None:
    path = save_reviews_csv(
        _collected_reviews,
        filename=args.output or export_filename(app.name),
        output_dir=args.output_dir,
    )
    print(f"\nSaved {len(_collected_reviews)} reviews to {path}")


def main():
    """Main entry point for the ad-hoc scraper."""
    args = parse_args()

    log_level = "DEBUG" if args.verbose else "INFO"
    logger = setup_logger("main", log_level=log_level)

    app = build_app(args)
    logger.info(
        f"Target: {app.name} | stores={app.enabled_stores()} | "
        f"full={not args.latest}"
    )

    try:
        asyncio.run(scrape(args, app, logger))
    except KeyboardInterrupt:
        print("\n\nInterrupt received. Saving collected data...")
        save(args, app)
        return 1

    print(f"\n{'='*50}")
    print("SAVING RESULTS")
    print(f"{'='*50}")
    save(args, app)

    # Print statistics
    if _collected_reviews:
        ratings = Counter(r.rating for r in _collected_reviews)
        total = len(_collected_reviews)
        by_store = Counter(r.store for r in _collected_reviews)
        print("\nStatistics:")
        for store, count in by_store.items():
            print(f"  {store}: {count} reviews")
        print(f"  Average rating: {sum(r.rating for r in _collected_reviews) / total:.2f}")
        print("  Rating distribution:")
        for i in range(5, 0, -1):
            count = ratings.get(i, 0)
            pct = count / total * 100
            bar = "█" * int(pct / 2)
            print(f"    {i} stars: {count:5d} ({pct:5.1f}%) {bar}")

    print("\nDone!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
