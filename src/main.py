#!/usr/bin/env python3

"""
Computrabajo Scraper - Main Entry Point
Collects job postings and writes them to a JSON Lines dataset
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from browser_session import PlaywrightBrowserSession
from collector import JobCollector
from config_loader import ConfigLoader, ConfigValidationError, load_config
from http_client import HttpClient
from output_writer import DatasetWriter, KeyValueStore
from proxy_manager import ProxyManager
from url_builder import build_search_url

STATISTICS_KEY = "statistics"


def setup_logging(config) -> None:
    """Configure logging for the application"""
    log_file = config.get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, config.get_log_level(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler()
        ]
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file}")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scrape Computrabajo job listings")
    parser.add_argument("--config", default="config/settings.yaml", help="Path to settings.yaml")
    parser.add_argument("--url", help="Explicit listing URL (overrides country/query/location)")
    parser.add_argument("--country", help="Country subdomain, e.g. ar, mx, co")
    parser.add_argument("--query", help="Search query slug")
    parser.add_argument("--location", help="Location slug")
    parser.add_argument("--job-type", help="Only keep jobs whose type contains this text")
    parser.add_argument("--max-jobs", type=int, help="Maximum jobs to collect (0 = no limit)")
    parser.add_argument(
        "--full-description",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Fetch detail pages for full descriptions",
    )
    parser.add_argument("--no-browser", action="store_true", help="Disable the browser fallback")
    return parser.parse_args(argv)


def apply_cli_overrides(config: ConfigLoader, args: argparse.Namespace) -> None:
    config.apply_overrides({
        "search.url": args.url,
        "search.country": args.country,
        "search.query": args.query,
        "search.location": args.location,
        "search.job_type": args.job_type,
        "search.max_jobs": args.max_jobs,
        "search.include_full_description": args.full_description,
        "browser.enabled": False if args.no_browser else None,
    })


def display_config(config, search_url: str) -> None:
    """Display the effective run parameters"""
    print("\n" + "="*60)
    print("🔎 COMPUTRABAJO SCRAPER - Configuration Loaded")
    print("="*60)
    print(f"\n📋 Search: {config.get_search_input()}")
    print(f"🌐 URL: {search_url}")
    print(f"📊 Max jobs: {config.get_max_jobs()}")
    if config.get_job_type():
        print(f"🏷️  Job type filter: {config.get_job_type()}")
    print(f"📝 Full descriptions: {config.include_full_description()}")
    print(f"🖥️  Browser fallback: {config.is_browser_enabled()} (headless={config.is_headless()})")
    print(f"🔒 Proxy: {'enabled' if config.is_proxy_enabled() else 'disabled'}")
    print("\n" + "="*60 + "\n")


def run(config: ConfigLoader) -> int:
    """Run one scrape; returns the number of records written"""
    logger = logging.getLogger(__name__)

    search_url = build_search_url(config.get_search_input())
    max_jobs = config.get_max_jobs()
    display_config(config, search_url)

    proxy_manager = ProxyManager.from_config(config)
    client = HttpClient.from_config(config, proxy_url=proxy_manager.new_url())
    dataset = DatasetWriter.from_config(config)
    store = KeyValueStore.from_config(config)

    def browser_factory() -> PlaywrightBrowserSession:
        return PlaywrightBrowserSession(config, proxy=proxy_manager.get_playwright_proxy())

    collector = JobCollector(config, client, browser_factory=browser_factory)
    try:
        result = collector.run(search_url, max_jobs)
        written = dataset.push(result.jobs)
    finally:
        client.close()

    stats = collector.build_stats(written)
    store.set_value(STATISTICS_KEY, stats.to_dict())
    logger.info("Run statistics: %s", stats.to_dict())

    print("\n" + "="*60)
    print("✅ SCRAPE COMPLETE")
    print("="*60)
    print(f"  Method: {stats.extraction_method}")
    print(f"  Pages processed: {stats.pages_processed}")
    print(f"  Jobs saved: {stats.total_jobs}")
    print(f"  Detail pages fetched: {stats.detail_pages_fetched}")
    print(f"  Duration: {stats.duration_seconds}s")
    if stats.counters:
        print(f"  Counters: {stats.counters}")
    if written:
        print(f"  Dataset: {dataset.path}")
    else:
        print("  ⚠️  No jobs found")
    print("="*60 + "\n")
    return written


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main execution function"""
    print("\n🚀 Starting Computrabajo scraper...")
    load_dotenv(override=False)
    args = parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
        apply_cli_overrides(config, args)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        print("Make sure config/settings.yaml exists!")
        return 1
    except ConfigValidationError as e:
        print(f"❌ Invalid configuration: {e}")
        return 1

    setup_logging(config)
    logger = logging.getLogger(__name__)

    try:
        run(config)
    except KeyboardInterrupt:
        print("\n⏹️  Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Run failed: {e}")
        print(f"❌ Run failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
