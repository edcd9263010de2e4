import time
import logging
import signal
import threading
import argparse

from core.app_context import AppContext
from core.config_loader import load_config
from database.database import configure_engine
from database.init_db import init_db
from database.uow import pipeline_uow
from pipeline.runner import ScrapeOptions, check_health, get_stats, run_batch, run_scrape

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Set by SIGINT/SIGTERM for graceful shutdown
stop_event = threading.Event()


def signal_handler(sig, frame):
    logger.info("Shutdown signal received")
    stop_event.set()


def build_context(args) -> AppContext:
    config = load_config(args.config)
    configure_engine(config.database.url)
    return AppContext.build(config)


def drain(ctx: AppContext, timeout: float) -> None:
    """Let queued enrichment jobs finish before exiting."""
    if not ctx.orchestrator.join(timeout=timeout):
        logger.warning(f"Enrichment queue not drained after {timeout}s; remaining jobs are dropped on exit")
    stats = ctx.orchestrator.stats()
    logger.info(f"Job summary: {stats['by_state']}")
    for failure in ctx.orchestrator.failures():
        logger.warning(f"Failed {failure.job_type.value} job {failure.job_id}: {failure.error}")


def cmd_scrape(args) -> int:
    ctx = build_context(args)
    options = ScrapeOptions(
        sites=args.site or None,
        max_pages=args.max_pages,
        enable_ai_extraction=False if args.no_ai else None,
        enable_company_analysis=False if args.no_company_analysis else None,
        force_refresh=args.force,
    )
    ctx.orchestrator.start()
    try:
        result = run_scrape(ctx, options, stop_event=stop_event)
        drain(ctx, args.drain_timeout)
    finally:
        ctx.orchestrator.shutdown(wait=False)

    for error in result.errors:
        logger.warning(f"  - {error}")
    return 0 if not result.errors else 1


def cmd_stats(args) -> int:
    ctx = build_context(args)
    stats = get_stats(ctx)
    print(f"Total vacancies:  {stats.total_vacancies}")
    print(f"Active vacancies: {stats.active_vacancies}")
    print(f"Total companies:  {stats.total_companies}")
    print(f"Last scraped at:  {stats.last_scraped_at.isoformat() if stats.last_scraped_at else 'never'}")
    for site, count in sorted(stats.per_site_counts.items()):
        print(f"  {site}: {count}")

    with pipeline_uow() as repo:
        cache_stats = ctx.freshness_gate.get_cache_stats(repo)
    print(f"Company sources:  {cache_stats['total']} ({cache_stats['valid']} valid, {cache_stats['invalid']} invalid)")
    if ctx.extraction_cache:
        print(f"Extraction cache: {ctx.extraction_cache.get_cache_stats()}")
    return 0


def cmd_worker(args) -> int:
    ctx = build_context(args)
    interval = ctx.config.schedule.interval_seconds
    ctx.orchestrator.start()

    cycle_count = 0
    try:
        while not stop_event.is_set():
            cycle_count += 1
            cycle_start = time.time()
            logger.info(f"=== Starting Cycle #{cycle_count} ===")
            try:
                run_scrape(ctx, ScrapeOptions(), stop_event=stop_event)
            except Exception as e:
                logger.error(f"Error in main loop: {e}", exc_info=True)

            cycle_elapsed = time.time() - cycle_start
            if not stop_event.is_set():
                logger.info(
                    f"=== Cycle #{cycle_count} completed in {cycle_elapsed:.2f}s. "
                    f"Sleeping for {interval} seconds... ==="
                )
                stop_event.wait(interval)
    finally:
        ctx.orchestrator.shutdown(wait=True, timeout=30)
    return 0


def cmd_batch(args) -> int:
    ctx = build_context(args)
    ctx.orchestrator.start()
    try:
        status = run_batch(
            ctx,
            args.urls,
            batch_id=args.batch_id,
            max_concurrent=args.max_concurrent,
            delay_between_requests_ms=args.delay_ms,
            stop_event=stop_event,
        )
        drain(ctx, args.drain_timeout)
    finally:
        ctx.orchestrator.shutdown(wait=False)

    if status.result is None:
        logger.error(f"Batch job {status.state.value}: {status.error}")
        return 1
    summary = status.result
    print(f"Batch {summary['batch_id']}: {summary['successful']}/{summary['total_urls']} successful "
          f"in {summary['duration']}ms")
    for error in summary['errors']:
        print(f"  - {error}")
    return 0 if not summary['failed'] else 1


def cmd_health(args) -> int:
    ctx = build_context(args)
    try:
        health = check_health(ctx, check_database=not args.skip_database, timeout=args.timeout)
    finally:
        ctx.orchestrator.shutdown(wait=False)
    for key, value in health.items():
        print(f"{key}: {value}")
    return 0 if health.get("status") == "healthy" else 1


def cmd_cleanup_sources(args) -> int:
    ctx = build_context(args)
    with pipeline_uow() as repo:
        deleted = ctx.freshness_gate.cleanup(repo, older_than_days=args.days)
    print(f"Deleted {deleted} company source records")
    return 0


def cmd_init_db(args) -> int:
    config = load_config(args.config)
    configure_engine(config.database.url)
    init_db()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="TalentRadar job ingestion pipeline")
    parser.add_argument('--config', default='config.yaml', help='Path to config file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    scrape = subparsers.add_parser('scrape', help='Scrape job boards once')
    scrape.add_argument('--site', action='append', help='Site to scrape (repeatable); defaults to enabled_sites')
    scrape.add_argument('--max-pages', type=int, default=None, help='Listing pages per site')
    scrape.add_argument('--no-ai', action='store_true', help='Do not queue AI extraction')
    scrape.add_argument('--no-company-analysis', action='store_true', help='Do not queue company analysis')
    scrape.add_argument('--force', action='store_true', help='Re-analyze companies regardless of TTL')
    scrape.add_argument('--drain-timeout', type=float, default=600.0,
                        help='Seconds to wait for enrichment jobs before exiting')
    scrape.set_defaults(func=cmd_scrape)

    stats = subparsers.add_parser('stats', help='Show ingestion statistics')
    stats.set_defaults(func=cmd_stats)

    worker = subparsers.add_parser('worker', help='Scrape on a schedule until interrupted')
    worker.set_defaults(func=cmd_worker)

    batch = subparsers.add_parser('batch', help='Fetch posting URLs and queue AI extraction for each')
    batch.add_argument('urls', nargs='+', help='Posting URLs')
    batch.add_argument('--batch-id', default=None, help='Batch identifier for logs (default: random)')
    batch.add_argument('--max-concurrent', type=int, default=None, help='URLs fetched at once')
    batch.add_argument('--delay-ms', type=int, default=None, help='Delay between requests within a slice')
    batch.add_argument('--drain-timeout', type=float, default=600.0,
                       help='Seconds to wait for extraction jobs before exiting')
    batch.set_defaults(func=cmd_batch)

    health = subparsers.add_parser('health', help='Run a health check')
    health.add_argument('--skip-database', action='store_true', help='Do not check database reachability')
    health.add_argument('--timeout', type=float, default=30.0, help='Seconds to wait for the check')
    health.set_defaults(func=cmd_health)

    cleanup = subparsers.add_parser('cleanup-sources', help='Delete stale company source records')
    cleanup.add_argument('--days', type=int, default=None, help='Age threshold in days (default from config)')
    cleanup.set_defaults(func=cmd_cleanup_sources)

    init = subparsers.add_parser('init-db', help='Create database tables')
    init.set_defaults(func=cmd_init_db)

    return parser


def main(argv=None) -> int:
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    args = build_parser().parse_args(argv)
    logger.info(f"TalentRadar starting: {args.command}")
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
