"""PatternScout — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
scan, track, stats, and serve modes.
"""

import json
import logging

from fastapi import FastAPI

from patternscout.api.routers import router

app = FastAPI(title="PatternScout Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("patternscout")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from patternscout.api.routers import configure_routers
    from patternscout.config import load_config
    from patternscout.repos.db import init_db
    from patternscout.repos.signal_repo import SignalRepo
    from patternscout.strategy.models import Timeframe

    parser = argparse.ArgumentParser(description="PatternScout pattern scanner")
    parser.add_argument(
        "--mode",
        choices=["scan", "track", "stats", "serve"],
        default="scan",
        help="What to run (default: scan)",
    )
    parser.add_argument(
        "--timeframe",
        choices=[tf.value for tf in (Timeframe.M15, Timeframe.H1, Timeframe.H4)],
        help="Scan a single timeframe instead of every configured one",
    )
    parser.add_argument(
        "--symbols",
        help="Comma-separated symbols; defaults to liquid USDT pairs",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=0,
        help="Tracking cycles before exiting (0 = run until stopped)",
    )
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    init_db(config.db_path)
    repo = SignalRepo(config.db_path)

    if args.mode == "stats":
        from patternscout.tracking.stats import summarize_signals

        print(json.dumps(
            summarize_signals(repo.list_signals(), config.partial_close_split), indent=2,
        ))
        return

    if args.mode == "serve":
        import uvicorn

        configure_routers(signal_repo=repo, split=config.partial_close_split)
        logger.info("API available at http://localhost:%d", config.api_port)
        uvicorn.run(app, host="0.0.0.0", port=config.api_port, log_level="info")
        return

    from patternscout.feed.binance_client import BinanceClient
    from patternscout.feed.rate_budget import RequestBudget

    budget = RequestBudget(config.request_weight_limit)
    feed = BinanceClient(config, budget)

    if args.mode == "track":
        asyncio.run(_run_tracker(feed, repo, config, args.cycles))
    else:
        timeframes = (
            (Timeframe(args.timeframe),) if args.timeframe else config.scan_timeframes
        )
        symbols = args.symbols.split(",") if args.symbols else None
        asyncio.run(_run_scan(feed, repo, config, timeframes, symbols))


async def _run_scan(feed, repo, config, timeframes, symbols) -> None:
    """Run one scan pass per timeframe."""
    from patternscout.scanner import Scanner
    from patternscout.strategy.zone_tests import ZoneTestTracker

    if symbols is None:
        symbols = await feed.fetch_usdt_symbols(config.min_quote_volume)

    scanner = Scanner(feed, repo, ZoneTestTracker(), batch_size=config.scan_batch_size)
    for timeframe in timeframes:
        report = await scanner.scan(timeframe, symbols)
        logger.info("%s: %d new signal(s)", timeframe.value, report.created)


async def _run_tracker(feed, repo, config, cycles: int) -> None:
    """Track open signals until interrupted."""
    from patternscout.tracker import SignalTracker

    tracker = SignalTracker(feed, repo, split=config.partial_close_split)
    logger.info("Tracking open signals every %ds.", config.track_interval_seconds)
    applied = await tracker.run(
        poll_interval=config.track_interval_seconds, max_cycles=cycles,
    )
    logger.info("Tracker stopped after %d transition(s).", applied)


if __name__ == "__main__":
    _run_cli()
