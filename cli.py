#!/usr/bin/env python3
"""
SlotKeeper CLI

Run scheduling passes by hand, or start the daemon.

Usage:
    python cli.py init                # Write a starter config to ~/.slotkeeper
    python cli.py schema              # Check the task database schema
    python cli.py conflicts           # Resolve PTO conflicts and overlaps
    python cli.py optimize            # Gap fill, stale reclaim, overlaps, off-hours
    python cli.py autoschedule        # Give times to unscheduled items
    python cli.py notify              # Show upcoming / in-progress events
    python cli.py bump <id>           # Pin an item for today (via the API server)
    python cli.py daemon [--once]     # API server running the passes on their timers
"""

import argparse
import asyncio
import json
import shutil
import sys
from pathlib import Path

import httpx
import uvicorn

from api.server import create_app
from slotkeeper import paths
from slotkeeper.config import EngineConfig, load_config
from slotkeeper.cycle_result import PassResult
from slotkeeper.daemon import ScheduleDaemon
from slotkeeper.engine import ScheduleEngine
from slotkeeper.errors import SlotKeeperError
from slotkeeper.integrations import NotionTaskStore
from slotkeeper.notifier.messages import format_time
from slotkeeper.observability import configure_logging


def _load(args) -> EngineConfig:
    config = load_config(Path(args.config) if args.config else None)
    configure_logging(args.log_level or config.log_level, json_format=args.json_logs)
    return config


async def _with_engine(args, action):
    config = _load(args)
    async with NotionTaskStore(
        config.notion, config.tz, config.properties, retry_delay=config.retry_delay_seconds
    ) as store:
        engine = ScheduleEngine(store, config)
        await engine.startup()
        return await action(engine)


def _print_pass(result: PassResult, as_json: bool) -> int:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.overall_success else 1

    print(f"{'✅' if result.overall_success else '⚠️'} {result.name} pass ({result.pass_id})")
    for move in result.moves:
        print(f"   ✓ {move.item.title} → {move.slot.start.isoformat()}")
    for move in result.unverified:
        print(f"   ? {move.item.title} written, not yet confirmed")
    for move in result.unplaced:
        print(f"   ✗ could not place {move.item.title}")
    for alert in result.alerts:
        print(f"   ! {alert}")
    for name in result.failed_phases:
        print(f"   ❌ phase failed: {name} ({result.phase(name).error})")
    if not (result.moves or result.unverified or result.unplaced or result.alerts):
        print("   Nothing to do")
    return 0 if result.overall_success else 1


def cmd_init(args):
    """Copy the shipped config into the user's home config dir."""
    target = paths.config_dir() / "schedule.yaml"
    if target.exists() and not args.force:
        print(f"Config already exists at {target} (use --force to overwrite)")
        return 1
    shutil.copyfile(paths.project_root() / "config" / "schedule.yaml", target)
    print(f"✅ Wrote {target}")
    print("   Set SLOTKEEPER_NOTION_TOKEN and SLOTKEEPER_NOTION_DATABASE_ID to connect.")
    return 0


def cmd_schema(args):
    """Resolve and print the property mapping."""
    config = _load(args)

    async def run():
        async with NotionTaskStore(config.notion, config.tz, config.properties) as store:
            return await store.connect()

    mapping = asyncio.run(run())
    print("✅ Task database schema OK")
    for field in ("title", "date", "type", "status", "estimate"):
        print(f"   {field:<9} → {getattr(mapping, field) or '(type defaults)'}")
    return 0


def cmd_conflicts(args):
    result = asyncio.run(_with_engine(args, lambda e: e.run_conflict_pass()))
    return _print_pass(result, args.json)


def cmd_optimize(args):
    result = asyncio.run(_with_engine(args, lambda e: e.run_optimization_pass()))
    return _print_pass(result, args.json)


def cmd_autoschedule(args):
    result = asyncio.run(_with_engine(args, lambda e: e.run_auto_schedule()))
    return _print_pass(result, args.json)


def cmd_notify(args):
    result = asyncio.run(_with_engine(args, lambda e: e.check_upcoming_events()))
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0
    if not result.highlighted:
        print("No upcoming or in-progress events")
    for event in result.highlighted:
        when = "now" if event.in_progress else f"in {event.minutes_until} min"
        print(f"   {format_time(event.start):>8}  {event.title} ({event.item_type}, {when})")
    return 0


def cmd_bump(args):
    """Bumps live in the running server's memory, so go through its API."""
    url = f"{args.api_url.rstrip('/')}/api/v1/bumps/{args.item_id}"
    headers = {"Authorization": f"Bearer {args.token}"} if args.token else {}
    try:
        response = httpx.post(url, headers=headers, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"❌ Bump failed: {e}")
        return 1
    print(f"✅ {args.item_id} stays put until end of day {response.json()['until']}")
    return 0


def cmd_daemon(args):
    """Timers run inside the API server so bumps reach the same engine."""
    if args.once:

        async def run(engine: ScheduleEngine):
            results = await ScheduleDaemon(engine).run_once()
            return all(results.values())

        ok = asyncio.run(_with_engine(args, run))
        return 0 if ok else 1

    config = _load(args)
    app = create_app(config_path=Path(args.config) if args.config else None)
    print(f"SlotKeeper daemon on http://{args.host}:{args.port} ({config.timezone})")
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


def main():
    parser = argparse.ArgumentParser(description="SlotKeeper CLI")
    parser.add_argument("--config", help="Path to schedule.yaml")
    parser.add_argument("--log-level", help="Override log level")
    parser.add_argument("--json-logs", action="store_true", default=None, help="JSON log lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("init", help="Write a starter config")
    p.add_argument("--force", action="store_true", help="Overwrite an existing config")

    subparsers.add_parser("schema", help="Check the task database schema")

    for name, help_text in (
        ("conflicts", "Resolve PTO conflicts and overlaps"),
        ("optimize", "Run the optimization pass"),
        ("autoschedule", "Schedule unscheduled items"),
        ("notify", "Show upcoming and in-progress events"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--json", action="store_true", help="JSON output")

    p = subparsers.add_parser("bump", help="Keep an item in place for today")
    p.add_argument("item_id")
    p.add_argument("--api-url", default="http://127.0.0.1:8420", help="SlotKeeper API server")
    p.add_argument("--token", help="API token")

    p = subparsers.add_parser("daemon", help="Serve the API and run passes on their timers")
    p.add_argument("--once", action="store_true", help="Run every job once and exit")
    p.add_argument("--host", default="127.0.0.1", help="API bind address")
    p.add_argument("--port", type=int, default=8420, help="API port")

    args = parser.parse_args()

    commands = {
        "init": cmd_init,
        "schema": cmd_schema,
        "conflicts": cmd_conflicts,
        "optimize": cmd_optimize,
        "autoschedule": cmd_autoschedule,
        "notify": cmd_notify,
        "bump": cmd_bump,
        "daemon": cmd_daemon,
    }

    try:
        return commands[args.command](args)
    except SlotKeeperError as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
