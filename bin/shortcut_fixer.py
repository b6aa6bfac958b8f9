#!/usr/bin/env python3
"""
Shortcut Fixer command line.

Usage:
  shortcut_fixer.py scan <library>
  shortcut_fixer.py quick-fix
  shortcut_fixer.py cleanup <library>
  shortcut_fixer.py repair <library> <appid> [<appid> ...]

The repair command pauses after each Steam uninstall/install request and
waits for Enter once the step is done in the Steam client.
"""

import os
import sys
import asyncio

# Add parent directory to path to import the plugin facade
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, parent_dir)

from main import Plugin
from shortcutfixer.settings import load_settings
from shortcutfixer.utils import setup_logging


def print_scan(result: dict) -> None:
    for game in result['games']:
        marker = '' if game['exists'] else '  [missing folder]'
        print(f"  {game['app_id']:>10}  {game['name']}{marker}")
    print(f"\n  {len(result['games'])} games in {len(result['libraries'])} libraries")
    for warning in result['warnings']:
        print(f"  WARNING: {warning['path']}: {warning['message']}")


def print_quick_fix(result: dict) -> None:
    for fix in result['results']:
        if fix['success']:
            state = 'fixed' if fix['changed'] else 'ok'
            print(f"  ✓ [{fix['location']}] {fix['name']} ({state})")
        else:
            print(f"  ✗ [{fix['location']}] {fix['name']}: {fix['error']}")
    if not result['results']:
        print("  No Steam shortcuts found")


async def run_repair(plugin: Plugin, library: str, app_ids) -> int:
    started = await plugin.start_deep_repair(library, app_ids)
    if not started['success']:
        print(f"ERROR: {started['error']}")
        return 1
    if started['missing']:
        print(f"Skipping unknown app ids: {', '.join(started['missing'])}")

    loop = asyncio.get_running_loop()
    last_printed = None
    while True:
        status = await plugin.get_repair_status()
        current = next((j for j in status['jobs'] if j['app_id'] == status['current_app_id']), None)
        if current and (current['app_id'], current['state']) != last_printed:
            last_printed = (current['app_id'], current['state'])
            print(f"  [{current['progress']:>3}%] {current['name']}: {current['message']}")
        if status['waiting_for_confirmation']:
            await loop.run_in_executor(None, input, "  Press Enter to continue...")
            await plugin.confirm_repair_step(status['current_app_id'])
            continue
        if not status['is_running']:
            break
        await asyncio.sleep(0.2)

    jobs = await plugin.wait_for_repair()
    failed = [job for job in jobs if job.error]
    for job in jobs:
        state = f"failed: {job.error}" if job.error else "complete"
        print(f"  {job.app.name}: {state}")
    return 1 if failed else 0


async def main() -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Repair broken Steam game shortcuts")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="List installed games")
    scan.add_argument("library", help="Steam library (root, steamapps or common folder)")

    sub.add_parser("quick-fix", help="Repair icons of desktop and Start Menu shortcuts")

    cleanup = sub.add_parser("cleanup", help="Restore folders left renamed by an interrupted repair")
    cleanup.add_argument("library")

    repair = sub.add_parser("repair", help="Uninstall/reinstall games so Steam recreates their shortcuts")
    repair.add_argument("library")
    repair.add_argument("app_ids", nargs="+", help="Steam app ids to repair")

    parser.add_argument("--verbose", action="store_true", help="Also log debug output to the console")
    args = parser.parse_args()

    import logging
    setup_logging()
    if args.verbose:
        for handler in logging.getLogger("shortcutfixer").handlers:
            handler.setLevel(logging.DEBUG)

    plugin = Plugin(settings=load_settings())
    try:
        if args.command == "scan":
            result = await plugin.scan_games(args.library)
            if not result['success']:
                print(f"ERROR: {result['error']}")
                return 1
            print_scan(result)

        elif args.command == "quick-fix":
            result = await plugin.quick_fix_shortcuts()
            if not result['success']:
                print(f"ERROR: {result['error']}")
                return 1
            print_quick_fix(result)

        elif args.command == "cleanup":
            result = await plugin.cleanup_temp_folders(args.library)
            for name in result.get('cleaned', []):
                print(f"  ✓ Restored {name}")
            if not result['success']:
                print(f"ERROR: {result['error']}")
                return 1
            if not result['cleaned']:
                print("  Nothing to clean up")

        elif args.command == "repair":
            return await run_repair(plugin, args.library, args.app_ids)
    finally:
        await plugin._unload()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
