#!/usr/bin/env python3
"""
ShiftSync Launcher
Command line entry points for clocking and syncing on this device.
"""

import json
import sys
from pathlib import Path

# Add the project root to Python path for clean imports
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from client.sync_service import SyncService
from shared.db_helpers import DatabaseException, SQLiteEntityStore
from shared.logging_config import enable_debug_logging, get_client_logger

logger = get_client_logger()

USAGE = """ShiftSync Launcher

Usage:
  python launcher.py sync                          # Pull, merge and push all collections
  python launcher.py push                          # Push local state without pulling
  python launcher.py clock-in EMP001 [EMP002 ...]  # Open a shift for each employee
  python launcher.py clock-out ENTRY_ID [BREAK]    # Close a shift, BREAK in minutes
  python launcher.py active                        # List open shifts
  python launcher.py set-endpoint URL              # Store the spreadsheet web app URL
  python launcher.py status                        # Show sync status

Add --debug anywhere for verbose logging."""


def _print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


def main(argv=None) -> int:
    """Main launcher with command-line arguments"""
    args = list(sys.argv[1:] if argv is None else argv)

    if '--debug' in args:
        args.remove('--debug')
        enable_debug_logging()

    if not args:
        print(USAGE)
        return 1

    command = args[0].lower()
    params = args[1:]

    try:
        service = SyncService(store=SQLiteEntityStore())
        return run_command(service, command, params)
    except DatabaseException as e:
        logger.error(f"Local store error: {e}")
        return 3


def run_command(service: SyncService, command: str, params) -> int:
    if command == 'sync':
        result = service.pull_merge_push()
        _print_json(result.to_dict())
        return 0 if result else 2

    elif command == 'push':
        result = service.push_to_cloud()
        _print_json(result.to_dict())
        return 0 if result else 2

    elif command == 'clock-in':
        if not params:
            print("clock-in needs at least one employee ID")
            return 1
        for entry_id in service.clock_in(params):
            print(entry_id)
        return 0

    elif command == 'clock-out':
        if not params:
            print("clock-out needs an entry ID")
            return 1
        try:
            break_minutes = int(params[1]) if len(params) > 1 else 0
        except ValueError:
            print(f"Invalid break minutes: {params[1]}")
            return 1
        entry = service.clock_out(params[0], break_minutes=break_minutes)
        if entry is None:
            print(f"No timesheet entry {params[0]}")
            return 1
        _print_json(entry)
        return 0

    elif command == 'active':
        _print_json(service.get_active_entries())
        return 0

    elif command == 'set-endpoint':
        if not params:
            print("set-endpoint needs a URL")
            return 1
        service.set_endpoint(params[0])
        print("Endpoint saved" if service.is_configured() else
              "Endpoint saved, but it is a document link; paste the deployed web app URL instead")
        return 0

    elif command == 'status':
        _print_json(service.get_sync_status().to_dict())
        return 0

    else:
        print(f"Unknown command: {command}")
        print(USAGE)
        return 1


if __name__ == '__main__':
    sys.exit(main())
