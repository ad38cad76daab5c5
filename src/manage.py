"""Dispatch database management CLI.

Provides commands to create and drop the order store schema, and to run a
one-off sweep of expired claims outside the web server.

Usage:
    python src/manage.py setup-db       # Create the orders table
    python src/manage.py drop-db        # Drop the orders table
    python src/manage.py sweep-claims   # Release every expired claim now
"""

import argparse
import asyncio
import sys


def setup_database():
    """Create the order store schema."""
    from dispatch.domain import dispatch
    from dispatch.utils.db import setup_db

    print("Initializing dispatch domain...")
    dispatch.init()
    print("Creating order store schema...")
    setup_db()
    print("Done.")


def drop_database():
    """Drop the order store schema."""
    from dispatch.domain import dispatch
    from dispatch.utils.db import drop_db

    print("Initializing dispatch domain...")
    dispatch.init()
    print("Dropping order store schema...")
    drop_db()
    print("Done.")


def sweep_claims():
    """Release expired claims once and report what was released."""
    from dispatch.domain import dispatch
    from dispatch.reaper import get_reaper
    from dispatch.utils.logging import configure_logging

    configure_logging()
    dispatch.init()
    released = asyncio.run(get_reaper().run_once(propagate=True)) or []
    for order in released:
        print(f"  released {order.order_code} ({order.id})")
    print(f"Released {len(released)} expired claim(s).")


def main():
    parser = argparse.ArgumentParser(description="Dispatch database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create the orders table")
    subparsers.add_parser("drop-db", help="Drop the orders table")
    subparsers.add_parser("sweep-claims", help="Release every expired claim now")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep-claims":
        sweep_claims()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
