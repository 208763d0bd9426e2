#!/usr/bin/env python3
"""
Run the embedding schema manager outside the API server.

Usage:
    python scripts/migrate_embeddings.py            # probe, repair, report
    python scripts/migrate_embeddings.py --status   # probe only, change nothing
    python scripts/migrate_embeddings.py --drop     # drop the embedding table
    python scripts/migrate_embeddings.py --reset    # drop, then recreate

Dropping loses stored rows; the API re-bootstraps the knowledge base on its
next start.
"""

import argparse
import sys
from pathlib import Path

# Add project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from app.embeddings import SchemaManager
from app.embeddings.errors import ProvisioningError, StoreUnavailableError


def print_status(manager: SchemaManager) -> None:
    plan = manager.plan()
    current = plan.current

    print(f"Table: {manager.table}")
    print(f"  Exists: {current.exists}")
    print(f"  Column type: {current.raw_type or 'n/a'}")
    print(f"  Tier: {current.tier.value if current.tier else 'none'}")
    print(f"  Best available: {plan.desired.value}")
    print(f"  Next run would: {plan.action.value} ({plan.reason})")


def main():
    parser = argparse.ArgumentParser(
        description="Provision or repair the embedding table"
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--status",
        action="store_true",
        help="Show the current tier and planned action without changing anything"
    )
    group.add_argument(
        "--drop",
        action="store_true",
        help="Drop the embedding table"
    )
    group.add_argument(
        "--reset",
        action="store_true",
        help="Drop and recreate the embedding table"
    )
    args = parser.parse_args()

    manager = SchemaManager()

    print("Embedding schema")
    print("=" * 50)

    try:
        if args.status:
            print_status(manager)
            return

        if args.drop or args.reset:
            manager.down()
            print(f"Dropped {manager.table}")
            if args.drop:
                return

        report = manager.run()
        print()
        print("Migration complete!")
        print(f"  Action: {report.plan.action.value} ({report.plan.reason})")
        print(f"  Tier: {report.tier.value}")
        print(f"  Index: {report.index or 'none'}")
    except (StoreUnavailableError, ProvisioningError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
