#!/usr/bin/env python3
"""
Database initialization script.
Creates all tables, seeds sample funds and records the setup status.
"""
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect
from pumpfunds.models.base import engine, SessionLocal
from pumpfunds.core.setup_manager import SetupManager, STATUS_COMPLETED
from pumpfunds.utils.logging import configure_logging

def init_database(force: bool = False) -> bool:
    """
    Initialize database with all tables and seed data.
    Steps:
    1. Create all tables from SQLAlchemy models
    2. Seed sample funds and the test user (once)
    3. Verify
    """
    print("🚀 PumpFunds - Database Initialization")
    print("=" * 50)

    print("\n1. Creating tables and seeding data...")
    try:
        result = SetupManager(engine, SessionLocal).run(force=force)
    except Exception as e:
        print(f"  ✗ Setup failed: {e}")
        return False

    if result['funds_created'] or result['users_created']:
        print(f"  ✓ Seeded {result['funds_created']} funds and {result['users_created']} users")
    else:
        print(f"  ✓ Nothing to seed (setup status: {result['status']})")

    print("\n2. Verifying tables...")
    tables = sorted(inspect(engine).get_table_names())
    print(f"  ✓ Found {len(tables)} tables:")
    for table in tables:
        print(f"    - {table}")

    print("\n" + "=" * 50)
    print("✅ Database initialization complete!")
    return result['status'] == STATUS_COMPLETED

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--force', action='store_true', help='Take over a setup run left in progress')
    args = parser.parse_args()

    configure_logging()
    sys.exit(0 if init_database(force=args.force) else 1)
