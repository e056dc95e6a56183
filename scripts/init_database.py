#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Database initialization script.

Applies alembic migrations, falling back to ``create_all`` with ``--create-all``.
"""

import asyncio
import subprocess
import sys
from pathlib import Path

from attempt_engine.clients.database_client import dispose_db, init_db
from attempt_engine.config.logger import configure_logger

logger = configure_logger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent


async def init_database(create_all: bool = False):
    """Bring the schema up to date."""
    try:
        if create_all:
            print("🔄 Creating tables from ORM metadata...")
            await init_db()
            await dispose_db()
        else:
            print("🔄 Applying migrations...")
            result = subprocess.run(
                ["alembic", "-c", "alembic.ini", "upgrade", "head"],
                capture_output=True,
                text=True,
                cwd=PROJECT_ROOT,
            )
            if result.returncode != 0:
                print(f"❌ Migration failed: {result.stderr}")
                print(f"stdout: {result.stdout}")
                sys.exit(1)

        print("🎉 Database initialized")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        print(f"❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(init_database(create_all="--create-all" in sys.argv[1:]))
