#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Close overdue in-progress attempts once and exit (for cron).
"""

import asyncio
import sys

from attempt_engine.clients.database_client import AsyncSessionLocal, dispose_db
from attempt_engine.config.logger import configure_logger
from attempt_engine.service.attempt_cleanup import AttemptCleanupService
from attempt_engine.service.cache_service import cache_service

logger = configure_logger(__name__)


async def sweep() -> int:
    try:
        async with AsyncSessionLocal() as session:
            closed = await AttemptCleanupService.finalize_expired_attempts(session)
        print(f"✅ Closed {closed} overdue attempts")
        return 0
    except Exception as e:
        logger.error(f"Sweep failed: {e}")
        print(f"❌ Error: {e}")
        return 1
    finally:
        await cache_service.close()
        await dispose_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(sweep()))
