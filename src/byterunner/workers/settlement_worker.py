"""Settlement arq worker: contest reconciliation and hourly challenges.

Scheduled by ``byterunner.workers.settings.WorkerSettings``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from byterunner.config import get_settings
from byterunner.contests.settlement import check_and_update_contests
from byterunner.database import close_db, get_session, init_db
from byterunner.hourly.settlement import process_hourly_challenge
from byterunner.middleware.logging import setup_logging

logger = logging.getLogger(__name__)


async def _get_db_session() -> AsyncSession:
    """Open a session for one job run. The caller closes it."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def settlement_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize logging and the DB engine on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    logger.info("Settlement worker started")


async def settlement_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("Settlement worker shut down")


async def reconcile_contests(ctx: dict) -> dict[str, int] | None:  # type: ignore[type-arg]
    """Scheduled: start due contests, settle expired ones, recover missing claims."""
    db = await _get_db_session()
    try:
        return await check_and_update_contests(db)
    except Exception:
        logger.exception("Contest reconciliation failed")
        return None
    finally:
        await db.close()


async def settle_hourly_challenge(ctx: dict) -> dict[str, Any] | None:  # type: ignore[type-arg]
    """Scheduled at minute 0: settle the hour that just ended."""
    db = await _get_db_session()
    try:
        result = await process_hourly_challenge(db)
        logger.info(
            "Hourly settlement for %s: %s",
            result["challenge_hour"].isoformat(), result["outcome"],
        )
        return result
    except Exception:
        logger.exception("Hourly settlement failed")
        return None
    finally:
        await db.close()

