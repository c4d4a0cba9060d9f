"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from byterunner.badges.router import router as badges_router
from byterunner.badges.seed import seed_badges
from byterunner.balance.router import admin_router as withdrawals_admin_router
from byterunner.balance.router import router as balance_router
from byterunner.config import get_settings
from byterunner.contests.router import router as contests_router
from byterunner.database import close_db, get_session, init_db
from byterunner.fraud.router import router as fraud_router
from byterunner.health.router import router as health_router
from byterunner.hourly.router import admin_router as hourly_admin_router
from byterunner.hourly.router import router as hourly_router
from byterunner.leaderboard.router import router as leaderboard_router
from byterunner.middleware import setup_middleware
from byterunner.prize_claims.router import admin_router as prize_claims_admin_router
from byterunner.prize_claims.router import router as prize_claims_router
from byterunner.redis_client import close_redis, init_redis
from byterunner.runs.router import router as runs_router
from byterunner.shares.router import router as shares_router
from byterunner.users.router import router as users_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url, settings.redis_max_connections)

    # Badge catalogue (idempotent)
    try:
        async for db in get_session():
            await seed_badges(db)
            break
    except Exception:
        logging.getLogger(__name__).warning("Badge seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Byte Runner API",
        description="Backend API for Byte Runner: runs, leaderboards, contests and payouts",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(runs_router)
    app.include_router(leaderboard_router)
    app.include_router(contests_router)
    app.include_router(hourly_router)
    app.include_router(balance_router)
    app.include_router(prize_claims_router)
    app.include_router(badges_router)
    app.include_router(shares_router)
    app.include_router(withdrawals_admin_router)
    app.include_router(prize_claims_admin_router)
    app.include_router(hourly_admin_router)
    app.include_router(fraud_router)

    return app


app = create_app()
