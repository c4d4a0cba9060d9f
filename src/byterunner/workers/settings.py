"""arq worker settings for the settlement scheduler.

Run with: arq byterunner.workers.settings.WorkerSettings

The contest reconciliation fires every ``contest_check_interval_minutes``
and once at startup. The hourly challenge settles at minute 0.
"""

from __future__ import annotations

from arq import cron
from arq.connections import RedisSettings

from byterunner.config import get_settings
from byterunner.workers.settlement_worker import (
    reconcile_contests,
    settle_hourly_challenge,
    settlement_shutdown,
    settlement_startup,
)


def contest_check_minutes(interval: int) -> set[int]:
    """Minutes of the hour at which the contest check fires."""
    interval = max(1, min(interval, 60))
    return set(range(0, 60, interval))


_settings = get_settings()


class WorkerSettings:
    functions = [reconcile_contests, settle_hourly_challenge]
    cron_jobs = [
        cron(
            reconcile_contests,
            minute=contest_check_minutes(_settings.contest_check_interval_minutes),
            run_at_startup=True,
        ),
        cron(settle_hourly_challenge, minute=0, second=0),
    ]
    on_startup = settlement_startup
    on_shutdown = settlement_shutdown
    redis_settings = RedisSettings.from_dsn(_settings.arq_redis_url or _settings.redis_url)
    max_jobs = _settings.worker_max_jobs
    job_timeout = _settings.worker_job_timeout_seconds
    allow_abort_jobs = True
