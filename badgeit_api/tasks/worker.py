"""arq WorkerSettings for maintenance jobs that run beside the API.

Badge computation itself is done by the external badge worker; this process
only hosts cron jobs that keep the shared keyspace healthy.

Started with: arq badgeit_api.tasks.worker.WorkerSettings
"""

from arq.connections import RedisSettings
from arq.cron import cron

from badgeit_api.core.config import settings
from badgeit_api.core.logging_setup import configure_logging
from badgeit_api.core.redis import close_redis
from badgeit_api.tasks.reaper import reap_stale_claims

configure_logging(settings.LOG_LEVEL)


async def shutdown(ctx: dict) -> None:
    await close_redis()


class WorkerSettings:
    functions = [reap_stale_claims]

    cron_jobs = [
        cron(reap_stale_claims, second=0, run_at_startup=True),
    ]

    redis_settings = RedisSettings.from_dsn(settings.redis_dsn)

    on_shutdown = shutdown
    max_jobs = 1
    job_timeout = 60
    health_check_interval = 30
