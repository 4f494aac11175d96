import logging
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from app.core.config import settings
from app.core.database import SessionLocal
from app.repositories.idempotency_repository import IdempotencyRepository
from app.repositories.otp_challenge_repository import OtpChallengeRepository

logger = logging.getLogger(__name__)

# Redis connection settings
redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def purge_expired_otp_challenges_task(ctx: dict[str, Any]) -> int:
    """Background task: delete verification codes past their expiry.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        count = OtpChallengeRepository(db).delete_expired()
        if count > 0:
            logger.info("Purged %d expired verification codes", count)
        return count
    finally:
        db.close()


async def purge_idempotency_records_task(ctx: dict[str, Any]) -> int:
    """Background task: delete idempotency records older than the retention window.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        count = IdempotencyRepository(db).delete_expired(
            max_age_hours=settings.IDEMPOTENCY_RETENTION_HOURS
        )
        if count > 0:
            logger.info("Purged %d idempotency records", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        purge_expired_otp_challenges_task,
        purge_idempotency_records_task,
    ]
    cron_jobs = [
        cron(purge_expired_otp_challenges_task, minute={0}),  # hourly
        cron(purge_idempotency_records_task, minute={30}),  # hourly
    ]
    redis_settings = redis_settings
