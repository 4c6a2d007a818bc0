"""TaskIQ broker configuration."""

import logging

from taskiq_postgresql import PostgresqlBroker

from easypark.config import settings

logger = logging.getLogger(__name__)

# Queue backed by the application database
broker = PostgresqlBroker(
    dsn=settings.SYNC_DATABASE_URL,
)


async def startup_broker():
    """Connect the broker when running inside the API process."""
    if not settings.TASK_BROKER_ENABLED:
        logger.info("Task broker disabled; background tasks run inline")
        return
    if not broker.is_worker_process:
        await broker.startup()


async def shutdown_broker():
    """Disconnect the broker on API shutdown."""
    if settings.TASK_BROKER_ENABLED and not broker.is_worker_process:
        await broker.shutdown()
