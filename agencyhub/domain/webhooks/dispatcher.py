"""
Lifecycle event dispatch boundary

Request handlers call notify() after their transaction has committed. The
event is handed to the arq queue and the handler returns immediately; the
worker performs delivery. Queue problems are logged and swallowed so webhook
delivery can never fail or delay the triggering transition.
"""

import asyncio
import logging
from typing import Optional

from arq import create_pool

from ...config import REDIS_URL
from ...worker import get_redis_settings

logger = logging.getLogger(__name__)

DELIVERY_TASK = "deliver_webhook_event_task"
ENQUEUE_TIMEOUT_SECONDS = 5.0


async def notify(event: str, data: dict) -> Optional[str]:
    """Queue `event` for delivery; returns the job id, or None when not queued"""
    if not REDIS_URL:
        logger.debug(f"REDIS_URL not configured - webhook event {event} not queued")
        return None

    try:
        pool = await asyncio.wait_for(create_pool(get_redis_settings()), timeout=ENQUEUE_TIMEOUT_SECONDS)
        try:
            job = await pool.enqueue_job(DELIVERY_TASK, event, data)
        finally:
            await pool.close()
    except Exception as e:
        logger.warning(f"⚠️ Failed to queue webhook event {event}: {e}")
        return None

    job_id = job.job_id if job else None
    logger.info(f"📋 Webhook event {event} queued: {job_id}")
    return job_id
