import asyncio
import logging
from datetime import datetime, timedelta

from config.constants import ORDER_PENDING, ORDER_REJECTED
from config.env import PENDING_ORDER_TTL_HOURS

CHECK_INTERVAL_SECONDS = 60 * 30  # every 30 minutes
logger = logging.getLogger(__name__)


async def expire_pending_orders(stores, now: datetime | None = None) -> int:
    """Reject rental requests nobody acted on. Returns how many were rejected."""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=PENDING_ORDER_TTL_HOURS)

    expired = 0
    for order in await stores.orders.list_pending_before(cutoff):
        try:
            # conditional update: an admin may have accepted it meanwhile
            if await stores.orders.update_status(order["id"], ORDER_PENDING, ORDER_REJECTED):
                expired += 1
                logger.info("PENDING_ORDER_EXPIRED order=%s", order["id"])
        except Exception:
            logger.exception("PENDING_ORDER_EXPIRY_ERROR order=%s", order.get("id"))

    return expired


async def pending_order_expiry_worker(stores):
    while True:
        try:
            await expire_pending_orders(stores)
        except Exception:
            logger.exception("PENDING_ORDER_EXPIRY_WORKER_ERROR")

        await asyncio.sleep(CHECK_INTERVAL_SECONDS)
