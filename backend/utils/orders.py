import logging
import secrets
import string
from datetime import datetime, timedelta

from config.constants import (
    CATEGORIES,
    ORDER_ID_PREFIX,
    ORDER_PENDING,
    ORDER_ACTIVE,
    ORDER_REJECTED,
    ORDER_TRANSITIONS,
    PLAN_DAILY,
    DAYS_PER_MONTH,
)
from utils.earnings import split_for_plan
from utils.stores import OrderStore

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_uppercase + string.digits


class OrderTransitionError(Exception):
    pass


def new_order_id() -> str:
    return ORDER_ID_PREFIX + "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))


def rental_end(start: datetime, plan: str) -> datetime:
    if plan == PLAN_DAILY:
        return start + timedelta(days=1)
    return start + timedelta(days=int(plan) * DAYS_PER_MONTH)


def build_order(product: dict, user: dict, plan: str, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    split = split_for_plan(product, plan)

    return {
        "id": new_order_id(),
        "product_id": product["id"],
        "lender_email": product.get("lender_email"),
        "user_email": user["email"],
        "renter_name": user.get("name"),
        "plan": plan,
        "start_date": now.date().isoformat(),
        "end_date": rental_end(now, plan).date().isoformat(),
        "status": ORDER_PENDING,
        "total_price": float(split.total_price),
        "lender_earnings": float(split.lender_earnings),
        "platform_fee": float(split.platform_fee),
        "commission_rate": product["commission_rate"],
        "pricing": split.as_dict(),
        "created_at": now,
        "updated_at": now,
    }


def check_transition(current: str, new_status: str) -> None:
    allowed = ORDER_TRANSITIONS.get(current)
    if allowed is None:
        raise OrderTransitionError(f"Unknown order status '{current}'")
    if new_status not in allowed:
        raise OrderTransitionError(f"Cannot move an order from '{current}' to '{new_status}'")


async def update_order_status(orders: OrderStore, order_id: str, new_status: str) -> dict:
    order = await orders.get(order_id)
    if not order:
        raise LookupError("Order not found")

    check_transition(order["status"], new_status)

    if not await orders.update_status(order_id, order["status"], new_status):
        raise OrderTransitionError("Order status changed concurrently. Refresh and try again.")

    logger.info("ORDER_STATUS_CHANGED order=%s %s->%s", order_id, order["status"], new_status)
    return await orders.get(order_id)


def serialize_order(order: dict) -> dict:
    return {
        "id": order["id"],
        "product_id": order["product_id"],
        "user_email": order["user_email"],
        "renter_name": order.get("renter_name"),
        "plan": order.get("plan"),
        "start_date": order.get("start_date"),
        "end_date": order.get("end_date"),
        "status": order["status"],
        "total_price": order["total_price"],
        "lender_earnings": order["lender_earnings"],
        "platform_fee": order.get("platform_fee"),
        "created_at": order["created_at"].isoformat()
        if isinstance(order.get("created_at"), datetime)
        else None,
    }


def count_active(orders: list[dict]) -> int:
    return sum(1 for o in orders if o["status"] == ORDER_ACTIVE)


def _counted(orders: list[dict]) -> list[dict]:
    # rejected requests never turned into money
    return [o for o in orders if o["status"] != ORDER_REJECTED]


def total_revenue(orders: list[dict]) -> float:
    return round(sum(o["total_price"] for o in _counted(orders)), 2)


def total_lender_earnings(orders: list[dict]) -> float:
    return round(sum(o["lender_earnings"] for o in _counted(orders)), 2)


def rentals_by_category(orders: list[dict], products: list[dict]) -> list[dict]:
    category_of = {p["id"]: p.get("category_id") for p in products}
    counts = {c["id"]: 0 for c in CATEGORIES}

    for order in orders:
        category_id = category_of.get(order["product_id"])
        if category_id in counts:
            counts[category_id] += 1

    return [{"id": c["id"], "name": c["name"], "count": counts[c["id"]]} for c in CATEGORIES]
