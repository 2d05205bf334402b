"""
Rent Now orchestration.

Runs the verification gate for a client session, persists the single
pending-action slot, and starts or completes checkout flows. The gate and
sequencer themselves are pure; everything here is about loading and saving
them through the injected stores.

A slot written while a user is logged in belongs to that user: other callers
presenting the same client id neither see it nor overwrite it.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from utils.checkout import CheckoutFlow
from utils.gate import GateOutcome, PendingAction, PendingActionKind, VerificationGate, may_checkout
from utils.orders import build_order
from utils.pricing import plan_price
from utils.stores import Stores

logger = logging.getLogger(__name__)


class VerificationRequiredError(Exception):
    pass


def _slot_visible(doc: Optional[dict], user: Optional[dict]) -> bool:
    owner = doc.get("owner_email") if doc else None
    return owner is None or (user is not None and user["email"] == owner)


async def load_gate(stores: Stores, client_id: str, user: Optional[dict] = None) -> VerificationGate:
    doc = await stores.gates.get_pending(client_id)
    if not doc or not _slot_visible(doc, user):
        return VerificationGate()
    return VerificationGate(PendingAction.model_validate(doc))


async def save_gate(
    stores: Stores,
    client_id: str,
    gate: VerificationGate,
    user: Optional[dict] = None,
) -> None:
    current = await stores.gates.get_pending(client_id)
    if not _slot_visible(current, user):
        logger.warning("PENDING_ACTION_SLOT_FOREIGN client=%s", client_id)
        return

    pending = None
    if gate.pending:
        pending = {
            **gate.pending.model_dump(mode="json"),
            "owner_email": user["email"] if user else None,
        }
    await stores.gates.set_pending(client_id, pending)


async def get_rentable_product(stores: Stores, product_id: str, plan: str) -> dict:
    product = await stores.products.get(product_id)
    if not product:
        raise LookupError("Product not found")
    # raises ValueError for plans the listing does not offer
    plan_price(product["display_pricing"], plan)
    return product


def _require_verified(user: Optional[dict]) -> None:
    if not may_checkout(user):
        raise VerificationRequiredError("Complete identity verification before renting")


async def start_checkout(stores: Stores, user: dict, product: dict, plan: str) -> CheckoutFlow:
    _require_verified(user)

    flow = CheckoutFlow(
        id=f"chk_{uuid4().hex}",
        user_email=user["email"],
        product_id=product["id"],
    )
    flow.select_plan(plan)
    flow.begin()

    # one open checkout per user; an unfinished earlier one is replaced
    discarded = await stores.checkouts.discard_open(user["email"])
    if discarded:
        logger.info("CHECKOUT_REPLACED user=%s discarded=%s", user["email"], discarded)
    await save_checkout(stores, flow)

    logger.info("CHECKOUT_STARTED checkout=%s product=%s user=%s", flow.id, product["id"], user["email"])
    return flow


async def rent_now(
    stores: Stores,
    client_id: str,
    user: Optional[dict],
    product_id: str,
    plan: str,
) -> dict:
    product = await get_rentable_product(stores, product_id, plan)

    gate = await load_gate(stores, client_id, user)
    outcome = gate.request_rent(user, product_id, plan)
    await save_gate(stores, client_id, gate, user)

    if outcome != GateOutcome.PROCEED:
        return {"status": outcome.value, "pending_action": gate.pending.model_dump(mode="json")}

    flow = await start_checkout(stores, user, product, plan)
    return {"status": "checkout_started", "checkout": flow.summary()}


async def dispatch_pending(
    stores: Stores,
    client_id: str,
    user: dict,
    action: Optional[PendingAction],
) -> Optional[dict]:
    """
    Run a pending action taken off the gate. Called once per success path;
    the slot is already empty when this runs.
    """
    if action is None:
        return None

    try:
        # a deferred checkout only resumes directly once the user may rent;
        # otherwise the gate decides again
        if action.kind == PendingActionKind.RENT_NOW or not may_checkout(user):
            return await rent_now(stores, client_id, user, action.product_id, action.plan)

        product = await get_rentable_product(stores, action.product_id, action.plan)
        flow = await start_checkout(stores, user, product, action.plan)
        return {"status": "checkout_started", "checkout": flow.summary()}
    except (LookupError, ValueError):
        # listing removed or repriced while the user was verifying
        logger.info("PENDING_ACTION_DROPPED client=%s product=%s", client_id, action.product_id)
        return {"status": "product_unavailable"}


# =========================
# CHECKOUT PERSISTENCE
# =========================

async def load_checkout(stores: Stores, checkout_id: str, user: dict) -> CheckoutFlow:
    doc = await stores.checkouts.get(checkout_id)
    if not doc or doc["user_email"] != user["email"]:
        raise LookupError("Checkout not found")
    return CheckoutFlow.model_validate(doc)


async def save_checkout(stores: Stores, flow: CheckoutFlow) -> None:
    doc = flow.model_dump(mode="json")
    # drives the stale-checkout TTL index
    doc["updated_at"] = datetime.utcnow()
    await stores.checkouts.save(doc)


async def complete_checkout(stores: Stores, flow: CheckoutFlow, user: dict) -> dict:
    _require_verified(user)

    product = await stores.products.get(flow.product_id)
    if not product:
        raise LookupError("Product not found")

    order = build_order(product, user, flow.plan)
    # validates eligibility before anything is written
    flow.complete(order["id"])

    await stores.orders.insert(order)
    await save_checkout(stores, flow)

    logger.info("ORDER_CREATED order=%s checkout=%s total=%s", order["id"], flow.id, order["total_price"])
    return order
