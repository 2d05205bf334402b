"""
Repository interfaces for the marketplace data.

Business logic receives a ``Stores`` bundle instead of reaching for a global
database handle. ``utils.mongo_stores`` backs these with MongoDB; the
in-memory versions below back tests and local demos.
"""
import copy
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from utils.checkout import CheckoutStep


class ProductStore(Protocol):
    async def list_products(self) -> list[dict]: ...
    async def list_by_lender(self, lender_email: str) -> list[dict]: ...
    async def get(self, product_id: str) -> Optional[dict]: ...
    async def insert(self, product: dict) -> None: ...
    async def update(self, product_id: str, fields: dict) -> bool: ...
    async def delete(self, product_id: str) -> bool: ...
    async def add_review(self, product_id: str, review: dict) -> bool: ...


class OrderStore(Protocol):
    async def list_orders(self) -> list[dict]: ...
    async def list_by_lender(self, lender_email: str) -> list[dict]: ...
    async def list_pending_before(self, cutoff: datetime) -> list[dict]: ...
    async def get(self, order_id: str) -> Optional[dict]: ...
    async def insert(self, order: dict) -> None: ...
    async def update_status(self, order_id: str, expected: str, new_status: str) -> bool: ...


class UserStore(Protocol):
    async def list_users(self) -> list[dict]: ...
    async def get(self, email: str) -> Optional[dict]: ...
    async def get_by_verification_token(self, token: str) -> Optional[dict]: ...
    async def insert(self, user: dict) -> None: ...
    async def update(self, email: str, fields: dict) -> bool: ...
    async def add_session(self, email: str, session_id: str, limit: Optional[int]) -> bool: ...
    async def remove_session(self, email: str, session_id: str) -> bool: ...


class GateStore(Protocol):
    async def get_pending(self, client_id: str) -> Optional[dict]: ...
    async def set_pending(self, client_id: str, action: Optional[dict]) -> None: ...


class CheckoutStore(Protocol):
    async def get(self, checkout_id: str) -> Optional[dict]: ...
    async def save(self, flow: dict) -> None: ...
    async def delete(self, checkout_id: str) -> bool: ...
    async def discard_open(self, user_email: str) -> int: ...


@dataclass
class Stores:
    products: ProductStore
    orders: OrderStore
    users: UserStore
    gates: GateStore
    checkouts: CheckoutStore


# ==============================
# In-memory implementations
# ==============================

class InMemoryProductStore:
    def __init__(self, products: Optional[list[dict]] = None):
        self._items = {p["id"]: copy.deepcopy(p) for p in products or []}

    async def list_products(self) -> list[dict]:
        # newest listings first, like the Mongo store
        return sorted(
            (copy.deepcopy(p) for p in self._items.values()),
            key=lambda p: p.get("created_at") or datetime.min,
            reverse=True,
        )

    async def list_by_lender(self, lender_email: str) -> list[dict]:
        return [p for p in await self.list_products() if p.get("lender_email") == lender_email]

    async def get(self, product_id: str) -> Optional[dict]:
        product = self._items.get(product_id)
        return copy.deepcopy(product) if product else None

    async def insert(self, product: dict) -> None:
        self._items[product["id"]] = copy.deepcopy(product)

    async def update(self, product_id: str, fields: dict) -> bool:
        if product_id not in self._items:
            return False
        self._items[product_id].update(copy.deepcopy(fields))
        return True

    async def delete(self, product_id: str) -> bool:
        return self._items.pop(product_id, None) is not None

    async def add_review(self, product_id: str, review: dict) -> bool:
        if product_id not in self._items:
            return False
        self._items[product_id].setdefault("reviews", []).append(copy.deepcopy(review))
        return True


class InMemoryOrderStore:
    def __init__(self, orders: Optional[list[dict]] = None):
        self._items = {o["id"]: copy.deepcopy(o) for o in orders or []}

    async def list_orders(self) -> list[dict]:
        return [copy.deepcopy(o) for o in self._items.values()]

    async def list_by_lender(self, lender_email: str) -> list[dict]:
        return [o for o in await self.list_orders() if o.get("lender_email") == lender_email]

    async def list_pending_before(self, cutoff: datetime) -> list[dict]:
        return [
            o for o in await self.list_orders()
            if o["status"] == "pending" and o.get("created_at") and o["created_at"] <= cutoff
        ]

    async def get(self, order_id: str) -> Optional[dict]:
        order = self._items.get(order_id)
        return copy.deepcopy(order) if order else None

    async def insert(self, order: dict) -> None:
        if order["id"] in self._items:
            raise ValueError(f"Order {order['id']} already exists")
        self._items[order["id"]] = copy.deepcopy(order)

    async def update_status(self, order_id: str, expected: str, new_status: str) -> bool:
        order = self._items.get(order_id)
        if not order or order["status"] != expected:
            return False
        order["status"] = new_status
        order["updated_at"] = datetime.utcnow()
        return True


class InMemoryUserStore:
    def __init__(self, users: Optional[list[dict]] = None):
        self._items = {u["email"]: copy.deepcopy(u) for u in users or []}

    async def list_users(self) -> list[dict]:
        return [copy.deepcopy(u) for u in self._items.values()]

    async def get(self, email: str) -> Optional[dict]:
        user = self._items.get(email)
        return copy.deepcopy(user) if user else None

    async def get_by_verification_token(self, token: str) -> Optional[dict]:
        for user in self._items.values():
            if token and user.get("verification_token") == token:
                return copy.deepcopy(user)
        return None

    async def insert(self, user: dict) -> None:
        if user["email"] in self._items:
            raise ValueError(f"User {user['email']} already exists")
        self._items[user["email"]] = copy.deepcopy(user)

    async def update(self, email: str, fields: dict) -> bool:
        if email not in self._items:
            return False
        self._items[email].update(copy.deepcopy(fields))
        return True

    async def add_session(self, email: str, session_id: str, limit: Optional[int]) -> bool:
        user = self._items.get(email)
        if not user:
            return False
        sessions = user.setdefault("sessions", [])
        if limit is not None and len(sessions) >= limit:
            return False
        sessions.append(session_id)
        return True

    async def remove_session(self, email: str, session_id: str) -> bool:
        user = self._items.get(email)
        if not user or session_id not in user.get("sessions", []):
            return False
        user["sessions"].remove(session_id)
        return True


class InMemoryGateStore:
    def __init__(self):
        self._pending: dict[str, dict] = {}

    async def get_pending(self, client_id: str) -> Optional[dict]:
        action = self._pending.get(client_id)
        return copy.deepcopy(action) if action else None

    async def set_pending(self, client_id: str, action: Optional[dict]) -> None:
        if action is None:
            self._pending.pop(client_id, None)
        else:
            self._pending[client_id] = copy.deepcopy(action)


class InMemoryCheckoutStore:
    def __init__(self):
        self._items: dict[str, dict] = {}

    async def get(self, checkout_id: str) -> Optional[dict]:
        flow = self._items.get(checkout_id)
        return copy.deepcopy(flow) if flow else None

    async def save(self, flow: dict) -> None:
        self._items[flow["id"]] = copy.deepcopy(flow)

    async def delete(self, checkout_id: str) -> bool:
        return self._items.pop(checkout_id, None) is not None

    async def discard_open(self, user_email: str) -> int:
        open_ids = [
            cid for cid, flow in self._items.items()
            if flow["user_email"] == user_email and flow["step"] < CheckoutStep.SUCCESS
        ]
        for cid in open_ids:
            del self._items[cid]
        return len(open_ids)


def in_memory_stores(
    products: Optional[list[dict]] = None,
    orders: Optional[list[dict]] = None,
    users: Optional[list[dict]] = None,
) -> Stores:
    return Stores(
        products=InMemoryProductStore(products),
        orders=InMemoryOrderStore(orders),
        users=InMemoryUserStore(users),
        gates=InMemoryGateStore(),
        checkouts=InMemoryCheckoutStore(),
    )
