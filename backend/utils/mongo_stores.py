from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument

from utils.checkout import CheckoutStep
from utils.stores import Stores

# documents carry their own string "id"; Mongo's _id never leaves the store
NO_MONGO_ID = {"_id": 0}


class MongoProductStore:
    def __init__(self, db):
        self.col = db.products

    async def list_products(self) -> list[dict]:
        cursor = self.col.find({}, NO_MONGO_ID).sort("created_at", -1)
        return await cursor.to_list(None)

    async def list_by_lender(self, lender_email: str) -> list[dict]:
        cursor = self.col.find({"lender_email": lender_email}, NO_MONGO_ID).sort("created_at", -1)
        return await cursor.to_list(None)

    async def get(self, product_id: str) -> Optional[dict]:
        return await self.col.find_one({"id": product_id}, NO_MONGO_ID)

    async def insert(self, product: dict) -> None:
        await self.col.insert_one(dict(product))

    async def update(self, product_id: str, fields: dict) -> bool:
        result = await self.col.update_one({"id": product_id}, {"$set": fields})
        return result.matched_count > 0

    async def delete(self, product_id: str) -> bool:
        result = await self.col.delete_one({"id": product_id})
        return result.deleted_count > 0

    async def add_review(self, product_id: str, review: dict) -> bool:
        result = await self.col.update_one({"id": product_id}, {"$push": {"reviews": review}})
        return result.matched_count > 0


class MongoOrderStore:
    def __init__(self, db):
        self.col = db.orders

    async def list_orders(self) -> list[dict]:
        return await self.col.find({}, NO_MONGO_ID).sort("created_at", -1).to_list(None)

    async def list_by_lender(self, lender_email: str) -> list[dict]:
        cursor = self.col.find({"lender_email": lender_email}, NO_MONGO_ID).sort("created_at", -1)
        return await cursor.to_list(None)

    async def list_pending_before(self, cutoff: datetime) -> list[dict]:
        cursor = self.col.find(
            {"status": "pending", "created_at": {"$lte": cutoff}},
            NO_MONGO_ID,
        )
        return await cursor.to_list(None)

    async def get(self, order_id: str) -> Optional[dict]:
        return await self.col.find_one({"id": order_id}, NO_MONGO_ID)

    async def insert(self, order: dict) -> None:
        await self.col.insert_one(dict(order))

    async def update_status(self, order_id: str, expected: str, new_status: str) -> bool:
        # conditional on the current status so two admins cannot race a transition
        updated = await self.col.find_one_and_update(
            {"id": order_id, "status": expected},
            {"$set": {"status": new_status, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return updated is not None


class MongoUserStore:
    def __init__(self, db):
        self.col = db.users

    async def list_users(self) -> list[dict]:
        return await self.col.find({}, NO_MONGO_ID).to_list(None)

    async def get(self, email: str) -> Optional[dict]:
        return await self.col.find_one({"email": email}, NO_MONGO_ID)

    async def get_by_verification_token(self, token: str) -> Optional[dict]:
        if not token:
            return None
        return await self.col.find_one({"verification_token": token}, NO_MONGO_ID)

    async def insert(self, user: dict) -> None:
        await self.col.insert_one(dict(user))

    async def update(self, email: str, fields: dict) -> bool:
        result = await self.col.update_one({"email": email}, {"$set": fields})
        return result.matched_count > 0

    async def add_session(self, email: str, session_id: str, limit: Optional[int]) -> bool:
        query = {"email": email}
        if limit is not None:
            # only matches while fewer than `limit` sessions exist
            query[f"sessions.{limit - 1}"] = {"$exists": False}

        result = await self.col.update_one(query, {"$push": {"sessions": session_id}})
        return result.modified_count > 0

    async def remove_session(self, email: str, session_id: str) -> bool:
        result = await self.col.update_one(
            {"email": email, "sessions": session_id},
            {"$pull": {"sessions": session_id}},
        )
        return result.modified_count > 0


class MongoGateStore:
    def __init__(self, db):
        self.col = db.pending_actions

    async def get_pending(self, client_id: str) -> Optional[dict]:
        doc = await self.col.find_one({"client_id": client_id}, NO_MONGO_ID)
        return doc.get("action") if doc else None

    async def set_pending(self, client_id: str, action: Optional[dict]) -> None:
        if action is None:
            await self.col.delete_one({"client_id": client_id})
            return

        await self.col.update_one(
            {"client_id": client_id},
            {"$set": {"action": action, "updated_at": datetime.utcnow()}},
            upsert=True,
        )


class MongoCheckoutStore:
    def __init__(self, db):
        self.col = db.checkouts

    async def get(self, checkout_id: str) -> Optional[dict]:
        return await self.col.find_one({"id": checkout_id}, NO_MONGO_ID)

    async def save(self, flow: dict) -> None:
        await self.col.replace_one({"id": flow["id"]}, dict(flow), upsert=True)

    async def delete(self, checkout_id: str) -> bool:
        result = await self.col.delete_one({"id": checkout_id})
        return result.deleted_count > 0

    async def discard_open(self, user_email: str) -> int:
        result = await self.col.delete_many(
            {"user_email": user_email, "step": {"$lt": int(CheckoutStep.SUCCESS)}}
        )
        return result.deleted_count


def mongo_stores(db) -> Stores:
    return Stores(
        products=MongoProductStore(db),
        orders=MongoOrderStore(db),
        users=MongoUserStore(db),
        gates=MongoGateStore(db),
        checkouts=MongoCheckoutStore(db),
    )
