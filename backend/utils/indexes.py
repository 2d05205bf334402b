from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure

from utils.checkout import CheckoutStep

# a Rent Now left waiting on login or KYC for a day is treated as abandoned
PENDING_ACTION_TTL_SECONDS = 60 * 60 * 24
# untouched checkouts, finished or not, are cleared after a week
CHECKOUT_TTL_SECONDS = 60 * 60 * 24 * 7


def _normalize_key_pairs(keys):
    return [(k, v) for k, v in keys]


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create index safely.
    If Mongo reports IndexOptionsConflict/IndexKeySpecsConflict for same key pattern,
    drop the conflicting index and recreate with desired options.
    """
    desired_key = _normalize_key_pairs(keys)
    desired_name = kwargs.get("name")
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in {85, 86}:
            raise

        conflicting_names = []
        async for idx in collection.list_indexes():
            idx_key = _normalize_key_pairs(list(idx.get("key", {}).items()))
            if idx_key == desired_key:
                idx_name = idx.get("name")
                if idx_name and idx_name != desired_name:
                    conflicting_names.append(idx_name)

        for idx_name in conflicting_names:
            await collection.drop_index(idx_name)

        await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # Users
    await _create_index_safe(
        db.users,
        [("email", ASCENDING)],
        name="users_email_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.users,
        [("verification_token", ASCENDING)],
        name="users_verification_token_idx",
        sparse=True,
    )

    # Products
    await _create_index_safe(
        db.products,
        [("id", ASCENDING)],
        name="products_id_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.products,
        [("lender_email", ASCENDING), ("created_at", DESCENDING)],
        name="products_lender_created_idx",
    )

    # Orders
    await _create_index_safe(
        db.orders,
        [("id", ASCENDING)],
        name="orders_id_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.orders,
        [("lender_email", ASCENDING), ("created_at", DESCENDING)],
        name="orders_lender_created_at_idx",
    )
    await _create_index_safe(
        db.orders,
        [("status", ASCENDING), ("created_at", ASCENDING)],
        name="orders_status_created_at_idx",
    )

    # Pending Rent Now actions, one per client
    await _create_index_safe(
        db.pending_actions,
        [("client_id", ASCENDING)],
        name="pending_actions_client_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        db.pending_actions,
        [("updated_at", ASCENDING)],
        name="pending_actions_ttl_idx",
        expireAfterSeconds=PENDING_ACTION_TTL_SECONDS,
    )

    # Checkouts
    await _create_index_safe(
        db.checkouts,
        [("id", ASCENDING)],
        name="checkouts_id_unique_idx",
        unique=True,
    )
    # at most one unfinished checkout per user
    await _create_index_safe(
        db.checkouts,
        [("user_email", ASCENDING)],
        name="checkouts_open_per_user_unique_idx",
        unique=True,
        partialFilterExpression={"step": {"$lt": int(CheckoutStep.SUCCESS)}},
    )
    await _create_index_safe(
        db.checkouts,
        [("updated_at", ASCENDING)],
        name="checkouts_ttl_idx",
        expireAfterSeconds=CHECKOUT_TTL_SECONDS,
    )
