import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field

from utils import auth_service
from utils.auth_service import public_user
from utils.crypto import DocumentCipherError, decrypt_sensitive_value
from utils.deps import get_stores
from utils.listings import serialize_product
from utils.orders import (
    OrderTransitionError,
    count_active,
    rentals_by_category,
    serialize_order,
    total_revenue,
    update_order_status,
)
from utils.security import require_admin

router = APIRouter(prefix="/admin", tags=["Admin"])

logger = logging.getLogger(__name__)


# =====================================================
# SCHEMAS
# =====================================================

class OrderStatusUpdate(BaseModel):
    status: Literal["active", "completed", "rejected"]


class AdminCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


# =====================================================
# DASHBOARD
# =====================================================

@router.get("/dashboard")
async def dashboard(admin=Depends(require_admin), stores=Depends(get_stores)):
    users = await stores.users.list_users()
    orders = await stores.orders.list_orders()
    products = await stores.products.list_products()

    return {
        "total_users": len(users),
        "total_products": len(products),
        "active_rentals": count_active(orders),
        "total_revenue": total_revenue(orders),
        "rentals_by_category": rentals_by_category(orders, products),
    }


# =====================================================
# USERS
# =====================================================

@router.get("/users")
async def list_users(admin=Depends(require_admin), stores=Depends(get_stores)):
    users = await stores.users.list_users()
    return {
        "count": len(users),
        "users": [
            {**public_user(u), "active_sessions": len(u.get("sessions", []))}
            for u in users
        ],
    }


@router.get("/users/{email}/kyc")
async def user_kyc(
    email: str,
    admin=Depends(require_admin),
    stores=Depends(get_stores),
):
    user = await stores.users.get(email.strip().lower())
    if not user:
        raise HTTPException(404, "User not found")

    kyc = user.get("kyc") or {}
    try:
        documents = {
            field: decrypt_sensitive_value(kyc[field])
            for field in ("id_document", "face_photo")
            if kyc.get(field)
        }
    except DocumentCipherError as e:
        logger.exception("KYC_DOCUMENT_DECRYPT_ERROR user=%s", user["email"])
        raise HTTPException(500, str(e))
    logger.info("KYC_DOCUMENTS_VIEWED user=%s by=%s", user["email"], admin["email"])

    return {
        **public_user(user),
        "step": kyc.get("step"),
        "confidence": kyc.get("confidence"),
        "documents": documents,
    }


@router.post("/admins", status_code=201)
async def create_admin(
    data: AdminCreate,
    admin=Depends(require_admin),
    stores=Depends(get_stores),
):
    result = await auth_service.create_admin(stores.users, data.email, data.password, admin)
    if not result.success:
        raise HTTPException(400, result.message)
    return {"message": result.message}


# =====================================================
# ORDERS
# =====================================================

@router.get("/orders")
async def list_orders(
    status: str | None = None,
    admin=Depends(require_admin),
    stores=Depends(get_stores),
):
    orders = await stores.orders.list_orders()
    if status:
        orders = [o for o in orders if o["status"] == status]

    orders.sort(key=lambda o: o["created_at"], reverse=True)
    return {
        "count": len(orders),
        "orders": [serialize_order(o) for o in orders],
    }


@router.patch("/orders/{order_id}/status")
async def change_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    admin=Depends(require_admin),
    stores=Depends(get_stores),
):
    try:
        order = await update_order_status(stores.orders, order_id, data.status)
    except LookupError:
        raise HTTPException(404, "Order not found")
    except OrderTransitionError as e:
        raise HTTPException(409, str(e))

    return serialize_order(order)


# =====================================================
# PRODUCTS
# =====================================================

@router.get("/products")
async def list_products(admin=Depends(require_admin), stores=Depends(get_stores)):
    products = await stores.products.list_products()
    return {
        "count": len(products),
        "products": [serialize_product(p, include_lender_pricing=True) for p in products],
    }


@router.delete("/products/{product_id}")
async def remove_product(
    product_id: str,
    admin=Depends(require_admin),
    stores=Depends(get_stores),
):
    if not await stores.products.delete(product_id):
        raise HTTPException(404, "Product not found")

    logger.info("ADMIN_PRODUCT_REMOVED product=%s by=%s", product_id, admin["email"])
    return {"message": "Product removed"}
