from fastapi import APIRouter, Depends

from utils.deps import get_stores
from utils.listings import serialize_product
from utils.orders import count_active, serialize_order, total_lender_earnings
from utils.security import get_current_user

router = APIRouter(prefix="/lender", tags=["Lender"])


async def _my_orders(stores, user: dict) -> tuple[list[dict], list[dict]]:
    products = await stores.products.list_by_lender(user["email"])
    # orders carry the lender, so they outlive a deleted listing
    orders = await stores.orders.list_by_lender(user["email"])
    orders.sort(key=lambda o: o["created_at"], reverse=True)
    return products, orders


# ----------------------------------------
# LENDER DASHBOARD
# ----------------------------------------

@router.get("/dashboard")
async def lender_dashboard(user=Depends(get_current_user), stores=Depends(get_stores)):
    products, orders = await _my_orders(stores, user)
    return {
        "total_earnings": total_lender_earnings(orders),
        "active_rentals": count_active(orders),
        "listing_count": len(products),
        "recent_orders": [serialize_order(o) for o in orders[:5]],
    }


@router.get("/products")
async def my_products(user=Depends(get_current_user), stores=Depends(get_stores)):
    products = await stores.products.list_by_lender(user["email"])
    return {
        "count": len(products),
        "products": [serialize_product(p, include_lender_pricing=True) for p in products],
    }


@router.get("/orders")
async def my_orders(user=Depends(get_current_user), stores=Depends(get_stores)):
    _, orders = await _my_orders(stores, user)
    return {
        "count": len(orders),
        "orders": [serialize_order(o) for o in orders],
    }
