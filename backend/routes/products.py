import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from config.constants import CATEGORIES, SORT_OPTIONS
from models.product import ProductCreate, ReviewCreate
from utils.deps import get_analyzer, get_image_uploader, get_stores
from utils.gemini import AnalyzerError
from utils.images import read_image, store_image
from utils.listings import (
    can_manage,
    create_listing,
    filter_products,
    serialize_product,
    update_listing,
)
from utils.security import get_current_user, get_optional_user

router = APIRouter(prefix="/products", tags=["Products"])

logger = logging.getLogger(__name__)


async def _product_or_404(stores, product_id: str) -> dict:
    product = await stores.products.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# =========================
# BROWSE
# =========================

@router.get("")
async def list_products(
    category: Optional[str] = None,
    q: Optional[str] = Query(None, description="Search query"),
    rental_type: Optional[str] = Query(None, pattern="^(all|daily|monthly)$"),
    price_range: Optional[str] = Query(None, description="e.g. 0-500 or 2000-Infinity"),
    sort: str = "relevance",
    stores=Depends(get_stores),
):
    if sort not in SORT_OPTIONS:
        raise HTTPException(400, f"sort must be one of {', '.join(SORT_OPTIONS)}")

    products = await stores.products.list_products()
    try:
        items = filter_products(
            products,
            category=category,
            q=q,
            rental_type=rental_type,
            price_range=price_range,
            sort=sort,
        )
    except ValueError:
        raise HTTPException(400, "Invalid price range")

    return {
        "count": len(items),
        "items": [serialize_product(p) for p in items],
    }


@router.get("/categories")
async def list_categories():
    return CATEGORIES


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    user=Depends(get_optional_user),
    stores=Depends(get_stores),
):
    product = await _product_or_404(stores, product_id)
    # lenders and admins also see the rates the lender asked for
    return serialize_product(product, include_lender_pricing=bool(user) and can_manage(product, user))


# =========================
# AI ASSISTED LISTING
# =========================

@router.post("/analyze")
async def analyze_listing_photo(
    file: UploadFile = File(...),
    user=Depends(get_current_user),
    analyzer=Depends(get_analyzer),
):
    image, mime_type = await read_image(file)
    try:
        analysis = await analyzer.analyze_listing(image, mime_type)
    except AnalyzerError as e:
        raise HTTPException(502, str(e))

    return analysis.model_dump()


@router.post("/search-by-image")
async def search_by_image(
    file: UploadFile = File(...),
    analyzer=Depends(get_analyzer),
    stores=Depends(get_stores),
):
    image, mime_type = await read_image(file)
    try:
        query = await analyzer.search_query_from_image(image, mime_type)
    except AnalyzerError as e:
        raise HTTPException(502, str(e))

    items = filter_products(await stores.products.list_products(), q=query)
    return {
        "query": query,
        "count": len(items),
        "items": [serialize_product(p) for p in items],
    }


@router.post("/images", status_code=status.HTTP_201_CREATED)
async def upload_product_image(
    file: UploadFile = File(...),
    user=Depends(get_current_user),
    uploader=Depends(get_image_uploader),
):
    image, _ = await read_image(file)
    url = await store_image(uploader, image, "dozo/products")
    return {"url": url}


# =========================
# LENDER CRUD
# =========================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    analyzer=Depends(get_analyzer),
):
    try:
        product = await create_listing(stores, analyzer, data, user)
    except AnalyzerError as e:
        raise HTTPException(502, f"Could not price this listing: {e}")

    return serialize_product(product, include_lender_pricing=True)


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    data: ProductCreate,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
    analyzer=Depends(get_analyzer),
):
    product = await _product_or_404(stores, product_id)
    if not can_manage(product, user):
        raise HTTPException(403, "You can only edit your own listings")

    try:
        product = await update_listing(stores, analyzer, product, data)
    except AnalyzerError as e:
        raise HTTPException(502, f"Could not price this listing: {e}")

    return serialize_product(product, include_lender_pricing=True)


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    product = await _product_or_404(stores, product_id)
    if not can_manage(product, user):
        raise HTTPException(403, "You can only delete your own listings")

    await stores.products.delete(product_id)
    logger.info("LISTING_DELETED product=%s by=%s", product_id, user["email"])
    return {"message": "Product deleted"}


# =========================
# REVIEWS
# =========================

@router.get("/{product_id}/reviews")
async def list_reviews(product_id: str, stores=Depends(get_stores)):
    product = await _product_or_404(stores, product_id)
    reviews = sorted(product.get("reviews") or [], key=lambda r: r["created_at"], reverse=True)
    return reviews


@router.post("/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
async def add_review(
    product_id: str,
    data: ReviewCreate,
    user=Depends(get_current_user),
    stores=Depends(get_stores),
):
    product = await _product_or_404(stores, product_id)
    if product.get("lender_email") == user["email"]:
        raise HTTPException(400, "You cannot review your own listing")

    review = {
        "id": f"r{uuid4().hex[:12]}",
        "user_email": user["email"],
        "user_name": user.get("name"),
        "rating": data.rating,
        "comment": data.comment.strip(),
        "created_at": datetime.utcnow(),
    }
    await stores.products.add_review(product_id, review)
    return review
