import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from config.constants import CATEGORIES
from models.product import ProductCreate, ProductInDB
from utils.earnings import commission_rate_from_percent
from utils.gemini import AnalyzerError
from utils.pricing import available_plans, compute_display_pricing, headline_price

logger = logging.getLogger(__name__)


def category_name(category_id: str) -> str:
    return next((c["name"] for c in CATEGORIES if c["id"] == category_id), "General")


def average_rating(product: dict) -> float:
    reviews = product.get("reviews") or []
    if not reviews:
        return 0
    return sum(r["rating"] for r in reviews) / len(reviews)


def _listing_fields(data: ProductCreate) -> dict:
    lender_pricing = data.lender_pricing.to_doc()
    return {
        "name": data.name,
        "description": data.description,
        "category_id": data.category_id,
        "image_urls": data.image_urls,
        "rental_type": data.rental_type,
        "specs": {k: v for k, v in data.specs.items() if k and v},
        "lender_pricing": lender_pricing,
        "display_pricing": compute_display_pricing(lender_pricing, data.ai_assessed_quality),
        "ai_assessed_quality": data.ai_assessed_quality,
    }


async def create_listing(stores, analyzer, data: ProductCreate, lender: dict) -> dict:
    """
    Price and enrich a new listing, then persist it.

    Value estimation and the commission suggestion both have to succeed;
    an AnalyzerError from either propagates before anything is written.
    """
    fields = _listing_fields(data)

    try:
        estimated_value = await analyzer.estimate_value(data.name, data.description)
        percent = await analyzer.suggest_commission_percent(
            data.name,
            category_name(data.category_id),
            estimated_value,
        )
    except AnalyzerError:
        logger.warning("LISTING_ENRICHMENT_FAILED lender=%s name=%s", lender["email"], data.name)
        raise

    now = datetime.utcnow()
    product = {
        "id": f"p{uuid4().hex[:12]}",
        **fields,
        "estimated_value": estimated_value,
        "commission_rate": commission_rate_from_percent(percent),
        "lender_email": lender["email"],
        "reviews": [],
        "created_at": now,
        "updated_at": now,
    }

    await stores.products.insert(ProductInDB.model_validate(product).model_dump())
    logger.info("LISTING_CREATED product=%s lender=%s", product["id"], lender["email"])
    return product


async def update_listing(stores, analyzer, product: dict, data: ProductCreate) -> dict:
    fields = _listing_fields(data)
    fields["estimated_value"] = await analyzer.estimate_value(data.name, data.description)
    fields["updated_at"] = datetime.utcnow()

    # commission_rate is fixed when the item is first listed
    await stores.products.update(product["id"], fields)
    return {**product, **fields}


def can_manage(product: dict, user: dict) -> bool:
    return bool(user.get("is_admin")) or product.get("lender_email") == user["email"]


def parse_price_range(price_range: str) -> tuple[float, Optional[float]]:
    low, _, high = price_range.partition("-")
    minimum = float(low)
    maximum = None if high in ("", "Infinity") else float(high)
    return minimum, maximum


def filter_products(
    products: list[dict],
    *,
    category: Optional[str] = None,
    q: Optional[str] = None,
    rental_type: Optional[str] = None,
    price_range: Optional[str] = None,
    sort: str = "relevance",
) -> list[dict]:
    items = list(products)

    if category:
        items = [p for p in items if p.get("category_id") == category]

    if q and q.strip():
        needle = q.strip().lower()
        items = [
            p for p in items
            if needle in p.get("name", "").lower() or needle in p.get("description", "").lower()
        ]

    if rental_type and rental_type != "all":
        items = [p for p in items if p.get("rental_type") == rental_type]

    if price_range and price_range != "all":
        minimum, maximum = parse_price_range(price_range)
        items = [
            p for p in items
            if headline_price(p["display_pricing"]) >= minimum
            and (maximum is None or headline_price(p["display_pricing"]) <= maximum)
        ]

    if sort == "price-asc":
        items.sort(key=lambda p: headline_price(p["display_pricing"]))
    elif sort == "price-desc":
        items.sort(key=lambda p: headline_price(p["display_pricing"]), reverse=True)
    elif sort == "rating-desc":
        items.sort(key=average_rating, reverse=True)

    return items


def serialize_product(product: dict, include_lender_pricing: bool = False) -> dict:
    data = {
        "id": product["id"],
        "name": product["name"],
        "description": product["description"],
        "category_id": product["category_id"],
        "image_urls": product.get("image_urls", []),
        "rental_type": product["rental_type"],
        "specs": product.get("specs", {}),
        "display_pricing": product["display_pricing"],
        "plans": available_plans(product["display_pricing"]),
        "ai_assessed_quality": product["ai_assessed_quality"],
        "average_rating": average_rating(product),
        "review_count": len(product.get("reviews") or []),
    }

    if include_lender_pricing:
        data.update({
            "lender_pricing": product["lender_pricing"],
            "commission_rate": product["commission_rate"],
            "estimated_value": product.get("estimated_value"),
            "lender_email": product.get("lender_email"),
        })

    return data
