# backend/config/constants.py

# -----------------------------
# CATEGORIES
# -----------------------------

CATEGORIES = [
    {"id": "electronics", "name": "Electronics"},
    {"id": "furniture", "name": "Furniture"},
    {"id": "appliances", "name": "Appliances"},
    {"id": "tools", "name": "Tools & Equipment"},
    {"id": "outdoor", "name": "Outdoor & Camping"},
    {"id": "lifestyle", "name": "Lifestyle"},
]

FALLBACK_CATEGORY_ID = "lifestyle"

# -----------------------------
# PRODUCT QUALITY / RENTAL TYPES
# -----------------------------

QUALITY_STANDARD = "Standard"
QUALITY_EXCELLENT = "Excellent"

RENTAL_TYPE_DAILY = "daily"
RENTAL_TYPE_MONTHLY = "monthly"

PLAN_DAILY = "daily"
MONTHLY_TENORS = ("3", "6", "12")

DAYS_PER_MONTH = 30

# -----------------------------
# ORDERS
# -----------------------------

ORDER_PENDING = "pending"
ORDER_ACTIVE = "active"
ORDER_COMPLETED = "completed"
ORDER_REJECTED = "rejected"

# allowed next statuses per current status
ORDER_TRANSITIONS = {
    ORDER_PENDING: {ORDER_ACTIVE, ORDER_REJECTED},
    ORDER_ACTIVE: {ORDER_COMPLETED},
    ORDER_COMPLETED: set(),
    ORDER_REJECTED: set(),
}

ORDER_ID_PREFIX = "DOZO-"

# -----------------------------
# LISTING BROWSE
# -----------------------------

SORT_OPTIONS = {"relevance", "price-asc", "price-desc", "rating-desc"}
