import copy
from decimal import Decimal, ROUND_HALF_UP

from config.constants import QUALITY_EXCELLENT, PLAN_DAILY, MONTHLY_TENORS
from config.env import AI_PREMIUM_PERCENT


def round_currency(value) -> int:
    """
    Round to the nearest whole currency unit, halves going up.
    Python's round() uses banker's rounding, which would price 2.5 as 2.
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_pricing(pricing: dict) -> None:
    if not pricing or (pricing.get("daily") is None and not pricing.get("monthly")):
        raise ValueError("Pricing needs a daily rate or monthly tenor rates")


def compute_display_pricing(
    lender_pricing: dict,
    quality: str,
    premium_percent: float = AI_PREMIUM_PERCENT,
) -> dict:
    """
    Derive renter-facing pricing from the lender's asking price.

    Excellent items get the AI premium on every populated field
    (daily and each monthly tenor), each rounded on its own.
    Standard items are shown at the lender's price.
    """
    validate_pricing(lender_pricing)

    display = copy.deepcopy(lender_pricing)
    if quality != QUALITY_EXCELLENT:
        return display

    factor = 1 + Decimal(str(premium_percent)) / 100

    if display.get("daily") is not None:
        display["daily"] = round_currency(Decimal(str(display["daily"])) * factor)

    monthly = display.get("monthly")
    if monthly:
        for tenor in MONTHLY_TENORS:
            if monthly.get(tenor) is not None:
                monthly[tenor] = round_currency(Decimal(str(monthly[tenor])) * factor)

    return display


def plan_price(pricing: dict, plan: str):
    if plan == PLAN_DAILY:
        price = pricing.get("daily")
    elif plan in MONTHLY_TENORS:
        price = (pricing.get("monthly") or {}).get(plan)
    else:
        raise ValueError(f"Unknown plan: {plan}")

    if price is None:
        raise ValueError(f"Plan '{plan}' is not offered for this listing")
    return price


def available_plans(pricing: dict) -> list[str]:
    plans = []
    if pricing.get("daily") is not None:
        plans.append(PLAN_DAILY)
    monthly = pricing.get("monthly") or {}
    plans.extend(t for t in MONTHLY_TENORS if monthly.get(t) is not None)
    return plans


def headline_price(pricing: dict):
    # daily rate, else the 12 month rate
    if pricing.get("daily"):
        return pricing["daily"]
    return (pricing.get("monthly") or {}).get("12") or 0
