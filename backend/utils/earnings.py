from dataclasses import dataclass
from decimal import Decimal

from config.env import (
    PREMIUM_LENDER_SHARE,
    COMMISSION_MIN_PERCENT,
    COMMISSION_MAX_PERCENT,
    DEFAULT_COMMISSION_PERCENT,
)
from utils.pricing import plan_price


def _dec(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class EarningsSplit:
    total_price: Decimal
    ai_premium: Decimal
    lender_base_earnings: Decimal
    lender_premium_share: Decimal
    lender_earnings: Decimal
    platform_fee: Decimal

    def as_dict(self) -> dict:
        return {
            "total_price": float(self.total_price),
            "ai_premium": float(self.ai_premium),
            "lender_base_earnings": float(self.lender_base_earnings),
            "lender_premium_share": float(self.lender_premium_share),
            "lender_earnings": float(self.lender_earnings),
            "platform_fee": float(self.platform_fee),
        }


def split_earnings(
    base_price,
    display_price,
    commission_rate,
    premium_lender_share=PREMIUM_LENDER_SHARE,
) -> EarningsSplit:
    """
    Commission is charged on the lender's asking price only.
    The AI premium is shared between lender and platform, commission free.
    The platform keeps whatever the lender does not, so fee + earnings is
    always exactly the total.
    """
    base = _dec(base_price)
    display = _dec(display_price)
    rate = _dec(commission_rate)
    share = _dec(premium_lender_share)

    if display < base:
        raise ValueError("Display price cannot be below the lender price")
    if not Decimal("0") <= rate < Decimal("1"):
        raise ValueError("Commission rate must be a fraction between 0 and 1")

    ai_premium = display - base
    lender_base_earnings = base * (1 - rate)
    lender_premium_share = ai_premium * share
    lender_earnings = lender_base_earnings + lender_premium_share

    return EarningsSplit(
        total_price=display,
        ai_premium=ai_premium,
        lender_base_earnings=lender_base_earnings,
        lender_premium_share=lender_premium_share,
        lender_earnings=lender_earnings,
        platform_fee=display - lender_earnings,
    )


def split_for_plan(product: dict, plan: str, **kwargs) -> EarningsSplit:
    return split_earnings(
        plan_price(product["lender_pricing"], plan),
        plan_price(product["display_pricing"], plan),
        product["commission_rate"],
        **kwargs,
    )


def commission_rate_from_percent(
    percent,
    min_percent=COMMISSION_MIN_PERCENT,
    max_percent=COMMISSION_MAX_PERCENT,
    default_percent=DEFAULT_COMMISSION_PERCENT,
) -> float:
    # suggestions outside the allowed band fall back to the default rate
    if percent is None or not min_percent <= percent <= max_percent:
        percent = default_percent
    return float(_dec(percent) / 100)
