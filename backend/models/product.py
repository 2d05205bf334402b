from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Dict, List, Literal, Optional
from datetime import datetime

from config.constants import RENTAL_TYPE_DAILY, RENTAL_TYPE_MONTHLY


class MonthlyPricing(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    three: float = Field(..., gt=0, alias="3")
    six: float = Field(..., gt=0, alias="6")
    twelve: float = Field(..., gt=0, alias="12")


class Pricing(BaseModel):
    daily: Optional[float] = Field(None, gt=0)
    monthly: Optional[MonthlyPricing] = None

    @model_validator(mode="after")
    def require_some_rate(self):
        if self.daily is None and self.monthly is None:
            raise ValueError("Pricing needs a daily rate or monthly tenor rates")
        return self

    def to_doc(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category_id: str
    image_urls: List[str] = []
    rental_type: Literal["daily", "monthly"]
    specs: Dict[str, str] = {}
    lender_pricing: Pricing
    ai_assessed_quality: Literal["Standard", "Excellent"] = "Standard"

    @model_validator(mode="after")
    def pricing_matches_rental_type(self):
        if self.rental_type == RENTAL_TYPE_DAILY and self.lender_pricing.daily is None:
            raise ValueError("Daily listings need a daily rate")
        if self.rental_type == RENTAL_TYPE_MONTHLY and self.lender_pricing.monthly is None:
            raise ValueError("Monthly listings need 3, 6 and 12 month rates")
        return self


class ListingAnalysis(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    specs: Dict[str, str] = {}
    quality: Literal["Standard", "Excellent"]
    category_id: str = Field(..., alias="categoryId")

    model_config = ConfigDict(populate_by_name=True)


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class ProductInDB(BaseModel):
    id: str
    name: str
    description: str
    category_id: str
    image_urls: List[str]
    rental_type: str
    specs: Dict[str, str]

    lender_pricing: dict
    display_pricing: dict
    ai_assessed_quality: str

    commission_rate: float
    estimated_value: int
    lender_email: str
    reviews: List[dict] = []

    created_at: datetime
    updated_at: datetime
