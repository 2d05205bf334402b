import asyncio
import json
import logging
from typing import Optional, Protocol

import google.generativeai as genai
from pydantic import BaseModel, Field, ValidationError

from config.env import GEMINI_API_KEY, GEMINI_MODEL, AI_TIMEOUT_SECONDS
from config.constants import CATEGORIES, FALLBACK_CATEGORY_ID
from models.product import ListingAnalysis
from utils.kyc import IdConfidence

logger = logging.getLogger(__name__)


class AnalyzerError(Exception):
    pass


class ContentAnalyzer(Protocol):
    async def analyze_listing(self, image: bytes, mime_type: str) -> ListingAnalysis: ...
    async def analyze_condition(self, image: bytes, mime_type: str, item_name: str) -> str: ...
    async def verify_id_document(self, image: bytes, mime_type: str) -> IdConfidence: ...
    async def verify_live_id_photo(self, image: bytes, mime_type: str) -> bool: ...
    async def search_query_from_image(self, image: bytes, mime_type: str) -> str: ...
    async def estimate_value(self, name: str, description: str) -> int: ...
    async def suggest_commission_percent(self, name: str, category: str, value: int) -> int: ...


# =========================
# RESPONSE CONTRACTS
# =========================

class _ConditionReport(BaseModel):
    report: str = Field(..., min_length=1)


class _IdCheck(BaseModel):
    confidence: IdConfidence


class _LiveIdCheck(BaseModel):
    is_clear_physical_id: bool


class _SearchQuery(BaseModel):
    query: str = Field(..., min_length=1)


class _ValueEstimate(BaseModel):
    estimated_value_inr: int = Field(..., ge=0)


class _CommissionSuggestion(BaseModel):
    commission_percent: int


# =========================
# PROMPTS
# =========================

LISTING_PROMPT = """You help lenders list items on Dozo, a rental marketplace in India.
Look at the photo and describe the item as JSON with these keys:
- "name": short marketable item name
- "description": 20-30 words describing the item for renters
- "specs": object with 3-4 key specifications, short capitalised keys
- "quality": "Excellent" if the item looks new or pristine, otherwise "Standard"
- "categoryId": one of [{categories}]
"""

CONDITION_PROMPT = """You are the damage guard for Dozo, a rental marketplace.
Inspect this photo of "{item_name}" for scuffs, scratches, dents or wear.
Return JSON {{"report": "<markdown bullet list of findings>"}}.
If the item shows no visible flaws, say so plainly in the report."""

ID_DOCUMENT_PROMPT = """You verify identity documents for Dozo.
Judge only the physical characteristics of this government ID image: is it a
real card photographed directly, rather than a screenshot or a poor photo?
Never read or repeat personal details.
Return JSON {"confidence": "High" | "Medium" | "Low"}."""

LIVE_ID_PROMPT = """Is this a clear, in-focus photo of a physical ID card, free of glare,
blur and screen reflections? Return JSON {"is_clear_physical_id": true | false}."""

SEARCH_QUERY_PROMPT = """Describe the main object in this photo as a short generic search
phrase such as "modern grey sofa" or "electric hammer drill".
Return JSON {"query": "<phrase>"}."""

VALUE_PROMPT = """You appraise products for an Indian rental marketplace.
Estimate the current market price in INR of a new item like this one.
Item: "{name}"
Description: "{description}"
Return JSON {{"estimated_value_inr": <integer>}}."""

COMMISSION_PROMPT = """You assess risk for Dozo, a rental marketplace, and set the platform
commission for a new listing. Riskier items carry a higher commission:
- high risk (15-18%): expensive, fragile or complex items such as cameras, drones, high-end electronics
- medium risk (12-14%): most furniture, appliances and power tools
- low risk (8-11%): simple durable goods such as camping gear and lifestyle items
Prefer the upper end of the matching bracket.

Item: {name}
Category: {category}
Estimated value: INR {value}

Return JSON {{"commission_percent": <integer between 8 and 18>}}."""


def category_id_or_fallback(category_id: Optional[str]) -> str:
    valid_ids = {c["id"] for c in CATEGORIES}
    return category_id if category_id in valid_ids else FALLBACK_CATEGORY_ID


class GeminiAnalyzer:
    """
    ContentAnalyzer backed by Gemini.

    Every call asks for a JSON response and validates it against a pydantic
    contract; anything else raises AnalyzerError instead of being guessed at.
    """

    def __init__(
        self,
        api_key: Optional[str] = GEMINI_API_KEY,
        model_name: str = GEMINI_MODEL,
        timeout_seconds: float = AI_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self._model = None

    def _get_model(self):
        if self._model is None:
            if not self.api_key:
                raise AnalyzerError("AI functionality is disabled. Configure GEMINI_API_KEY.")
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(
                self.model_name,
                generation_config={"response_mime_type": "application/json"},
            )
        return self._model

    def _generate_sync(self, parts: list) -> str:
        resp = self._get_model().generate_content(parts)
        return (getattr(resp, "text", None) or "").strip()

    async def _generate(self, contract, prompt: str, image: bytes | None = None, mime_type: str = "image/jpeg"):
        parts = [prompt]
        if image is not None:
            parts.insert(0, {"mime_type": mime_type, "data": image})

        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self._generate_sync, parts),
                timeout=self.timeout_seconds,
            )
        except AnalyzerError:
            raise
        except asyncio.TimeoutError:
            logger.warning("AI_TIMEOUT model=%s", self.model_name)
            raise AnalyzerError("The AI service took too long to respond. Please try again.")
        except Exception as e:
            logger.exception("AI_REQUEST_ERROR model=%s", self.model_name)
            raise AnalyzerError("An error occurred during AI processing. Please try again.") from e

        try:
            return contract.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("AI_BAD_RESPONSE model=%s contract=%s", self.model_name, contract.__name__)
            raise AnalyzerError("The AI service returned an unexpected response.") from e

    # -------------------------
    # IMAGE ANALYSIS
    # -------------------------

    async def analyze_listing(self, image: bytes, mime_type: str) -> ListingAnalysis:
        categories = ", ".join(f"'{c['id']}' ({c['name']})" for c in CATEGORIES)
        analysis = await self._generate(
            ListingAnalysis,
            LISTING_PROMPT.format(categories=categories),
            image,
            mime_type,
        )
        analysis.category_id = category_id_or_fallback(analysis.category_id)
        return analysis

    async def analyze_condition(self, image: bytes, mime_type: str, item_name: str) -> str:
        result = await self._generate(
            _ConditionReport,
            CONDITION_PROMPT.format(item_name=item_name),
            image,
            mime_type,
        )
        return result.report

    async def verify_id_document(self, image: bytes, mime_type: str) -> IdConfidence:
        result = await self._generate(_IdCheck, ID_DOCUMENT_PROMPT, image, mime_type)
        return result.confidence

    async def verify_live_id_photo(self, image: bytes, mime_type: str) -> bool:
        result = await self._generate(_LiveIdCheck, LIVE_ID_PROMPT, image, mime_type)
        return result.is_clear_physical_id

    async def search_query_from_image(self, image: bytes, mime_type: str) -> str:
        result = await self._generate(_SearchQuery, SEARCH_QUERY_PROMPT, image, mime_type)
        return result.query.strip()

    # -------------------------
    # TEXT ANALYSIS
    # -------------------------

    async def estimate_value(self, name: str, description: str) -> int:
        result = await self._generate(
            _ValueEstimate,
            VALUE_PROMPT.format(name=name, description=description),
        )
        return result.estimated_value_inr

    async def suggest_commission_percent(self, name: str, category: str, value: int) -> int:
        result = await self._generate(
            _CommissionSuggestion,
            COMMISSION_PROMPT.format(name=name, category=category, value=value),
        )
        return result.commission_percent
