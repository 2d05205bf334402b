import asyncio
import os

# settings are read once at import time
os.environ["ENV"] = "test"
os.environ["MONGO_URI"] = ""
os.environ["MONGODB_URI"] = ""
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["ADMIN_EMAIL"] = "owner@gmail.com"
os.environ["ADMIN_PASSWORD"] = "owner-pass-123"
os.environ["GEMINI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from main import app
from models.product import ListingAnalysis
from utils.auth_service import new_user_doc
from utils.deps import get_analyzer, get_image_uploader, get_stores
from utils.gemini import AnalyzerError
from utils.kyc import IdConfidence
from utils.pricing import compute_display_pricing
from utils.rate_limiter import reset_rate_limits
from utils.stores import in_memory_stores

PASSWORD = "s3cret-pass"
CLIENT_ID = "client-0001"


class FakeAnalyzer:
    """Canned ContentAnalyzer. Put a method name in `failing` to make it raise."""

    def __init__(self):
        self.listing = ListingAnalysis(
            name="Sony Alpha Camera",
            description="Mirrorless camera with a 24mm lens, great for travel and events.",
            specs={"Sensor": "24MP", "Lens": "24mm"},
            quality="Excellent",
            category_id="electronics",
        )
        self.condition_report = "- Light scuff on the lens cap\n- Body in good shape"
        self.id_confidence = IdConfidence.HIGH
        self.live_id_valid = True
        self.search_query = "camera"
        self.value = 45000
        self.commission_percent = 17
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def _call(self, name: str):
        self.calls.append(name)
        if name in self.failing:
            raise AnalyzerError(f"{name} failed")

    async def analyze_listing(self, image, mime_type):
        self._call("analyze_listing")
        return self.listing

    async def analyze_condition(self, image, mime_type, item_name):
        self._call("analyze_condition")
        return self.condition_report

    async def verify_id_document(self, image, mime_type):
        self._call("verify_id_document")
        return self.id_confidence

    async def verify_live_id_photo(self, image, mime_type):
        self._call("verify_live_id_photo")
        return self.live_id_valid

    async def search_query_from_image(self, image, mime_type):
        self._call("search_query_from_image")
        return self.search_query

    async def estimate_value(self, name, description):
        self._call("estimate_value")
        return self.value

    async def suggest_commission_percent(self, name, category, value):
        self._call("suggest_commission_percent")
        return self.commission_percent


class FakeUploader:
    def __init__(self):
        self.uploads: list[str] = []

    def __call__(self, data: bytes, folder: str) -> str:
        url = f"https://res.cloudinary.com/dozo/{folder}/{len(self.uploads)}.jpg"
        self.uploads.append(url)
        return url


def make_user(email, password=PASSWORD, verified=True, kyc=False, admin=False) -> dict:
    user = new_user_doc(email, password, email_verified=verified, kyc_verified=kyc, is_admin=admin)
    if kyc:
        user["kyc"] = {"step": "verified"}
    return user


def make_product(
    product_id="p1",
    lender_email="lender@gmail.com",
    lender_pricing=None,
    quality="Excellent",
    commission_rate=0.15,
    rental_type="daily",
    category_id="electronics",
    name="Sony Alpha Camera",
) -> dict:
    lender_pricing = lender_pricing or {"daily": 2500}
    return {
        "id": product_id,
        "name": name,
        "description": "Mirrorless camera kit",
        "category_id": category_id,
        "image_urls": [],
        "rental_type": rental_type,
        "specs": {},
        "lender_pricing": lender_pricing,
        "display_pricing": compute_display_pricing(lender_pricing, quality),
        "ai_assessed_quality": quality,
        "commission_rate": commission_rate,
        "estimated_value": 40000,
        "lender_email": lender_email,
        "reviews": [],
    }


def run(coro):
    return asyncio.run(coro)


IMAGE = ("photo.jpg", b"\xff\xd8\xff\xe0fake-jpeg-bytes", "image/jpeg")


@pytest.fixture
def stores():
    return in_memory_stores(
        products=[make_product()],
        users=[
            make_user("renter@gmail.com"),
            make_user("verified@gmail.com", kyc=True),
            make_user("lender@gmail.com", kyc=True),
            make_user("staff@gmail.com", kyc=False, admin=True),
        ],
    )


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def client(stores, analyzer, uploader):
    reset_rate_limits()
    app.dependency_overrides[get_stores] = lambda: stores
    app.dependency_overrides[get_analyzer] = lambda: analyzer
    app.dependency_overrides[get_image_uploader] = lambda: uploader
    yield TestClient(app)
    app.dependency_overrides.clear()


def login(client, email, password=PASSWORD, client_id=None):
    headers = {"X-Client-Id": client_id} if client_id else {}
    return client.post("/api/auth/login", json={"email": email, "password": password}, headers=headers)


def auth_headers(client, email, password=PASSWORD, client_id=CLIENT_ID) -> dict:
    resp = login(client, email, password, client_id)
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}", "X-Client-Id": client_id}
