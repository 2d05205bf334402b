from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database import get_db

# ENV
from config.env import ENV, CORS_ALLOWED_ORIGINS, MONGO_URI, validate_production_env

# ROUTES
from routes.auth import router as auth_router
from routes.products import router as products_router
from routes.rentals import router as rentals_router
from routes.kyc import router as kyc_router
from routes.admin import router as admin_router
from routes.lender import router as lender_router

# WORKERS
from utils.deps import get_stores
from utils.indexes import ensure_indexes
from workers.pending_order_expiry_worker import pending_order_expiry_worker

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
logger.info("ENV: %s", ENV)

app = FastAPI(
    title="Dozo API",
    version="1.0.0",
    docs_url=None if ENV == "production" else "/docs",
    redoc_url=None if ENV == "production" else "/redoc",
    openapi_url=None if ENV == "production" else "/openapi.json",
)

# -----------------------------
# CORS
# -----------------------------

allowed_origins = [origin.strip() for origin in CORS_ALLOWED_ORIGINS if origin.strip()]
if not allowed_origins:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# ROUTES
# -----------------------------

app.include_router(auth_router, prefix="/api")
app.include_router(products_router, prefix="/api")
app.include_router(rentals_router, prefix="/api")
app.include_router(kyc_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(lender_router, prefix="/api")

# -----------------------------
# HEALTH CHECKS
# -----------------------------

@app.get("/api/health")
async def health():
    return {"status": "ok"}

@app.get("/api/health/db")
async def health_db():
    db = get_db()
    await db.command("ping")
    return {"status": "mongodb connected"}

# -----------------------------
# STARTUP (ONE PLACE ONLY)
# -----------------------------

@app.on_event("startup")
async def startup():
    validate_production_env()

    if not MONGO_URI:
        logger.warning("MONGO_URI not set; skipping indexes and background workers")
        return

    await ensure_indexes(get_db())
    asyncio.create_task(pending_order_expiry_worker(get_stores()))
