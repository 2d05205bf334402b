import os
from dotenv import load_dotenv

load_dotenv()

# =====================================================
# ENV
# =====================================================
ENV = os.getenv("ENV", "development")

# =====================================================
# DATABASE
# =====================================================
MONGO_URI = os.getenv("MONGO_URI") or os.getenv("MONGODB_URI")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "dozo")

# =====================================================
# JWT / SESSIONS
# =====================================================
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_DAYS = int(os.getenv("ACCESS_TOKEN_DAYS", 30))

MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", 3))

LOGIN_MAX_ATTEMPTS = int(os.getenv("LOGIN_MAX_ATTEMPTS", 10))
LOGIN_WINDOW_SECONDS = int(os.getenv("LOGIN_WINDOW_SECONDS", 300))

# =====================================================
# ADMIN
# =====================================================
ADMIN_EMAIL = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Dozo Admin")

# =====================================================
# PRICING / COMMISSION
# =====================================================
AI_PREMIUM_PERCENT = float(os.getenv("AI_PREMIUM_PERCENT", 10))
PREMIUM_LENDER_SHARE = float(os.getenv("PREMIUM_LENDER_SHARE", 0.5))

COMMISSION_MIN_PERCENT = int(os.getenv("COMMISSION_MIN_PERCENT", 8))
COMMISSION_MAX_PERCENT = int(os.getenv("COMMISSION_MAX_PERCENT", 18))
DEFAULT_COMMISSION_PERCENT = int(os.getenv("DEFAULT_COMMISSION_PERCENT", 15))

# =====================================================
# ORDERS
# =====================================================
PENDING_ORDER_TTL_HOURS = int(os.getenv("PENDING_ORDER_TTL_HOURS", 72))

# =====================================================
# GENERATIVE AI
# =====================================================
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", 45))

# =====================================================
# CORS
# =====================================================
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")

# --------------------------------------------------
# CLOUDINARY
# --------------------------------------------------

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

# --------------------------------------------------
# DATA ENCRYPTION
# --------------------------------------------------
KYC_DATA_ENCRYPTION_KEY = os.getenv("KYC_DATA_ENCRYPTION_KEY")


def validate_production_env() -> None:
    if (ENV or "").lower() != "production":
        return

    required = {
        "JWT_SECRET": JWT_SECRET,
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "GEMINI_API_KEY": GEMINI_API_KEY,
        "CLOUDINARY_CLOUD_NAME": CLOUDINARY_CLOUD_NAME,
        "CLOUDINARY_API_KEY": CLOUDINARY_API_KEY,
        "CLOUDINARY_API_SECRET": CLOUDINARY_API_SECRET,
        "KYC_DATA_ENCRYPTION_KEY": KYC_DATA_ENCRYPTION_KEY,
        "MONGODB_URI": MONGO_URI,
    }

    invalid = []
    for key, value in required.items():
        val = (value or "").strip()
        if not val or val.startswith("CHANGE_THIS"):
            invalid.append(key)

    if invalid:
        raise RuntimeError(f"Production env misconfigured. Invalid keys: {', '.join(sorted(invalid))}")
