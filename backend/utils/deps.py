from fastapi import Header, HTTPException

from database import get_db
from utils.cloudinary import upload_image
from utils.gemini import GeminiAnalyzer
from utils.mongo_stores import mongo_stores

_stores = None
_analyzer = None


def get_stores():
    global _stores
    if _stores is None:
        _stores = mongo_stores(get_db())
    return _stores


def get_analyzer():
    global _analyzer
    if _analyzer is None:
        _analyzer = GeminiAnalyzer()
    return _analyzer


def get_image_uploader():
    return upload_image


def get_client_id(x_client_id: str = Header(..., min_length=8, max_length=128)) -> str:
    client_id = x_client_id.strip()
    if not client_id:
        raise HTTPException(status_code=400, detail="X-Client-Id header required")
    return client_id
