import asyncio
import logging

from fastapi import HTTPException, UploadFile, status

from utils.cloudinary import ImageUploadError

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 8 * 1024 * 1024


async def read_image(file: UploadFile) -> tuple[bytes, str]:
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are allowed",
        )

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Image file is empty")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image is larger than 8 MB")

    return data, file.content_type


async def store_image(uploader, data: bytes, folder: str) -> str:
    try:
        return await asyncio.to_thread(uploader, data, folder)
    except ImageUploadError:
        raise HTTPException(status_code=502, detail="Image upload failed. Please try again.")
    except Exception:
        logger.exception("IMAGE_UPLOAD_ERROR folder=%s", folder)
        raise HTTPException(status_code=502, detail="Image upload failed. Please try again.")
