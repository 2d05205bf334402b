import cloudinary
import cloudinary.uploader

from config.env import (
    CLOUDINARY_CLOUD_NAME,
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
)

cloudinary.config(
    cloud_name=CLOUDINARY_CLOUD_NAME,
    api_key=CLOUDINARY_API_KEY,
    api_secret=CLOUDINARY_API_SECRET,
    secure=True,
)


class ImageUploadError(Exception):
    pass


def upload_image(data: bytes, folder: str) -> str:
    result = cloudinary.uploader.upload(
        data,
        folder=folder,
        resource_type="image",
    )
    url = result.get("secure_url")
    if not url:
        raise ImageUploadError("Image upload failed")
    return url
