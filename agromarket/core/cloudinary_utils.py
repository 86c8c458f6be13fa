import cloudinary
import cloudinary.uploader
import re
import logging
from typing import Optional
from starlette.concurrency import run_in_threadpool
from . import config

logger = logging.getLogger(__name__)

CLOUDINARY_URL_PREFIX = "https://res.cloudinary.com/"
IMAGE_UPLOAD_SEGMENT = "/image/upload/"


def get_cloudinary_config():
    """Configure the Cloudinary SDK from the environment and return its config."""
    cloudinary.config(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        secure=True
    )
    return cloudinary.config()


def validate_cloudinary_url(url: str) -> bool:
    """An avatar must be an image hosted on our Cloudinary delivery domain."""
    return url.startswith(CLOUDINARY_URL_PREFIX) and IMAGE_UPLOAD_SEGMENT in url


async def upload_image(content: bytes, filename: str, content_type: Optional[str], folder: Optional[str] = None) -> dict:
    """
    Upload an image to Cloudinary

    Args:
        content: Raw file bytes
        filename: Original file name, used for the public id
        content_type: MIME type reported by the client
        folder: Destination folder

    Returns:
        dict: public_id, secure_url, format, width, height, bytes

    Raises:
        ValueError: If the file is not an image or the upload fails
    """
    if not content_type or not content_type.startswith('image/'):
        raise ValueError("Only image files are accepted (image/*)")

    safe_filename = re.sub(r'[^\w\-\.]', '-', filename or "avatar")
    public_id = safe_filename.rsplit('.', 1)[0]
    get_cloudinary_config()

    try:
        logger.info(f"Uploading image to Cloudinary: {safe_filename} to folder {folder}")
        upload_result = await run_in_threadpool(
            cloudinary.uploader.upload,
            content,
            folder=folder,
            public_id=public_id,
            overwrite=True,
            resource_type="image",
            unique_filename=True,
        )
    except Exception as e:
        logger.error(f"Error uploading to Cloudinary: {str(e)}")
        raise ValueError(f"Upload to Cloudinary failed: {str(e)}")

    logger.info(f"Upload successful: {upload_result.get('public_id', 'unknown')}")
    return {
        "public_id": upload_result["public_id"],
        "secure_url": upload_result["secure_url"],
        "format": upload_result.get("format"),
        "width": upload_result.get("width"),
        "height": upload_result.get("height"),
        "bytes": upload_result.get("bytes"),
    }


async def delete_image(public_id: str) -> dict:
    get_cloudinary_config()
    result = await run_in_threadpool(cloudinary.uploader.destroy, public_id)
    return {
        "public_id": public_id,
        "result": result.get("result", "unknown"),
        "status": "success" if result.get("result") == "ok" else "error"
    }


def extract_public_id_from_url(url: str) -> Optional[str]:
    # https://res.cloudinary.com/{cloud_name}/image/upload/v{version}/{folder}/{public_id}.{format}
    if not url or "cloudinary.com" not in url:
        return None

    match = re.search(r'upload/(?:v\d+/)?(.+?)(?:\.[a-zA-Z0-9]+)?$', url)
    if match:
        return match.group(1)

    return None
