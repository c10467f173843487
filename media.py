"""
Media hosting

Uploaded files are spooled to a local directory, pushed to Cloudinary and then
removed locally. Only the hosted URL and the derived duration are kept.
"""

import logging
import os
import shutil
from typing import Optional

import cloudinary
import cloudinary.uploader
from bson import ObjectId
from fastapi import UploadFile
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Temporary storage for uploads on their way to the media host
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")


class UploadResult(BaseModel):
    secure_url: str
    duration: Optional[float] = None


def configure_cloudinary() -> None:
    # Without explicit credentials the SDK falls back to CLOUDINARY_URL
    if not cloudinary_configured():
        return
    cloudinary.config(
        cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
        api_key=os.getenv("CLOUDINARY_API_KEY"),
        api_secret=os.getenv("CLOUDINARY_API_SECRET"),
        secure=True,
    )


def cloudinary_configured() -> bool:
    return all(
        os.getenv(name)
        for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET")
    )


def has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def save_upload(upload: Optional[UploadFile], upload_dir: Optional[str] = None) -> Optional[str]:
    """Write a multipart upload to disk and return its local path."""
    if not has_file(upload):
        return None

    directory = upload_dir or UPLOAD_DIR
    os.makedirs(directory, exist_ok=True)

    # Create a safe filename
    safe_name = f"{ObjectId()}{os.path.splitext(upload.filename)[1]}"
    destination = os.path.join(directory, safe_name)

    with open(destination, "wb") as f:
        shutil.copyfileobj(upload.file, f)
    return destination


def remove_local_file(local_path: str) -> None:
    try:
        os.remove(local_path)
    except FileNotFoundError:
        pass


class MediaUploader:
    """Pushes local files to Cloudinary."""

    def __init__(self, resource_type: str = "auto"):
        self.resource_type = resource_type

    def upload(self, local_path: Optional[str]) -> Optional[UploadResult]:
        """
        Upload a local file and return its hosted URL and duration.

        Returns None when there is nothing to upload or the host rejects the
        file. The local copy is removed either way.
        """
        if not local_path:
            return None

        try:
            response = cloudinary.uploader.upload(local_path, resource_type=self.resource_type)
        except Exception:
            logger.exception("Upload of %s to media host failed", local_path)
            return None
        finally:
            remove_local_file(local_path)

        secure_url = response.get("secure_url")
        if not secure_url:
            logger.error("Media host returned no URL for %s", local_path)
            return None

        logger.info("Uploaded %s to %s", local_path, secure_url)
        return UploadResult(secure_url=secure_url, duration=response.get("duration"))
