"""Photo upload validation and storage.

Photos go to Cloudinary when ``CLOUDINARY_URL`` is configured and to
the local ``UPLOAD_DIR`` otherwise. Every file is validated before any
of them is stored, so a rejected upload leaves nothing behind; photos of
a request that fails after storing them are removed with
:func:`discard_photos`.
"""

import logging
import os
import time
import uuid

import cloudinary
import cloudinary.uploader
from fastapi import UploadFile

from . import errors
from .core import get_settings

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads"

settings = get_settings()

if settings.CLOUDINARY_URL:
    cloudinary.config(cloudinary_url=settings.CLOUDINARY_URL)


def _file_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    return size


def validate_photos(files: list[UploadFile], required: bool = True) -> None:
    """
    Check an upload batch against the photo limits.

    Args:
        files (list[UploadFile]): Uploaded files.
        required (bool): Whether at least one photo must be present.

    Raises:
        ValidationError: If the batch is empty when required, too large,
            or contains a non-image or oversized file.
    """
    settings = get_settings()
    if required and not files:
        raise errors.ValidationError("At least one photo is required")
    if len(files) > settings.MAX_PHOTOS:
        raise errors.ValidationError(
            f"At most {settings.MAX_PHOTOS} photos can be uploaded at once"
        )
    for file in files:
        if not (file.content_type or "").startswith("image/"):
            raise errors.ValidationError(
                f"Only image files are allowed ({file.filename})"
            )
        if _file_size(file) > settings.MAX_PHOTO_BYTES:
            raise errors.ValidationError(f"Photo {file.filename} is too large")


def _store_locally(file: UploadFile) -> str:
    settings = get_settings()
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    original = os.path.basename(file.filename or "photo")
    filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{original}"
    with open(os.path.join(settings.UPLOAD_DIR, filename), "wb") as target:
        target.write(file.file.read())
    return f"{UPLOAD_URL_PREFIX}/{filename}"


def _store_remotely(file: UploadFile) -> str:
    upload_result = cloudinary.uploader.upload(file.file, folder="strayhome_animals")
    url = upload_result.get("secure_url")
    if not url:
        raise errors.ValidationError(f"Failed to upload photo {file.filename}")
    return url


def _cloudinary_public_id(url: str) -> str:
    # .../upload/v1712/strayhome_animals/abc.jpg -> strayhome_animals/abc
    path = url.split("/upload/", 1)[-1]
    head, _, rest = path.partition("/")
    if head.startswith("v") and head[1:].isdigit():
        path = rest
    return os.path.splitext(path)[0]


def discard_photos(references: list[str]) -> None:
    """
    Remove photos stored by :func:`store_photos` for a request that failed.

    Removal errors are logged; the original failure is what the caller
    reports.
    """
    settings = get_settings()
    for reference in references:
        try:
            if reference.startswith(f"{UPLOAD_URL_PREFIX}/"):
                name = reference[len(UPLOAD_URL_PREFIX) + 1 :]
                os.remove(os.path.join(settings.UPLOAD_DIR, name))
            else:
                cloudinary.uploader.destroy(_cloudinary_public_id(reference))
        except Exception:
            logger.exception("Failed to discard photo %s", reference)
    if references:
        logger.info("Discarded %d photo(s)", len(references))


def store_photos(files: list[UploadFile], required: bool = True) -> list[str]:
    """
    Validate and persist uploaded photos.

    Args:
        files (list[UploadFile]): Uploaded files in display order.
        required (bool): Whether at least one photo must be present.

    Returns:
        list[str]: References to the stored photos, in upload order.
    """
    validate_photos(files, required=required)
    store = _store_remotely if get_settings().CLOUDINARY_URL else _store_locally
    references = [store(file) for file in files]
    if references:
        logger.info("Stored %d photo(s)", len(references))
    return references
