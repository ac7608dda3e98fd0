# stitchquote/routers/uploads.py
import io
import logging
import mimetypes
from datetime import datetime, timezone
from pathlib import PurePath
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Request, UploadFile
from PIL import Image, UnidentifiedImageError

from stitchquote.core.rate_limit import limiter, upload_limit
from stitchquote.dependencies import Services, get_services
from stitchquote.domain.errors import QuoteValidationError, UpstreamUnavailable
from stitchquote.schemas.quote import UploadResponse
from stitchquote.services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["uploads"])

ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
}
# Pillow can't decode HEIC without plugins; those are stored as-is
VERIFIABLE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}


def _safe_filename(name: str) -> str:
    """Make a filename URL/FS-safe."""
    name = PurePath(name or "photo").name  # strip path
    cleaned = "".join(ch if ch.isalnum() or ch in (".", "-", "_") else "_" for ch in name)
    return cleaned or "photo"


def _content_type(file: UploadFile) -> str:
    ctype = (file.content_type or "").lower()
    if ctype in ("", "application/octet-stream"):
        guessed, _ = mimetypes.guess_type(file.filename or "")
        ctype = (guessed or "").lower()
    return ctype


def make_upload_key(filename: str) -> str:
    """e.g. 'quotes/2025-11-01/550e8400...-seat.jpg'"""
    today = datetime.now(timezone.utc).date().isoformat()
    return f"quotes/{today}/{uuid4().hex}-{_safe_filename(filename)}"


def verify_image(data: bytes) -> None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise QuoteValidationError("File is not a readable image.", detail=str(e)) from e


@router.post("/upload", response_model=UploadResponse)
@limiter.limit(upload_limit)
def upload_photo(
    request: Request,
    file: UploadFile = File(...),
    services: Services = Depends(get_services),
) -> UploadResponse:
    settings = services.settings

    ctype = _content_type(file)
    if ctype not in ALLOWED_CONTENT_TYPES:
        raise QuoteValidationError(f"Unsupported file type: {ctype or 'unknown'}")

    data = file.file.read(settings.max_upload_bytes + 1)
    if not data:
        raise QuoteValidationError("Missing file")
    if len(data) > settings.max_upload_bytes:
        raise QuoteValidationError(
            f"Image too large. Please upload photos under {settings.MAX_UPLOAD_MB}MB each."
        )
    if ctype in VERIFIABLE_CONTENT_TYPES:
        verify_image(data)

    key = make_upload_key(file.filename or "photo")
    try:
        url = services.storage.put(key, data, ctype)
    except StorageError as e:
        raise UpstreamUnavailable("Upload failed. Please try again.", detail=str(e)) from e

    logger.info("photo uploaded key=%s bytes=%d", key, len(data))
    return UploadResponse(url=url, pathname=key)
