import io
import logging
import os
import secrets
import time
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from PIL import Image, UnidentifiedImageError

from config import get_config
from middleware import upload_limiter
from security import authorize_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"], dependencies=[Depends(authorize_admin), Depends(upload_limiter)])

IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
MODEL_EXTENSIONS = (".glb", ".gltf")
MODEL_MAX_SIZE = 20 * 1024 * 1024
MAX_IMAGES = 10
MAX_DIMENSION = (1200, 1200)
WEBP_QUALITY = 85


def unique_name(prefix: str, suffix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"


def read_limited(upload: UploadFile, limit: int) -> bytes:
    data = upload.file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=413, detail=f"File too large. Maximum size is {limit // (1024 * 1024)}MB")
    return data


def open_image(upload: UploadFile, max_size: int) -> Image.Image:
    """Check type and size and decode the upload; nothing is written yet."""
    if upload.content_type not in IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="Only JPEG, PNG and WebP images are allowed")
    data = read_limited(upload, max_size)
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError):
        raise HTTPException(status_code=400, detail="Invalid image file")
    return image


def optimize_image(image: Image.Image, field: str, upload_dir: str) -> dict:
    """Shrink to fit 1200x1200 (never enlarging) and re-encode as WebP."""
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() or "transparency" in image.info else "RGB")
    image.thumbnail(MAX_DIMENSION)

    os.makedirs(upload_dir, exist_ok=True)
    filename = unique_name(f"optimized-{field}", ".webp")
    image.save(os.path.join(upload_dir, filename), "WEBP", quality=WEBP_QUALITY)
    logger.info("Stored image %s (%dx%d)", filename, *image.size)
    return {"filename": filename, "url": f"/uploads/{filename}"}


@router.post("/image")
def upload_image(image: UploadFile = File(...)):
    config = get_config()
    stored = optimize_image(open_image(image, config.max_file_size), "image", config.upload_dir)
    return {"message": "Image uploaded successfully", **stored}


@router.post("/images")
def upload_images(images: List[UploadFile] = File(...)):
    if len(images) > MAX_IMAGES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_IMAGES} images can be uploaded at once")
    config = get_config()
    # every upload is validated before the first file is written
    decoded = [open_image(upload, config.max_file_size) for upload in images]
    stored = [optimize_image(image, "images", config.upload_dir) for image in decoded]
    return {
        "message": f"{len(stored)} images uploaded successfully",
        "files": stored,
        "urls": [s["url"] for s in stored],
    }


@router.post("/model3d")
def upload_model(model: UploadFile = File(...)):
    ext = os.path.splitext(model.filename or "")[1].lower()
    if ext not in MODEL_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Only .glb and .gltf models are allowed")
    data = read_limited(model, MODEL_MAX_SIZE)

    models_dir = os.path.join(get_config().upload_dir, "models")
    os.makedirs(models_dir, exist_ok=True)
    filename = unique_name("model", ext)
    with open(os.path.join(models_dir, filename), "wb") as fh:
        fh.write(data)
    logger.info("Stored 3D model %s (%d bytes)", filename, len(data))
    return {"message": "3D model uploaded successfully", "filename": filename, "url": f"/uploads/models/{filename}"}
