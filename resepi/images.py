"""Recipe and guide image uploads.

Each upload is stored as three JPEG variants under UPLOAD_DIR:

  original-<name>.jpg   EXIF-corrected, RGB, quality 90
  medium-<name>.jpg     fits inside 800x600, quality 85
  thumbnail-<name>.jpg  fits inside 200x200, quality 80

Variants never enlarge the source image.
"""
from __future__ import annotations

import io
import logging
import os
import secrets
import string
import time
from dataclasses import dataclass
from pathlib import Path

from flask import current_app
from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy import update
from sqlalchemy.orm import Session
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .errors import NotFoundError, ValidationError
from .models import Guide, GuideImage, Recipe, RecipeImage

log = logging.getLogger(__name__)

MIME_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/webp": (".webp",),
}

# name -> (max box or None, jpeg quality)
VARIANTS: dict[str, tuple[tuple[int, int] | None, int]] = {
    "original": (None, 90),
    "medium": ((800, 600), 85),
    "thumbnail": ((200, 200), 80),
}

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class ProcessedImage:
    url: str
    medium_url: str
    thumbnail_url: str
    width: int
    height: int
    size: int


def upload_dir() -> Path:
    raw = Path(current_app.config.get("UPLOAD_DIR") or "static/uploads/recipes")
    if not raw.is_absolute():
        raw = Path(current_app.root_path).parent / raw
    return raw


def upload_url_prefix() -> str:
    return (current_app.config.get("UPLOAD_URL") or "/static/uploads/recipes").rstrip("/")


def validate_upload(filename: str | None, mimetype: str | None, size: int) -> None:
    max_size = int(current_app.config.get("MAX_FILE_SIZE") or 5242880)
    allowed = current_app.config.get("ALLOWED_TYPES") or list(MIME_EXTENSIONS)
    if not filename:
        raise ValidationError([{"field": "image", "message": "No image file provided"}])
    if size > max_size:
        raise ValidationError(
            [{"field": "image", "message": f"File size exceeds {max_size // (1024 * 1024)}MB limit"}]
        )
    if mimetype not in allowed:
        raise ValidationError(
            [{"field": "image", "message": f"Invalid file type. Allowed types: {', '.join(allowed)}"}]
        )
    ext = os.path.splitext(filename)[1].lower()
    valid = MIME_EXTENSIONS.get(mimetype, ())
    if ext not in valid:
        raise ValidationError(
            [
                {
                    "field": "image",
                    "message": f"Invalid file extension for {mimetype}. Allowed extensions: {', '.join(valid)}",
                }
            ]
        )


def unique_filename(original: str, prefix: str | None = None) -> str:
    """'{prefix-}{epoch_ms}-{random6}{ext}', extension normalised from the original name."""
    ext = os.path.splitext(secure_filename(original) or "")[1].lower()
    for exts in MIME_EXTENSIONS.values():
        if ext in exts:
            ext = exts[0]
            break
    else:
        ext = ".jpg"
    rand = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(6))
    head = f"{prefix}-" if prefix else ""
    return f"{head}{int(time.time() * 1000)}-{rand}{ext}"


def _variant_name(variant: str, filename: str) -> str:
    return f"{variant}-{Path(filename).stem}.jpg"


def _to_rgb(im: Image.Image) -> Image.Image:
    if im.mode in ("RGBA", "LA", "P"):
        im = im.convert("RGBA")
        bg = Image.new("RGB", im.size, (255, 255, 255))
        bg.paste(im, mask=im.split()[-1])
        return bg
    if im.mode != "RGB":
        return im.convert("RGB")
    return im


def process_image(data: bytes, filename: str, target_dir: Path | None = None) -> ProcessedImage:
    out_dir = target_dir or upload_dir()
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        with Image.open(io.BytesIO(data)) as src:
            base = _to_rgb(ImageOps.exif_transpose(src))
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError([{"field": "image", "message": "Fail imej tidak boleh dibaca."}]) from e
    width, height = base.size
    prefix = upload_url_prefix()
    urls: dict[str, str] = {}
    for variant, (box, quality) in VARIANTS.items():
        im = base.copy()
        if box is not None:
            # thumbnail() only ever shrinks, keeping the aspect ratio
            im.thumbnail(box, Image.LANCZOS)
        name = _variant_name(variant, filename)
        im.save(out_dir / name, "JPEG", quality=quality, optimize=True)
        urls[variant] = f"{prefix}/{name}"
    log.info("Processed image %s (%dx%d, %d bytes)", filename, width, height, len(data))
    return ProcessedImage(
        url=urls["original"],
        medium_url=urls["medium"],
        thumbnail_url=urls["thumbnail"],
        width=width,
        height=height,
        size=len(data),
    )


def add_recipe_image(db: Session, recipe_id: int, upload: FileStorage | None, alt: str | None = None) -> RecipeImage:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    if upload is None or not upload.filename:
        raise ValidationError([{"field": "image", "message": "No image file provided"}])
    data = upload.read()
    validate_upload(upload.filename, upload.mimetype, len(data))
    filename = unique_filename(upload.filename, prefix=str(recipe_id))
    processed = process_image(data, filename)
    has_images = db.query(RecipeImage.id).filter(RecipeImage.recipe_id == recipe_id).first() is not None
    image = RecipeImage(
        recipe_id=recipe_id,
        url=processed.url,
        medium_url=processed.medium_url,
        thumbnail_url=processed.thumbnail_url,
        alt=(alt or "").strip() or recipe.title,
        is_primary=not has_images,
        width=processed.width,
        height=processed.height,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    return image


def add_guide_image(db: Session, guide_id: int, upload: FileStorage | None, alt: str | None = None) -> GuideImage:
    guide = db.get(Guide, guide_id)
    if guide is None:
        raise NotFoundError("guide_not_found")
    if upload is None or not upload.filename:
        raise ValidationError([{"field": "image", "message": "No image file provided"}])
    data = upload.read()
    validate_upload(upload.filename, upload.mimetype, len(data))
    processed = process_image(data, unique_filename(upload.filename, prefix=f"guide{guide_id}"))
    has_images = db.query(GuideImage.id).filter(GuideImage.guide_id == guide_id).first() is not None
    image = GuideImage(
        guide_id=guide_id,
        url=processed.url,
        medium_url=processed.medium_url,
        thumbnail_url=processed.thumbnail_url,
        alt=(alt or "").strip() or None,
        is_primary=not has_images,
        width=processed.width,
        height=processed.height,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    log.info("Guide image added guide_id=%s image_id=%s", guide_id, image.id)
    return image


def _path_for_url(url: str | None) -> Path | None:
    if not url:
        return None
    return upload_dir() / Path(url).name


def variant_urls(image: RecipeImage | GuideImage) -> list[str]:
    return [u for u in (image.url, image.medium_url, image.thumbnail_url) if u]


def remove_files(urls: list[str]) -> None:
    """Unlink stored variants; call after the owning rows are committed away."""
    for url in urls:
        p = _path_for_url(url)
        if p is None:
            continue
        try:
            p.unlink()
        except FileNotFoundError:
            log.info("Image file already gone: %s", p)


def delete_image(db: Session, recipe_id: int, image_id: int) -> None:
    image = db.query(RecipeImage).filter_by(id=image_id, recipe_id=recipe_id).first()
    if image is None:
        raise NotFoundError("image_not_found")
    urls = variant_urls(image)
    db.delete(image)
    db.commit()
    remove_files(urls)


def delete_guide_image(db: Session, guide_id: int, image_id: int) -> None:
    image = db.query(GuideImage).filter_by(id=image_id, guide_id=guide_id).first()
    if image is None:
        raise NotFoundError("image_not_found")
    urls = variant_urls(image)
    db.delete(image)
    db.commit()
    remove_files(urls)


def set_primary_image(db: Session, recipe_id: int, image_id: int) -> RecipeImage:
    image = db.query(RecipeImage).filter_by(id=image_id, recipe_id=recipe_id).first()
    if image is None:
        raise NotFoundError("image_not_found")
    db.execute(update(RecipeImage).where(RecipeImage.recipe_id == recipe_id).values(is_primary=False))
    image.is_primary = True
    db.commit()
    return image


def regenerate_variants(db: Session) -> int:
    """Rebuild medium/thumbnail files for every stored original; returns images processed."""
    done = 0
    for image in db.query(RecipeImage).order_by(RecipeImage.id).all():
        src = _path_for_url(image.url)
        if src is None or not src.exists():
            log.warning("Original missing for image id=%s url=%s", image.id, image.url)
            continue
        name = src.name[len("original-"):] if src.name.startswith("original-") else src.name
        processed = process_image(src.read_bytes(), name, src.parent)
        image.url = processed.url
        image.medium_url = processed.medium_url
        image.thumbnail_url = processed.thumbnail_url
        image.width = processed.width
        image.height = processed.height
        done += 1
    db.commit()
    return done


__all__ = [
    "validate_upload",
    "unique_filename",
    "process_image",
    "add_recipe_image",
    "delete_image",
    "add_guide_image",
    "delete_guide_image",
    "variant_urls",
    "remove_files",
    "set_primary_image",
    "regenerate_variants",
    "ProcessedImage",
]
