"""Image resize, format conversion and compression."""

import asyncio
import os
from typing import Any

from PIL import Image

from procqueue.config import get_settings
from procqueue.processing.base import ProcessingError, int_option, output_path

# Output format name -> (Pillow format, file extension)
IMAGE_FORMATS: dict[str, tuple[str, str]] = {
    "jpeg": ("JPEG", ".jpeg"),
    "jpg": ("JPEG", ".jpg"),
    "png": ("PNG", ".png"),
    "webp": ("WEBP", ".webp"),
    "gif": ("GIF", ".gif"),
    "tiff": ("TIFF", ".tiff"),
}

# Formats that honour a quality setting
LOSSY_FORMATS = {"JPEG", "WEBP"}


def _flatten(image: Image.Image) -> Image.Image:
    """JPEG has no alpha or palette; convert to plain RGB."""
    if image.mode in ("RGB", "L"):
        return image
    return image.convert("RGB")


def _check_quality(quality: int) -> None:
    if not 1 <= quality <= 100:
        raise ProcessingError(f"Quality must be between 1 and 100, got {quality}")


async def resize_image(target_path: str, options: dict[str, Any]) -> dict[str, Any]:
    """
    Resize an image and save it as JPEG.

    Options:
    - width / height: target size; with only one, aspect ratio is kept
    - quality: JPEG quality (default 80)
    """
    width = int_option(options, "width")
    height = int_option(options, "height")
    quality = int_option(options, "quality", 80)
    _check_quality(quality)

    settings = get_settings()
    if (width is not None and not 0 < width <= settings.image_max_width) or (
        height is not None and not 0 < height <= settings.image_max_height
    ):
        raise ProcessingError(
            f"Requested size {width}x{height} exceeds limits "
            f"{settings.image_max_width}x{settings.image_max_height}"
        )

    destination = output_path(target_path, "_resized", ".jpg")

    def _resize() -> tuple[int, int]:
        with Image.open(target_path) as image:
            if width and height:
                size = (width, height)
            elif width:
                size = (width, max(1, round(image.height * width / image.width)))
            elif height:
                size = (max(1, round(image.width * height / image.height)), height)
            else:
                size = image.size
            resized = _flatten(image.resize(size))
            resized.save(destination, "JPEG", quality=quality)
            return resized.size

    try:
        new_width, new_height = await asyncio.to_thread(_resize)
    except (OSError, ValueError) as e:
        raise ProcessingError(f"Image resize failed: {e}") from e

    return {
        "original_path": target_path,
        "output_path": destination,
        "dimensions": {"width": new_width, "height": new_height},
        "quality": quality,
    }


async def convert_image(target_path: str, options: dict[str, Any]) -> dict[str, Any]:
    """
    Convert an image to another format.

    Options:
    - format: jpeg, jpg, png, webp, gif or tiff (default jpeg)
    - quality: used by lossy formats (default 80)
    """
    fmt = str(options.get("format", "jpeg")).lower()
    if fmt not in IMAGE_FORMATS:
        raise ProcessingError(f"Unsupported image format: {fmt}")
    quality = int_option(options, "quality", 80)
    _check_quality(quality)

    pil_format, extension = IMAGE_FORMATS[fmt]
    destination = output_path(target_path, "", extension)

    def _convert() -> None:
        with Image.open(target_path) as image:
            if pil_format == "JPEG":
                image = _flatten(image)
            save_kwargs = {"quality": quality} if pil_format in LOSSY_FORMATS else {}
            image.save(destination, pil_format, **save_kwargs)

    try:
        await asyncio.to_thread(_convert)
    except (OSError, ValueError) as e:
        raise ProcessingError(f"Image conversion failed: {e}") from e

    return {
        "original_path": target_path,
        "output_path": destination,
        "format": fmt,
        "quality": quality,
    }


async def compress_image(target_path: str, options: dict[str, Any]) -> dict[str, Any]:
    """
    Re-encode an image as JPEG at a lower quality.

    Options:
    - quality: JPEG quality (default 60)
    """
    quality = int_option(options, "quality", 60)
    _check_quality(quality)
    destination = output_path(target_path, "_compressed", ".jpg")

    def _compress() -> tuple[int, int]:
        with Image.open(target_path) as image:
            _flatten(image).save(destination, "JPEG", quality=quality, optimize=True)
        return os.stat(target_path).st_size, os.stat(destination).st_size

    try:
        original_size, compressed_size = await asyncio.to_thread(_compress)
    except (OSError, ValueError) as e:
        raise ProcessingError(f"Image compression failed: {e}") from e

    ratio = (original_size - compressed_size) / original_size * 100 if original_size else 0.0

    return {
        "original_path": target_path,
        "output_path": destination,
        "original_size": original_size,
        "compressed_size": compressed_size,
        "compression_ratio": f"{ratio:.2f}%",
        "quality": quality,
    }
