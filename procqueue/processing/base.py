"""
Shared helpers for processing routines.
"""

import mimetypes
from pathlib import Path
from typing import Any


class ProcessingError(Exception):
    """A processing routine could not produce its result."""


def output_path(target_path: str, suffix: str = "", extension: str | None = None) -> str:
    """
    Derive an output path next to the target.

    Example:
        output_path("/data/photo.png", "_resized", ".jpg") -> "/data/photo_resized.jpg"

    A plain extension change that would land on the target itself gets a
    ``_converted`` suffix instead.
    """
    path = Path(target_path)
    extension = extension or path.suffix
    if not suffix and extension.lower() == path.suffix.lower():
        suffix = "_converted"
    return str(path.with_name(f"{path.stem}{suffix}{extension}"))


def resolve_mimetype(target_path: str, options: dict[str, Any]) -> str:
    """Use the mimetype supplied with the job, else guess from the extension."""
    mimetype = options.get("mimetype")
    if mimetype:
        return mimetype
    guessed, _ = mimetypes.guess_type(target_path)
    return guessed or "application/octet-stream"


def int_option(options: dict[str, Any], name: str, default: int | None = None) -> int | None:
    value = options.get(name, default)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ProcessingError(f"Option '{name}' must be an integer, got {value!r}") from None
