"""Audio/video metadata extraction."""

from datetime import UTC, datetime
from typing import Any

import aiofiles.os

from procqueue.processing.base import ProcessingError, resolve_mimetype


async def extract_media_metadata(target_path: str, options: dict[str, Any]) -> dict[str, Any]:
    """Report file-level metadata for a media file."""
    try:
        stats = await aiofiles.os.stat(target_path)
    except OSError as e:
        raise ProcessingError(f"Media metadata extraction failed: {e}") from e

    return {
        "type": "media",
        "mimetype": resolve_mimetype(target_path, options),
        "size": stats.st_size,
        "created": datetime.fromtimestamp(stats.st_ctime, UTC).isoformat(),
        "modified": datetime.fromtimestamp(stats.st_mtime, UTC).isoformat(),
    }
