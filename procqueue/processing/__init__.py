"""
Processing routines.

Each routine takes ``(target_path, options)`` and returns a result dict or
raises ProcessingError.
"""

from procqueue.constants import JobCategory
from procqueue.processing.base import ProcessingError
from procqueue.processing.document import convert_document, extract_document_metadata
from procqueue.processing.image import compress_image, convert_image, resize_image
from procqueue.processing.media import extract_media_metadata
from procqueue.queue.dispatcher import OperationDispatcher


def create_default_dispatcher() -> OperationDispatcher:
    """Build a dispatcher wired to the built-in routines."""
    dispatcher = OperationDispatcher()

    dispatcher.register(JobCategory.IMAGE, "resize", resize_image)
    dispatcher.register(JobCategory.IMAGE, "convert", convert_image)
    dispatcher.register(JobCategory.IMAGE, "compress", compress_image)

    dispatcher.register(JobCategory.DOCUMENT, "convert", convert_document)
    dispatcher.register(JobCategory.DOCUMENT, "extract", extract_document_metadata)

    dispatcher.register(JobCategory.MEDIA, "extract", extract_media_metadata)

    return dispatcher


__all__ = [
    "ProcessingError",
    "create_default_dispatcher",
    "resize_image",
    "convert_image",
    "compress_image",
    "convert_document",
    "extract_document_metadata",
    "extract_media_metadata",
]
