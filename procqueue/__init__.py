"""
File Processing Queue

An in-process, priority-ordered job queue for image, document and media
processing with a fixed concurrency ceiling, lifecycle notifications and
an HTTP surface.
"""

__version__ = "1.0.0"
