"""
API routes module.
"""

from procqueue.api.routes.health import router as health_router
from procqueue.api.routes.queue import router as queue_router

__all__ = ["queue_router", "health_router"]
