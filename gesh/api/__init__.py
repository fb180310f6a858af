"""API module for GESH.

Contains versioned API routers.
"""

from gesh.api.v1 import router as v1_router

__all__ = ["v1_router"]
