"""HTTP routers."""

from fixturecast.routes.core import router as core_router
from fixturecast.routes.pipeline import router as pipeline_router

__all__ = ["core_router", "pipeline_router"]
