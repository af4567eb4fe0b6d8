"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from suivi_server.routes.attempts import router as attempts_router
from suivi_server.routes.reviews import router as reviews_router
from suivi_server.routes.suivi import router as suivi_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    app.include_router(reviews_router, prefix=API_PREFIX)
    app.include_router(attempts_router, prefix=API_PREFIX)
    app.include_router(suivi_router, prefix=API_PREFIX)
