"""Health and version endpoints for load balancers and orchestrators."""

from __future__ import annotations

from fastapi import APIRouter


def create_stat_router(version: str) -> APIRouter:
    """Return the ``/stat`` routes.

    ``/stat/health/alive`` and ``/stat/health/ready`` answer as soon as the
    server accepts connections; nothing is checked in Chrome.
    """
    router = APIRouter(prefix="/stat", tags=["stat"])

    @router.get("/health/alive")
    async def alive() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/health/ready")
    async def ready() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/version")
    async def get_version() -> dict[str, str]:
        return {"version": version}

    return router
