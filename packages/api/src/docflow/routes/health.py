# This project was developed with assistance from AI tools.
"""Liveness and readiness probes."""

from docflow_db import DatabaseService, get_db_service
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/")
async def health() -> dict[str, str]:
    """Liveness: the process is up."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(db: DatabaseService = Depends(get_db_service)) -> JSONResponse:
    """Readiness: the database answers."""
    if await db.health_check():
        return JSONResponse({"status": "ok", "database": "ok"})
    return JSONResponse({"status": "degraded", "database": "unavailable"}, status_code=503)
