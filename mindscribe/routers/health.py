# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Health check router."""
import logging
import os

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.database import get_db
from mindscribe.deps import Settings, get_settings
from mindscribe.models.api import HealthResponse

router = APIRouter(prefix="/api/health", tags=["health"])
logger = logging.getLogger(__name__)


def _provider_services(settings: Settings) -> dict:
    return {
        "assemblyai": "configured" if settings.assemblyai_api_key else "not_configured",
        "deepseek": "configured" if settings.deepseek_api_key else "not_configured",
    }


@router.get("", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Basic health check endpoint."""
    services = _provider_services(settings)
    services["storage"] = "ok" if os.path.exists(settings.upload_dir) else "missing"

    return HealthResponse(status="healthy", version=settings.api_version, services=services)


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Ready when the database answers and both provider keys are configured."""
    services = _provider_services(settings)

    try:
        await db.execute(text("SELECT 1"))
        services["database"] = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Readiness database check failed: {e}")
        services["database"] = "unavailable"

    ready = services["database"] == "ok" and all(
        services[name] == "configured" for name in ("assemblyai", "deepseek")
    )
    response = HealthResponse(
        status="ready" if ready else "not_ready",
        version=settings.api_version,
        services=services,
    )
    if not ready:
        return JSONResponse(status_code=503, content=response.model_dump(mode="json"))
    return response


@router.get("/live")
async def liveness_check():
    """Process is up and serving requests."""
    return {"status": "alive"}
