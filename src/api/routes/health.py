"""
Health check endpoints.
"""

import time

from fastapi import APIRouter

from src.application.dto.responses import HealthResponse, ProviderHealthResponse
from src.config import get_settings

router = APIRouter(prefix="/api/health", tags=["health"])

# Track startup time
_start_time = time.time()


def _uptime() -> float:
    return time.time() - _start_time


@router.get("", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check with uptime."""
    return HealthResponse(
        status="healthy",
        version=get_settings().app_version,
        uptime_seconds=_uptime(),
    )


@router.get("/llm", response_model=HealthResponse)
async def llm_health() -> HealthResponse:
    """
    Extraction backend health check.

    The mock extractor is always available; remote providers are probed.
    """
    from src.infrastructure.llm import check_llm_health

    start = time.time()
    primary = (await check_llm_health())["primary"]
    latency = primary.get("response_time_ms") or (time.time() - start) * 1000

    llm_status = ProviderHealthResponse(
        name=primary.get("provider") or get_settings().llm.provider,
        available=bool(primary.get("available")),
        latency_ms=latency,
        model=primary.get("model"),
        error=primary.get("error"),
    )

    return HealthResponse(
        status="healthy" if llm_status.available else "degraded",
        version=get_settings().app_version,
        uptime_seconds=_uptime(),
        llm=llm_status,
    )


@router.get("/db", response_model=HealthResponse)
async def db_health() -> HealthResponse:
    """
    Database health check.

    Tests SQLite connectivity and response time.
    """
    from src.infrastructure.storage.sqlite import get_pool

    try:
        pool = await get_pool()
        start = time.time()
        available = await pool.ping()
        db_status = ProviderHealthResponse(
            name="sqlite",
            available=available,
            latency_ms=(time.time() - start) * 1000,
        )
    except Exception as e:
        db_status = ProviderHealthResponse(
            name="sqlite",
            available=False,
            error=str(e),
        )

    return HealthResponse(
        status="healthy" if db_status.available else "unhealthy",
        version=get_settings().app_version,
        uptime_seconds=_uptime(),
        database=db_status,
    )
