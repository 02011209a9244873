"""Health check endpoint."""

import asyncio
import time

import httpx
import structlog
from fastapi import APIRouter, Depends

from gtm_relay import __version__
from gtm_relay.config import Settings, get_settings
from gtm_relay.routers.metrics import set_db_pool_metrics
from gtm_relay.schemas import DependencyHealth, HealthResponse

router = APIRouter()
logger = structlog.get_logger(__name__)

# Global connection pool (set during app startup)
_db_pool = None


def set_db_pool(pool):
    """Set the database pool for this router."""
    global _db_pool
    _db_pool = pool


async def check_database_health() -> DependencyHealth:
    """Check the Postgres pool with a trivial query."""
    if _db_pool is None:
        return DependencyHealth(status="error", error="Database pool not initialized")

    start = time.perf_counter()
    try:
        async with _db_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        latency = (time.perf_counter() - start) * 1000
        set_db_pool_metrics(_db_pool.get_size(), _db_pool.get_idle_size())
        return DependencyHealth(status="ok", latency_ms=latency)
    except Exception as e:
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(status="error", latency_ms=latency, error=str(e))


async def check_supabase_health(settings: Settings) -> DependencyHealth:
    """Check Supabase Auth connectivity."""
    start = time.perf_counter()
    try:
        async with httpx.AsyncClient(timeout=settings.auth_timeout) as client:
            response = await client.get(
                f"{settings.supabase_url}/auth/v1/health",
                headers={"apikey": settings.auth_api_key},
            )
            latency = (time.perf_counter() - start) * 1000
            if response.status_code == 200:
                return DependencyHealth(status="ok", latency_ms=latency)
            return DependencyHealth(
                status="error",
                latency_ms=latency,
                error=f"Unexpected status: {response.status_code}",
            )
    except Exception as e:
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(status="error", latency_ms=latency, error=str(e))


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Check health of the service and its dependencies.

    Reports the Postgres pool and Supabase Auth, with latency per dependency.
    """
    database_health, supabase_health = await asyncio.gather(
        check_database_health(), check_supabase_health(settings)
    )

    all_healthy = all(h.status == "ok" for h in [database_health, supabase_health])
    overall_status = "ok" if all_healthy else "degraded"

    latency_ms: dict[str, float] = {}
    if database_health.latency_ms is not None:
        latency_ms["database"] = database_health.latency_ms
    if supabase_health.latency_ms is not None:
        latency_ms["supabase"] = supabase_health.latency_ms

    logger.info(
        "health_check_completed",
        status=overall_status,
        database=database_health.status,
        supabase=supabase_health.status,
    )

    return HealthResponse(
        status=overall_status,
        database=database_health,
        supabase=supabase_health,
        latency_ms=latency_ms,
        version=__version__,
        git_sha=settings.git_sha,
    )
