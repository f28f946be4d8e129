"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from learnloop.cache.coordinator import CacheCoordinator
from learnloop.config import get_settings
from learnloop.database import get_session
from learnloop.dependencies import get_cache

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    cache: CacheCoordinator = Depends(get_cache),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: checks database and cache connectivity."""
    checks: dict[str, object] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    if not cache.enabled:
        checks["cache"] = "disabled"
    else:
        try:
            checks["cache"] = "ok" if await cache.ping() else "error: not connected"
        except Exception as exc:
            checks["cache"] = f"error: {exc}"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
