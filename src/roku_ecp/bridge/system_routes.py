"""
Bridge health and monitoring routes
"""

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import logging
import time

logger = logging.getLogger(__name__)

# Response models
class HealthResponse(BaseModel):
    ok: bool
    deep: bool
    checked: str  # "probe" or "skipped"
    latency_ms: int
    error: Optional[str] = None

class EventModel(BaseModel):
    id: int
    timestamp: str
    path: str
    status: str
    detail: Optional[Dict[str, Any]] = None

class StatsModel(BaseModel):
    total: int
    events: List[EventModel]
    last_event: Optional[EventModel] = None

class StatsResponse(BaseModel):
    ok: bool
    stats: StatsModel


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def create_system_routes(bridge):
    """Create health and stats routes for a CommandBridge"""
    router = APIRouter(tags=["system"])

    @router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
    async def health(request: Request, response: Response, deep: Optional[str] = None):
        """Shallow liveness check; ?deep=1 also round-trips a device query"""
        if not _is_truthy(deep):
            # Shallow checks touch no bridge state
            return HealthResponse(ok=True, deep=False, checked="skipped", latency_ms=0)

        bridge.authorize(request)

        started = time.perf_counter()
        error = None
        try:
            await bridge.queue.run(bridge.probe_device)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning(f"Deep health check failed: {error}")
        latency_ms = int(round((time.perf_counter() - started) * 1000))

        ok = error is None
        detail = {"latency_ms": latency_ms}
        if error:
            detail["error"] = error
        bridge.stats.record(request.url.path, "ok" if ok else "error", detail)

        if not ok:
            response.status_code = 503
        return HealthResponse(ok=ok, deep=True, checked="probe", latency_ms=latency_ms, error=error)

    @router.get("/stats", response_model=StatsResponse, dependencies=[Depends(bridge.authorize)])
    async def stats():
        """Current event ring and running total"""
        return StatsResponse(ok=True, stats=StatsModel(**bridge.stats.snapshot()))

    return router
