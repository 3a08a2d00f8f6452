"""
Schedule Router — on-demand passes, highlights and bumps.

Usage in server.py:
    from api.schedule_router import schedule_router, health_router
    app.include_router(schedule_router, prefix="/api/v1")
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request

from api.auth import require_auth
from api.response_models import BumpResponse, HealthResponse, HighlightResponse, PassResponse
from slotkeeper.engine import ScheduleEngine
from slotkeeper.observability import REGISTRY

logger = logging.getLogger(__name__)

schedule_router = APIRouter(tags=["Schedule"], dependencies=[Depends(require_auth)])
health_router = APIRouter(tags=["Health"])


def get_engine(request: Request) -> ScheduleEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Schedule engine not started")
    return engine


@schedule_router.post("/passes/conflicts", response_model=PassResponse)
async def run_conflict_pass(engine: ScheduleEngine = Depends(get_engine)):
    result = await engine.run_conflict_pass()
    return result.to_dict()


@schedule_router.post("/passes/optimize", response_model=PassResponse)
async def run_optimization_pass(engine: ScheduleEngine = Depends(get_engine)):
    result = await engine.run_optimization_pass()
    return result.to_dict()


@schedule_router.post("/passes/autoschedule", response_model=PassResponse)
async def run_auto_schedule(engine: ScheduleEngine = Depends(get_engine)):
    result = await engine.run_auto_schedule()
    return result.to_dict()


@schedule_router.get("/events/highlighted", response_model=HighlightResponse)
async def highlighted_events(engine: ScheduleEngine = Depends(get_engine)):
    result = await engine.check_upcoming_events()
    return result.to_dict()


@schedule_router.post("/bumps/{item_id}", response_model=BumpResponse)
async def bump_item(item_id: str, engine: ScheduleEngine = Depends(get_engine)):
    engine.register_bump(item_id)
    return {"success": True, "item_id": item_id, "until": engine.now().date().isoformat()}


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request, engine: ScheduleEngine = Depends(get_engine)):
    daemon = getattr(request.app.state, "daemon", None)
    last = {name: r.to_dict() for name, r in engine.last_results.items()}
    degraded = any(not r.overall_success for r in engine.last_results.values())
    return {
        "status": "degraded" if degraded else "healthy",
        "timestamp": datetime.now(engine.config.tz).isoformat(),
        "last_passes": {
            name: {
                "completed_at": d["completed_at"],
                "overall_success": d["overall_success"],
                "moves": d["moves"],
            }
            for name, d in last.items()
        },
        "jobs": daemon.get_job_health() if daemon is not None else {},
        "metrics": REGISTRY.to_dict(),
    }
