"""
FastAPI entrypoint for the TalentDesk ATS backend

Run locally:
  uvicorn app.main:app --reload --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.exceptions import GatewayError, TalentDeskException, status_code_for
from app.middleware.monitoring import MonitoringMiddleware
from app.routers import auth, candidates, health, positions, stats, uploads, users, view_state
from app.services.candidate_service import CandidateCacheRegistry
from app.services.gateway import create_gateway
from app.services.stats_service import LiveStats, StatsService
from app.services.view_state import TabSessionStore
from app.utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the gateway and start the realtime statistics feed

    A missing service-role credential aborts startup. A failed realtime
    subscription does not: statistics fall back to on-demand fetches.
    """
    logger.info("application_starting", debug=settings.DEBUG)
    app.state.gateway = await create_gateway(settings)

    live = LiveStats(StatsService(
        app.state.gateway,
        fetch_limit=settings.STATS_FETCH_LIMIT,
        recent_limit=settings.RECENT_UPLOADS_LIMIT
    ))
    try:
        await live.start()
        app.state.live_stats = live
    except GatewayError as e:
        logger.warning("live_stats_unavailable", error=e.message)
        app.state.live_stats = None

    logger.info("application_started")
    yield

    if app.state.live_stats is not None:
        await app.state.live_stats.stop()
    logger.info("application_stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="TalentDesk ATS API",
        version="1.0.0",
        description="Candidate search, resume upload tracking, position matching and statistics",
        lifespan=lifespan
    )

    # Per-process state; the gateway itself is attached by the lifespan
    app.state.candidate_caches = CandidateCacheRegistry()
    app.state.tab_sessions = TabSessionStore.from_settings(settings)
    app.state.live_stats = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MonitoringMiddleware)

    @app.exception_handler(TalentDeskException)
    async def talentdesk_exception_handler(request: Request, exc: TalentDeskException):
        logger.error(
            "unhandled_domain_error",
            path=request.url.path,
            error_code=exc.error_code,
            error=exc.message
        )
        return JSONResponse(
            status_code=status_code_for(exc),
            content={
                "detail": {
                    "error_code": exc.error_code,
                    "message": exc.message,
                    "details": exc.details,
                    "request_id": getattr(request.state, "request_id", None)
                }
            }
        )

    for module in (health, auth, candidates, uploads, positions, stats, view_state, users):
        app.include_router(module.router, prefix="/api")

    return app


app = create_app()
