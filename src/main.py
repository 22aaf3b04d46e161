"""
Incident Service - Main Application
===================================

Workplace incident reporting with AI-assisted triage.

Modules:
- Identity: Signup, login, roles
- Routing: Admin-managed category routing rules
- Incidents: Lifecycle, comments, attachments, watchers, metrics
- Triage: Embeddings, zero-shot triage, duplicates, solutions, anomalies

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, inference API, realtime channel
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from src.config import Settings, settings
from src.core import ApplicationException
from src.infrastructure.database import init_database, close_database, create_tables
from src.infrastructure.inference import IInferenceClient, create_inference_client
from src.infrastructure.realtime import ConnectionManager

from src.identity.interfaces import auth_router, users_router
from src.routing.interfaces import routing_router
from src.triage.interfaces import triage_router
from src.incidents.interfaces import incidents_router
from src.triage.application import EmbeddingCache

from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    RequestStats,
    application_exception_handler,
    global_exception_handler,
    validation_exception_handler,
)
from src.shared.api.realtime import realtime_router
from src.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)

request_stats = RequestStats()


def init_app_state(
    app: FastAPI,
    inference_client: Optional[IInferenceClient] = None,
    config: Optional[Settings] = None
) -> None:
    """Process-scoped state injected into request handlers via app.state."""
    config = config or settings
    app.state.settings = config
    app.state.inference_client = inference_client
    app.state.embedding_cache = EmbeddingCache(max_size=config.embedding_cache_size)
    app.state.realtime = ConnectionManager(
        max_connections=config.realtime_max_connections,
        queue_size=config.realtime_queue_size
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup: logging, database schema, upload directory, inference client,
    then the per-process state (embedding cache, realtime channel).

    Shutdown runs in reverse: realtime sockets, inference client, database.
    """
    setup_logging(level="DEBUG" if settings.debug else "INFO", environment=settings.environment)
    logger.info("Starting Incident Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    # Schema is created on boot; there are no migrations yet
    await create_tables()
    logger.info("Database ready")

    settings.upload_dir.mkdir(parents=True, exist_ok=True)

    inference_client = create_inference_client(settings)
    if inference_client is None:
        logger.warning("No inference API key configured - triage runs on heuristics only")

    init_app_state(app, inference_client=inference_client)
    logger.info("Incident Service started")

    yield

    logger.info("Shutting down Incident Service")
    await app.state.realtime.close_all()
    if app.state.inference_client is not None:
        await app.state.inference_client.aclose()
    await close_database()
    logger.info("Incident Service stopped")


app = FastAPI(
    title="Incident Service API",
    description="""
    ## Workplace Incident Reporting with AI Triage

    ---

    ### Incidents

    - `POST /api/incidents` - Report an incident (AI triage, duplicate warning, routing)
    - `GET /api/incidents` - List incidents visible to the caller
    - `PATCH /api/incidents/{id}/status` - Open -> Investigating -> Resolved
    - `POST /api/incidents/{id}/comments` - Comment (internal comments for responders/admins)
    - `POST /api/incidents/{id}/attachments` - Upload a file
    - `GET /api/incidents/metrics` - Volume, MTTR, forecast, anomaly rate

    ### AI Triage

    - `POST /api/incidents/check-duplicate`
    - `POST /api/incidents/ai/predict-triage`
    - `POST /api/incidents/ai/generate-solutions`
    - `POST /api/incidents/ai/summarize`
    - `GET /api/incidents/{id}/ai-insights`

    Every AI endpoint degrades to local heuristics when the inference API
    is unavailable.

    ### Realtime

    `WS /ws/events?token=...` streams `incident:created`, `incident:updated`,
    `incident:assigned` and `comment:added`.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added last runs first: the correlation id is bound before logging and metrics
app.add_middleware(LoggingMiddleware)
app.add_middleware(MetricsMiddleware, stats=request_stats)
app.add_middleware(CorrelationIDMiddleware)

app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Triage routes before incidents: its static paths share the /incidents prefix
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(users_router, prefix=settings.api_prefix)
app.include_router(routing_router, prefix=settings.api_prefix)
app.include_router(triage_router, prefix=settings.api_prefix)
app.include_router(incidents_router, prefix=settings.api_prefix)
app.include_router(realtime_router)

app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "inference": "available",
                        "realtime_clients": 0
                    },
                    "requests": {"requests": 42, "by_status": {"2xx": 40, "4xx": 2}, "avg_response_ms": 12.5}
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check for load balancers.

    Reports whether the inference API is configured, how many realtime
    clients are connected and the request counters since boot.
    """
    client = getattr(request.app.state, "inference_client", None)
    realtime = getattr(request.app.state, "realtime", None)

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": {
            "inference": "available" if client is not None else "heuristic_mode",
            "realtime_clients": realtime.connection_count if realtime else 0
        },
        "requests": request_stats.snapshot()
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "service": "Incident Service",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "identity": f"{settings.api_prefix}/auth, {settings.api_prefix}/users",
            "routing": f"{settings.api_prefix}/routing-rules",
            "incidents": f"{settings.api_prefix}/incidents",
            "realtime": "/ws/events"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
