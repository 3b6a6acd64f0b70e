import logging
from typing import Optional
from fastapi import FastAPI
from harmonizer.core.config import settings
from harmonizer.core.activity import InMemoryActivityRepository
from harmonizer.core.middleware import ActivityLogMiddleware
from harmonizer.core.orchestrator import InvoiceAuditOrchestrator, build_orchestrator
from harmonizer.api import activity, audit, health, queue

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

def create_app(
    orchestrator: Optional[InvoiceAuditOrchestrator] = None,
    refresh_on_startup: Optional[bool] = None,
) -> FastAPI:
    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.orchestrator = orchestrator or build_orchestrator(settings)
    app.state.activity_repo = InMemoryActivityRepository()

    app.add_middleware(
        ActivityLogMiddleware,
        repository=app.state.activity_repo,
        orchestrator=app.state.orchestrator,
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(queue.router)
    app.include_router(audit.router)
    app.include_router(activity.router)

    if refresh_on_startup is None:
        refresh_on_startup = settings.REFRESH_ON_STARTUP

    @app.on_event("startup")
    async def startup_event():
        if not refresh_on_startup:
            return
        error = await app.state.orchestrator.refresh()
        if error is not None:
            logger.warning("Workflow backend unreachable at startup, serving simulated queue")

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.orchestrator.aclose()

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
