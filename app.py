# =====================================================
# app.py
# =====================================================
import logging
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, load_settings
from db import Database
from errors import AppError
from logging_setup import configure_logging
from routes import payments, reward_questions, rewards
from services.disbursement import PaymentOrchestrator
from services.providers import ProviderGateway
from services.settlement import SettlementPoller
from tasks import start_background_tasks, stop_background_tasks
from tasks.payouts import PayoutRunner

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Build the API. Settings are loaded (and validated) immediately so a
    missing credential stops the process before it serves anything.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.sentry_dsn, settings.environment)

    app = FastAPI(title="DelipuCash API")
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # -------------------------------------------------
    # Startup event
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info("🚀 Starting up DelipuCash API...")

        db = Database(settings.database_url, echo=settings.sql_echo)
        if settings.auto_create_tables:
            await db.create_all()

        http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport)
        gateway = ProviderGateway(settings, http_client)
        poller = SettlementPoller(
            gateway,
            max_attempts=settings.settlement_max_attempts,
            interval_ms=settings.settlement_interval_ms,
        )
        orchestrator = PaymentOrchestrator(db, gateway, poller)

        app.state.db = db
        app.state.http_client = http_client
        app.state.gateway = gateway
        app.state.poller = poller
        app.state.orchestrator = orchestrator
        app.state.payout_runner = PayoutRunner(orchestrator)

        if settings.enable_background_tasks:
            await start_background_tasks(db, orchestrator, settings)

        logger.info("✅ DelipuCash API ready")

    # -------------------------------------------------
    # Shutdown event
    # -------------------------------------------------
    @app.on_event("shutdown")
    async def on_shutdown():
        try:
            await app.state.payout_runner.drain(settings.shutdown_grace_seconds)
            if settings.enable_background_tasks:
                await stop_background_tasks()
        finally:
            await app.state.http_client.aclose()
            await app.state.db.dispose()
            logger.info("🛑 DelipuCash API stopped cleanly.")

    # -------------------------------------------------
    # Error handlers
    # -------------------------------------------------
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} → {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={"success": False, "statusCode": 400, "message": message},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "statusCode": 500, "message": "Internal Server Error"},
        )

    # -------------------------------------------------
    # Routes
    # -------------------------------------------------
    @app.get("/")
    @app.head("/")
    async def root():
        return {
            "status": "ok",
            "message": "DelipuCash API is running ✅",
            "health": "Check /health for database status",
        }

    @app.get("/health")
    async def health(request: Request):
        db_ok = await request.app.state.db.ping()
        return JSONResponse(
            status_code=200 if db_ok else 503,
            content={"status": "ok" if db_ok else "degraded", "database": db_ok},
        )

    app.include_router(reward_questions.router)
    app.include_router(payments.router)
    app.include_router(rewards.router)

    return app


if __name__ == "__main__":
    uvicorn.run(
        "app:create_app",
        factory=True,
        host="0.0.0.0",
        port=load_settings().port,
    )
