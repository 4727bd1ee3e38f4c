"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trust_anchor.core.config import get_settings
from trust_anchor.core.database import init_db
from trust_anchor.core.errors import ServiceError

from trust_anchor.audit import router as audit_router
from trust_anchor.cases import router as cases_router
from trust_anchor.entities import router as entities_router
from trust_anchor.fraud import router as fraud_router
from trust_anchor.functions import router as functions_router
from trust_anchor.monitoring import router as monitoring_router
from trust_anchor.notifications import router as notifications_router
from trust_anchor.onboarding import router as onboarding_router
from trust_anchor.providers import router as providers_router
from trust_anchor.rules import router as rules_router
from trust_anchor.tmaas import router as tmaas_router
from trust_anchor.users import router as users_router
from trust_anchor.webhooks import router as webhooks_router
from trust_anchor.workflows import router as workflows_router

VERSION = "0.1.0"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting %s...", settings.app_name)
    if settings.signing_secret == "change-me":
        logger.warning("SIGNING_SECRET is not set; provenance signatures use the default key")

    logger.info("Initializing database...")
    init_db()

    yield

    logger.info("Shutting down...")


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Compliance backend: transaction monitoring, onboarding, cases and provenance",
        version=VERSION,
        lifespan=lifespan,
    )

    # CORS_ORIGINS is "*" or a comma separated list
    cors_origins = settings.cors_origins.split(",") if settings.cors_origins != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(entities_router)       # /entities
    app.include_router(functions_router)      # /functions
    app.include_router(rules_router)          # /rules
    app.include_router(tmaas_router)          # /tmaas
    app.include_router(fraud_router)          # /fraud
    app.include_router(cases_router)          # /cases
    app.include_router(onboarding_router)     # /onboarding
    app.include_router(users_router)          # /users
    app.include_router(webhooks_router)       # /webhooks
    app.include_router(workflows_router)      # /workflows
    app.include_router(providers_router)      # /providers
    app.include_router(monitoring_router)     # /monitoring
    app.include_router(notifications_router)  # /notifications
    app.include_router(audit_router)          # /audit

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": VERSION,
            "endpoints": {
                "entities": "/entities/{entity} - Tenant-scoped record store",
                "functions": "/functions/{name} - Invoke a server function by name",
                "rules": "/rules - Transaction rule engine",
                "tmaas": "/tmaas/* - Transaction screening, enrichment, review and analytics",
                "fraud": "/fraud/detect - Fraud model detection",
                "cases": "/cases - Case management and SLA tracking",
                "onboarding": "/onboarding/* - Application review, LEI issuance, AML screening",
                "users": "/users/invite - User invitations",
                "webhooks": "/webhooks - Signed outbound webhooks",
                "workflows": "/workflows/* - Verification workflows with provenance",
                "providers": "/providers/* - Provider routing and health checks",
                "monitoring": "/monitoring/* - Perpetual AML and KYB monitoring schedules",
                "notifications": "/notifications - In-app notifications",
                "audit": "/audit/* - Audit log and retention",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
