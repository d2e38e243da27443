"""FastAPI application."""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import settings
from .domain_errors import DomainError
from .problem_details import domain_error_handler
from .routers import (
    alerts, assets, catalog, checklists, drive, inspections, notifications, reports, user_requests, users,
)
from .services.notification_bus import notification_bus
from .services.notification_counts import load_notification_counts
from .services.notification_push import notification_broadcaster

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Production safety checks (fail closed).
if settings.ENV.lower() == "production" and not settings.cors_origins:
    raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
if settings.ENV.lower() == "production" and settings.AUTH_JWT_SECRET == "change-me":
    raise RuntimeError("AUTH_JWT_SECRET must be set to the auth provider's signing secret in production.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    notification_broadcaster.attach(notification_bus, asyncio.get_running_loop(), load_notification_counts)
    yield
    notification_broadcaster.detach()


# Create app
app = FastAPI(
    title="Sitebatch Inspections",
    version="1.0.0",
    description="Backend API for plant and asset inspection compliance tracking",
    lifespan=lifespan,
)

app.add_exception_handler(DomainError, domain_error_handler)

# CORS
cors_headers = ["Authorization", "Content-Type"]
if settings.ENV.lower() != "production":
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=cors_headers,
)

# Include routers
app.include_router(users.router, prefix="/api/v1")
app.include_router(assets.router, prefix="/api/v1")
app.include_router(catalog.router, prefix="/api/v1")
app.include_router(inspections.router, prefix="/api/v1")
app.include_router(checklists.router, prefix="/api/v1")
app.include_router(alerts.router, prefix="/api/v1")
app.include_router(user_requests.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")
app.include_router(drive.router, prefix="/api/v1")


@app.get("/api/v1/system/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Sitebatch Inspections API",
        "version": "1.0.0",
        "docs": "/docs"
    }
