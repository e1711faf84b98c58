"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from campus_rbac.core.config import settings
from campus_rbac.core.middleware import setup_middleware
from campus_rbac.core.exceptions import CampusRBACError, status_for_code
from campus_rbac.db.session import SessionLocal
from campus_rbac.services.legacy_bridge import LegacyRoleMirror, role_event_bus

from campus_rbac.api.rbac import router as rbac_router
from campus_rbac.api.audit import router as audit_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("campus_rbac")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s", settings.APP_NAME)
    mirror = None
    if settings.LEGACY_MIRROR_ENABLED:
        mirror = LegacyRoleMirror(SessionLocal)
        role_event_bus.subscribe(mirror)
        logger.info("Legacy role mirror subscribed")
    else:
        logger.info("Legacy role mirror disabled")

    yield

    if mirror is not None:
        role_event_bus.unsubscribe(mirror)
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="Campus RBAC API",
    description="Role-based authorization for multi-branch institutions",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(CampusRBACError)
async def campus_rbac_exception_handler(request: Request, exc: CampusRBACError):
    return JSONResponse(
        status_code=status_for_code(exc.code),
        content={"detail": {"message": exc.message, "code": exc.code}},
    )


# Register routers
app.include_router(rbac_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
