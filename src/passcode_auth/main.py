"""FastAPI application for the passcode-auth service.

Mounts the OTP, auth and users routers.  Startup creates the profile
tables; the OTP challenge store is in-process and starts empty on every
boot.  Run with ``passcode-auth`` (or ``python -m passcode_auth.main``).
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from passcode_auth.api.auth import router as auth_router
from passcode_auth.api.otp import router as otp_router
from passcode_auth.api.users import router as users_router
from passcode_auth.config import settings
from passcode_auth.database.engine import close_db, init_db

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create profile tables on startup, release DB connections on shutdown."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Profile tables ready")
    yield
    logger.info("Shutting down %s …", settings.app_name)
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Authentication and onboarding service with one-time passcode verification",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(otp_router)
app.include_router(auth_router)
app.include_router(users_router)


@app.get("/health")
async def health_check():
    """Liveness check; does not touch the database or the identity provider."""
    return {"status": "healthy", "app": settings.app_name}


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    uvicorn.run(
        "passcode_auth.main:app",
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
