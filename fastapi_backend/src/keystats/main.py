import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routers.sessions import sessions_router

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


settings = get_settings()
setup_logging(settings.log_level)

# Initialize FastAPI with basic metadata
app = FastAPI(
    title="Keystroke Statistics API",
    description="REST API recording keystrokes and computing typing session statistics.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/", summary="Health Check")
def health_check():
    """Simple health endpoint to verify the service is up."""
    return {"message": "Healthy"}


@app.get("/ready", summary="Readiness Check")
def readiness_check():
    """Readiness endpoint to signal the service is ready to accept traffic."""
    return {"status": "ready"}


# Include sessions router under /api prefix
app.include_router(sessions_router, prefix="/api")
