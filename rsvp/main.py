"""RSVP Lifecycle Service."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rsvp.attendance.errors import AttendanceError
from rsvp.core.config import settings
from rsvp.core.database import create_db_and_tables
from rsvp.core.scheduler import shutdown_scheduler, start_scheduler
from rsvp.routes import attendance, rsvp, sweep

# Configure logging
log_dir = Path.home() / ".logs" / "rsvp"
log_dir.mkdir(parents=True, exist_ok=True)
log_file = log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting RSVP Lifecycle service")
    create_db_and_tables()
    start_scheduler()
    yield
    # Shutdown
    shutdown_scheduler()
    logger.info("RSVP Lifecycle service shut down")


app = FastAPI(
    title=settings.app_name,
    description="Attendance lifecycle for capacity-limited events: RSVPs, waitlists and day-of confirmation",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for external access
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rsvp.router)
app.include_router(attendance.router)
app.include_router(sweep.router)


@app.exception_handler(AttendanceError)
async def attendance_error_handler(request: Request, exc: AttendanceError):
    """Translate attendance errors into JSON error responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.code},
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
