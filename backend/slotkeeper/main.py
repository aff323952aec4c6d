"""
FastAPI app entrypoint.

Slot reservation engine: availability, locks, bookings, admin. Expired-lock sweep runs on a
background scheduler (housekeeping only; every read path ignores expired locks by itself).
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from slotkeeper.api.deps import booking_error_handler
from slotkeeper.api.routes import admin, bookings, locks, slots
from slotkeeper.config import settings
from slotkeeper.core.constants import LOCK_SWEEP_JOB_ID
from slotkeeper.core.errors import BookingError
from slotkeeper.scheduler.lock_sweep_job import run_lock_sweep_job

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            run_lock_sweep_job,
            "interval",
            seconds=settings.lock_sweep_interval_seconds,
            id=LOCK_SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info(
            "Lock sweep scheduled every %ss (lock TTL %s min)",
            settings.lock_sweep_interval_seconds, settings.lock_ttl_minutes,
        )
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false); expired locks are still ignored on read")
    app.state.scheduler = scheduler
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Slotkeeper", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(BookingError, booking_error_handler)

app.include_router(slots.router, tags=["availability"])
app.include_router(locks.router, tags=["locks"])
app.include_router(bookings.router, tags=["bookings"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Slotkeeper API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
