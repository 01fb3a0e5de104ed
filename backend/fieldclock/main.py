import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fieldclock.core.config import settings
from fieldclock.api import checkins as checkins_api
from fieldclock.api import issues as issues_api
from fieldclock.api import schedules as schedules_api
from fieldclock.api import kiosks as kiosks_api
from fieldclock.api import time_off as time_off_api

logger = logging.getLogger(__name__)


def init_database():
    """Create tables on startup. Seeding lives in init_db.py."""
    from fieldclock.core.database import engine, Base
    import fieldclock.models  # noqa: F401  registers every table

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run database init on startup + start the absence scanner."""
    init_database()

    if settings.ABSENCE_SCAN_ENABLED:
        import threading

        interval = settings.ABSENCE_SCAN_INTERVAL_MINUTES * 60

        def _run_absence_scans():
            """Scan for missed checkpoints periodically."""
            import time
            time.sleep(30)  # Wait for app to fully start
            while True:
                try:
                    from fieldclock.core.database import SessionLocal
                    from fieldclock.services.absence import AbsenceDetector
                    summary = AbsenceDetector(SessionLocal).run()
                    if summary.created_issues or summary.errored_users:
                        logger.info(f"Absence scan results: {summary.to_dict()}")
                except Exception as e:
                    logger.error(f"Absence scheduler error: {e}", exc_info=True)
                time.sleep(interval)

        scan_thread = threading.Thread(target=_run_absence_scans, daemon=True)
        scan_thread.start()
        logger.info(f"Background absence scanner started (every {settings.ABSENCE_SCAN_INTERVAL_MINUTES} minutes)")
    else:
        logger.warning("Absence scanner disabled (ABSENCE_SCAN_ENABLED=false)")

    yield


# Disable API docs in production
docs_url = "/docs" if settings.ENVIRONMENT != "production" else None
redoc_url = "/redoc" if settings.ENVIRONMENT != "production" else None

app = FastAPI(
    title=settings.APP_NAME,
    description="Field workforce attendance API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)


# Global exception handler - always return JSON (never plain text)
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fieldclock.core.exceptions import FieldClockError

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    import traceback
    logger.error("Unhandled exception: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal error: {str(exc)}"},
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

@app.exception_handler(FieldClockError)
async def domain_exception_handler(request, exc):
    logger.warning(f"Unmapped domain error on {request.url.path}: {exc}")
    status_code = 404 if isinstance(exc, LookupError) else 400
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})

# CORS - local dev + deployed frontend
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
frontend_url = os.environ.get("FRONTEND_URL", "")
if frontend_url and frontend_url not in allowed_origins:
    allowed_origins.append(frontend_url)
    if not frontend_url.startswith("https"):
        allowed_origins.append(frontend_url.replace("http://", "https://"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "fieldclock-api", "version": "1.0.0"}


@app.get("/")
def root():
    return {"message": "FieldClock Attendance API", "version": "1.0.0", "docs": "/docs"}


# Include routers
app.include_router(checkins_api.router)
app.include_router(issues_api.router)
app.include_router(schedules_api.router)
app.include_router(kiosks_api.router)
app.include_router(time_off_api.router)
