from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import uvicorn
import logging

# Import database
from db.connection import engine, check_database_connection
from db import models

# Import routes
from routes.auth import login
from routes.attendance import attendance
from routes.lateness import lateness
from routes.cron import cron
from Scheduler.attendance_scheduler import cron_scheduler
from services.exceptions import AttendanceServiceError
from utils.api_response import error_response, status_for

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting HR Attendance Backend...")

    try:
        # 1) DB check + tables
        if not check_database_connection():
            raise Exception("Database connection failed")
        logger.info("✅ Database connection verified")
        models.Base.metadata.create_all(engine)
        logger.info("✅ Database tables created/verified")

        # 2) Start the attendance cron ONCE here
        cron_scheduler.start()
        logger.info(f"✅ Attendance cron {'running' if cron_scheduler.running else 'disabled'}")

        logger.info("🎉 Application startup completed successfully!")

    except Exception as e:
        logger.error(f"❌ Application startup failed: {e}")
        raise

    # Hand control back to FastAPI
    yield

    # === Graceful shutdown ===
    try:
        cron_scheduler.shutdown()
    except Exception as e:
        logger.warning(f"Attendance cron stop error: {e}")

    logger.info("🛑 Shutting down HR Attendance Backend...")


# Initialize FastAPI app with lifespan
app = FastAPI(
    title="HR Attendance Backend API",
    description="Attendance sync, photo archival and lateness reporting",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
def health_check():
    try:
        db_status = check_database_connection()
        return {
            "status": "healthy" if db_status else "unhealthy",
            "database": "connected" if db_status else "disconnected",
            "scheduler_running": cron_scheduler.running,
            "version": "1.0.0",
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unhealthy")


# Register routes
app.include_router(login.router, prefix="/api/v1")
app.include_router(attendance.router, prefix="/api/v1")
app.include_router(lateness.router, prefix="/api/v1")
app.include_router(cron.router, prefix="/api/v1")
logger.info("✅ Routes registered")


@app.exception_handler(AttendanceServiceError)
async def service_exception_handler(request: Request, exc: AttendanceServiceError):
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=code, content=error_response(str(exc), type(exc).__name__))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    return JSONResponse(status_code=422, content=error_response("Validation failed", "; ".join(errors)))


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_response("Internal server error", str(exc) if app.debug else "Something went wrong"),
    )


# Run the application
if __name__ == "__main__":
    logger.info("🚀 Starting server with Uvicorn...")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
