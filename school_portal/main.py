# school_portal/main.py - Application setup, middleware and router registration
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import traceback
import time

from school_portal.core.config import settings
from school_portal.core.db import get_engine, db_manager, health_check as db_health_check
from school_portal.models import Base
from school_portal.ai.gateway_client import AIGatewayError, get_gateway_client
from school_portal.ai.router import router as ai_router
from school_portal.api.routers import auth, schools, classes, subjects, timetable
from school_portal.api.routers import assignments, fees, messages, whitelists
from school_portal.api.routers import attendance, results, notifications


# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting School Portal API...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Database URL: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'local'}")

    engine = get_engine()

    # Create tables if they don't exist (for development and tests)
    if settings.is_development or settings.ENV == "test":
        logger.info("Creating database tables...")
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Error creating tables: {e}")

    yield

    logger.info("Shutting down School Portal API...")
    db_manager.close()


app = FastAPI(
    title=settings.API_TITLE,
    description="Multi-tenant school management API with AI-assisted features",
    version=settings.API_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)


# Request logging middleware - BEFORE CORS
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    logger.info(f"Incoming {request.method} {request.url.path} (host: {request.headers.get('host', '-')})")

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"Error processing {request.method} {request.url.path}: {str(e)}")
        raise

    process_time = time.time() - start_time
    logger.info(f"Response {response.status_code} for {request.method} {request.url.path} in {process_time:.3f}s")
    return response


app.add_middleware(CORSMiddleware, **settings.get_cors_config())


@app.exception_handler(AIGatewayError)
async def ai_gateway_exception_handler(request: Request, exc: AIGatewayError):
    """Upstream AI failures keep their status and answer {"error": message}"""
    logger.warning(f"AI gateway error on {request.url.path}: {exc.status_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}")
    logger.error(traceback.format_exc())

    if settings.is_development:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "traceback": traceback.format_exc()
            }
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


@app.get("/health")
async def health_check():
    database = db_health_check()
    return {
        "status": "operational" if database["status"] == "operational" else "degraded",
        "environment": settings.ENV,
        "version": settings.API_VERSION,
        "database": database,
        "ai_gateway": {"configured": get_gateway_client().configured},
    }


# Include routers
logger.info("Registering API routers...")
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(schools.router, prefix="/api/schools", tags=["Schools"])
app.include_router(classes.router, prefix="/api/classes", tags=["Classes"])
app.include_router(subjects.router, prefix="/api/subjects", tags=["Subjects"])
app.include_router(timetable.router, prefix="/api/timetable", tags=["Timetable"])
app.include_router(assignments.router, prefix="/api/assignments", tags=["Assignments"])
app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(results.router, prefix="/api/results", tags=["Exam Results"])
app.include_router(fees.router, prefix="/api/fees", tags=["Fees"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(whitelists.router, prefix="/api/whitelists", tags=["Whitelists"])
app.include_router(ai_router, prefix="/api")
logger.info("All routers registered successfully")


@app.get("/")
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs_url": "/docs" if settings.is_development else "Documentation disabled in production",
    }
