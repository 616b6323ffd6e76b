"""
POSTUREFIT Backend API
Real-Time Exercise Repetition Tracking

FastAPI application entry point. Pose landmarks are streamed from the
client over WebSocket; the exercise service calibrates, counts reps,
drives sets and rest periods and speaks feedback cues.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pathlib import Path
from starlette.middleware.base import BaseHTTPMiddleware

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Service routers
from exercise_service.router import router as exercise_router, get_services
from exercise_service.models import ExerciseEngineError, ExerciseNotFound, SessionNotFound

# Core utilities
from core.config import settings
from core.database import init_firebase, is_mock_mode
from core.websocket import connection_manager
from shared.utils import setup_logger, error_response

# Setup logging
logger = setup_logger("posturefit.main", level=logging.DEBUG)
request_logger = setup_logger("posturefit.requests", level=logging.DEBUG)


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        query_string = f"?{request.url.query}" if request.url.query else ""

        request_logger.info(f"➡️  {request.method} {request.url.path}{query_string}")
        request_logger.debug(f"    Client: {client_ip}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            if response.status_code < 300:
                status_emoji = "✅"
            elif response.status_code < 400:
                status_emoji = "↪️"
            elif response.status_code < 500:
                status_emoji = "⚠️"
            else:
                status_emoji = "❌"

            request_logger.info(
                f"{status_emoji} {request.method} {request.url.path} → {response.status_code} ({process_time:.1f}ms)"
            )

            return response
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.exception(
                f"💥 {request.method} {request.url.path} → ERROR: {type(e).__name__}: {str(e)} ({process_time:.1f}ms)"
            )
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info("🚀 POSTUREFIT API starting up...")

    if init_firebase():
        logger.info("🔥 Firebase connected")
    else:
        logger.warning("⚠️ Running in MOCK MODE (no Firebase)")

    await connection_manager.start_heartbeat()

    media_path = Path(__file__).parent / settings.LOCAL_MEDIA_PATH
    media_path.mkdir(parents=True, exist_ok=True)

    logger.info("✅ POSTUREFIT API ready!")

    yield  # Application runs here

    # ===== SHUTDOWN =====
    logger.info("👋 POSTUREFIT API shutting down...")

    await connection_manager.stop_heartbeat()

    session_handler = get_services()
    for session_id in list(session_handler.active_sessions):
        session_handler.cleanup_session(session_id)

    logger.info("✅ Shutdown complete")


app = FastAPI(
    title="POSTUREFIT API",
    description="Real-time exercise repetition tracking - Backend Services",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ExerciseEngineError)
async def exercise_error_handler(request: Request, exc: ExerciseEngineError):
    """Engine errors that escape a route become structured 4xx responses."""
    status_code = 404 if isinstance(exc, (ExerciseNotFound, SessionNotFound)) else 400
    logger.warning(f"⚠️ {type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=error_response(str(exc), error_code=type(exc).__name__)
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "posturefit-api",
        "firebase": "connected" if not is_mock_mode() else "mock",
        "result_store": settings.RESULT_STORE,
        "websocket_connections": connection_manager.connection_count
    }


@app.get("/stats")
async def get_stats():
    """Get service statistics."""
    return {
        "websocket": connection_manager.get_stats(),
        "sessions": get_services().get_stats()
    }


# Include service routers
app.include_router(exercise_router, prefix="/api/exercise", tags=["Exercise Service"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
