"""
EduQuest API - Main Application
AI question generation, answer analysis and per-client credits
FILE: eduquest/main.py
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time

from eduquest.core.config import settings
from eduquest.db.mongodb import connect_to_mongo, close_mongo_connection
from eduquest.db.storage import get_storage
from eduquest.api.responses import error_response
from eduquest.api.generation import router as generation_router
from eduquest.api.credits import router as credits_router
from eduquest.services import llm_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("🚀 Starting EduQuest API...")

    try:
        if settings.storage_backend == "mongodb":
            await connect_to_mongo()
            logger.info("✓ MongoDB connected")

        storage = get_storage()
        logger.info(f"✓ Storage ready ({type(storage).__name__})")

        llm_status = llm_client.health_check()
        if llm_status.get("configured"):
            logger.info(f"✓ LLM provider ready: {llm_status['provider']} ({llm_status['model']})")
        else:
            logger.warning(
                f"⚠ No server API key for {llm_status['provider']}; "
                "requests must supply x-api-key"
            )

    except Exception as e:
        logger.error(f"❌ Startup error: {e}")
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down EduQuest API...")

    try:
        await get_storage().flush()
        logger.info("✓ Storage flushed")

        if settings.storage_backend == "mongodb":
            await close_mongo_connection()
            logger.info("✓ MongoDB disconnected")

        logger.info("✓ Cleanup complete")

    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="EduQuest API",
    description="""
    EduQuest API for AI-generated quizzes.

    ## Features
    - **Question Generation**: MCQ, fill-in-the-blank, true/false, short and long questions from a topic
    - **Multimodal Context**: Generate from images, PDFs and text files
    - **Answer Analysis**: AI score and feedback for written answers
    - **Credits**: Per-client generation quota, bypassed with your own API key

    ## Endpoints
    - **Generate**: `/api/generate-questions`, `/api/generate-with-context`
    - **Analyze**: `/api/analyze-answers`
    - **Upload**: `/api/upload` - Extract text from a file
    - **Random Question**: `/api/random-question`
    - **Credits**: `/api/session/credits`
    - **Health**: `/health` - Overall service health check
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:4000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers"""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000  # Convert to ms
    response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
    return response


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    logger.info(f"📨 {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(
        f"📤 {request.method} {request.url.path} - "
        f"Status: {response.status_code}"
    )
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 VALIDATION_ERROR listing each field"""
    violations = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    logger.warning(f"⚠️ Validation failed for {request.url.path}: {violations}")
    return error_response(400, "VALIDATION_ERROR", "Request validation failed", violations)


# ==================== INCLUDE ROUTERS ====================

app.include_router(generation_router, prefix="/api", tags=["Generation"])
app.include_router(credits_router, prefix="/api", tags=["Credits"])


# ==================== ROOT ENDPOINTS ====================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": "EduQuest API",
        "version": "1.0.0",
        "status": "operational",
        "endpoints": {
            "docs": "/docs",
            "redoc": "/redoc",
            "generate": "/api/generate-questions",
            "generate_with_context": "/api/generate-with-context",
            "analyze": "/api/analyze-answers",
            "upload": "/api/upload",
            "random_question": "/api/random-question",
            "credits": "/api/session/credits",
            "health": "/health"
        }
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check for storage and the LLM provider

    Returns:
        Health status for all components
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "components": {}
    }

    overall_healthy = True

    # Check storage
    try:
        storage = get_storage()
        await storage.load("health-check")
        health_status["components"]["storage"] = {
            "status": "healthy",
            "backend": type(storage).__name__
        }
    except Exception as e:
        overall_healthy = False
        health_status["components"]["storage"] = {
            "status": "unhealthy",
            "message": str(e)
        }
        logger.error(f"❌ Storage health check failed: {e}")

    # LLM key is optional (clients may bring their own), so it never degrades health
    health_status["components"]["llm"] = llm_client.health_check()

    health_status["status"] = "healthy" if overall_healthy else "degraded"

    health_status["api"] = {
        "title": app.title,
        "version": app.version,
        "status": "operational"
    }

    status_code = 200 if overall_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content=health_status
    )


# ==================== RUN APPLICATION ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "eduquest.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
