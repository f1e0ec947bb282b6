import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.appointments import accept_inquiry
from .domain.appointments import consultant_router
from .domain.appointments import router as appointments_router
from .domain.fna import router as fna_router
from .domain.fna.autosave import AutoSaveRegistry
from .domain.fna.service import autosave_factory
from .domain.inquiries import router as inquiries_router
from .domain.inquiries import submit_inquiry
from .errors import FnaServiceError, ValidationError
from .routes.auth import router as auth_router
from .routes.google_calendar import router as google_calendar_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_tables():
    """Create tables; on PostgreSQL the overlap exclusion constraint needs btree_gist first"""
    if engine.dialect.name == "postgresql":
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
    Base.metadata.create_all(bind=engine, checkfirst=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        create_tables()
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    app.state.autosave = AutoSaveRegistry(autosave_factory)

    yield

    logger.info("Application shutting down, flushing pending auto-saves...")
    await app.state.autosave.flush_all()


app = FastAPI(title="FNA Advisory API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(FnaServiceError)
async def fna_service_exception_handler(request: Request, exc: FnaServiceError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} - {exc.message}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Auth, permission and not-found failures share the {"error": message} body"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Missing Authorization header -> 401; any other request validation
    failure -> 400 {"error", "field", "errors"}
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={"error": "Not authenticated. Please provide a valid Bearer token in the Authorization header."},
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content=ValidationError.from_pydantic(exc).to_dict())


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    elapsed_ms = (time.time() - start) * 1000
    if elapsed_ms > 1000:
        logger.warning(f"🐢 {request.method} {request.url.path} took {elapsed_ms:.0f}ms")
    return response


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(inquiries_router)
app.include_router(appointments_router)
app.include_router(consultant_router)
app.include_router(fna_router)
app.include_router(google_calendar_router)

# Paths the existing frontend calls
app.add_api_route("/functions/submit-inquiry", submit_inquiry, methods=["POST"], tags=["Functions"])
app.add_api_route("/functions/accept-inquiry", accept_inquiry, methods=["POST"], tags=["Functions"])


@app.get("/")
def root():
    return {"message": "FNA Advisory API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
