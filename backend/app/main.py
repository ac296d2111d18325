"""Main FastAPI application."""
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.config import get_settings
from app.errors import DomainError
from app.middleware.logging import LoggingMiddleware, configure_logging, get_logger
from app.api import admin, earnings, experiments, health, payouts
from app.database import engine, Base
from app import models  # noqa: F401  (registers tables on Base.metadata)

settings = get_settings()
configure_logging(settings.debug)
logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    Base.metadata.create_all(bind=engine)
    logger.info("database_tables_ready")

    yield

    logger.info("application_shutdown", service=settings.app_name)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Campaign A/B testing, partner earnings and payouts for digital out-of-home advertising",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# CORS middleware - Allow dashboard origins
allowed_origins = [
    "http://localhost:5173",
    "http://localhost:3000",
    settings.frontend_url,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Trace-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining"]
)

# Logging middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    level = logger.error if exc.status_code >= 500 else logger.info
    level(
        "domain_error",
        error=exc.code,
        message=exc.message,
        status_code=exc.status_code
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "invalid_request", "details": jsonable_encoder(exc.errors())}
    )


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(experiments.router, tags=["experiments"])
app.include_router(earnings.router, tags=["earnings"])
app.include_router(payouts.router, tags=["payouts"])
app.include_router(admin.router, tags=["admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "disabled",
        "endpoints": {
            "health": "/health",
            "experiments": "/campaigns/{campaignId}/experiments",
            "earnings": "GET /partner/earnings",
            "payouts": "POST /partner/payouts"
        }
    }


# uvicorn app.main:app --reload
