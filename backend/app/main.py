"""
RAB Estimator API v1.0
FastAPI backend for construction cost estimation (HPP / RAB): geometry-derived
quantities, material unit conversion, crew sizing and cost composition over an
async SQLAlchemy catalog.
"""
import os
import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware

# .env is optional in dev; real deployments set the environment directly
load_dotenv()

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("rab-api")

if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL — running in dev mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db import init_db, engine
    try:
        await init_db()
    except Exception as e:
        logger.warning(f"init_db failed, continuing without schema sync: {e}")
    yield
    await engine.dispose()


app = FastAPI(
    title="RAB Estimator API",
    version="1.0.0",
    description="HPP / RAB estimation for concrete, formwork, reinforcement and finishing works",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Security Headers Middleware
# ---------------------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# ---------------------------------------------------------------------------
# CORS: restricted to allowed origins from env
# ---------------------------------------------------------------------------
_cors_default = "http://localhost:3000,http://localhost:8000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from app.api.calculation_routes import router as calculation_router
from app.api.conversion_rule_routes import router as conversion_rule_router
from app.api.material_routes import router as material_router

app.include_router(calculation_router)
app.include_router(conversion_rule_router)
app.include_router(material_router)


@app.get("/health")
async def health_check():
    from app.db import check_connection
    db_configured = bool(os.getenv("DATABASE_URL"))
    return {
        "status": "active",
        "version": "1.0.0",
        "db_configured": db_configured,
        "db_reachable": await check_connection() if db_configured else None,
    }
