from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from api.error_handlers import register_exception_handlers
from api.v1 import auth, meals, metrics, users
from core.config import settings
from db.base import initialize_database
from db.session import engine
from utils.logging_config import configure_logging, RequestContextMiddleware, REQUEST_ID_HEADER
from utils.rate_limit import RateLimitMiddleware

# Configure logging with date-based files and TTL retention
logger = configure_logging("daily_diet")

HEALTH_PATH = f"{settings.API_V1_STR}/health"

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    description="Track daily meals against a diet and follow your best on-diet streak.",
)

register_exception_handlers(app)

# Add GZip compression for larger JSON payloads
app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    RateLimitMiddleware,
    max_requests=settings.rate_limit_max_requests(),
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    exempt_paths=(HEALTH_PATH,),
)

# Outside the rate limiter so rejected requests still get a request id
app.add_middleware(RequestContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)

# Include routers
app.include_router(users.router, prefix=settings.API_V1_STR, tags=["Users"])
app.include_router(auth.router, prefix=settings.API_V1_STR, tags=["Authentication"])
app.include_router(meals.router, prefix=settings.API_V1_STR, tags=["Meals"])
app.include_router(metrics.router, prefix=settings.API_V1_STR, tags=["Metrics"])

@app.on_event("startup")
async def startup_db_client():
    await initialize_database()
    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_db_client():
    """Application shutdown"""
    await engine.dispose()
    logger.info("Disposed SQL engine")

@app.get(HEALTH_PATH, tags=["Health"])
async def health_check():
    return {"status": "ok"}
