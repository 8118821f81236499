from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from starlette.exceptions import HTTPException as StarletteHTTPException

from reed.config import settings
from reed.api.api_keys import router as api_keys_router
from reed.api.charges import router as charges_router
from reed.api.email import router as email_router
from reed.api.showcase import router as showcase_router
from reed.api.signup_guard import router as signup_guard_router
from reed.api.webhooks import router as webhooks_router
from reed.middleware.cors import RouteAwareCORSMiddleware
from reed.middleware.rate_limit import RateLimitMiddleware
from reed.middleware.security import SecurityHeadersMiddleware

# Configure structlog
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        (
            structlog.dev.ConsoleRenderer()
            if settings.APP_ENV == "development"
            else structlog.processors.JSONRenderer()
        ),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(0),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info(
        "starting_up",
        env=settings.APP_ENV,
        coinbase_configured=bool(settings.COINBASE_API_KEY),
        webhook_secret_configured=bool(settings.COINBASE_WEBHOOK_SECRET),
        supabase_configured=bool(settings.SUPABASE_URL and settings.SUPABASE_SERVICE_KEY),
    )
    redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await redis.ping()
        log.info("redis_connected", url=settings.REDIS_URL)
    except Exception as e:
        log.warning("redis_connection_failed", error=str(e))
    app.state.redis = redis

    yield

    # Shutdown
    log.info("shutting_down")
    await redis.aclose()


app = FastAPI(
    title="Reed API",
    lifespan=lifespan,
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as ``{"error": ...}``."""
    detail = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


# CORS middleware for development; signup-guard and send-email set their own headers
app.add_middleware(
    RouteAwareCORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "development" else [],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SecurityHeadersMiddleware)

# Added last, so it is the outermost layer: a 429 skips the handlers entirely
app.add_middleware(RateLimitMiddleware)


app.include_router(webhooks_router)
app.include_router(charges_router)
app.include_router(signup_guard_router)
app.include_router(showcase_router)
app.include_router(api_keys_router)
app.include_router(email_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
