import logging
import logging.config
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
import uvicorn

# ------------------------------------------------------------
# 1. CONFIG & LOGGING
# ------------------------------------------------------------
from paydash.core.config import settings
from paydash.core.dependencies import wire_services
from paydash.core.exceptions import PaydashError, StoreUnavailable

LOG_LEVEL = "INFO" if settings.ENVIRONMENT == "production" else "DEBUG"

logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["console"], "level": LOG_LEVEL},
        "uvicorn.error": {"handlers": ["console"], "level": LOG_LEVEL},
        "uvicorn.access": {"handlers": ["console"], "level": LOG_LEVEL},
        "paydash": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

logging.config.dictConfig(logging_config)
logger = logging.getLogger("paydash")


class CustomProxyHeadersMiddleware(BaseHTTPMiddleware):
    """
    Handle X-Forwarded-For and X-Forwarded-Proto headers set by the
    reverse proxy in front of the API.
    """
    async def dispatch(self, request, call_next):
        x_forwarded_for = request.headers.get("x-forwarded-for")
        if x_forwarded_for:
            # Take the first IP in the list
            request.scope["client"] = (x_forwarded_for.split(",")[0].strip(), 0)

        x_forwarded_proto = request.headers.get("x-forwarded-proto")
        if x_forwarded_proto:
            request.scope["scheme"] = x_forwarded_proto

        return await call_next(request)


# ------------------------------------------------------------
# 2. FASTAPI APP
# ------------------------------------------------------------
app = FastAPI(
    title="Paydash API",
    description="Payment tracking dashboard: payments, live stats, real-time updates.",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ------------------------------------------------------------
# 3. CORS
# ------------------------------------------------------------
app.add_middleware(CustomProxyHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------------------------------------------
# 4. ROUTERS (API ROUTES)
# ------------------------------------------------------------
from paydash.routers import payment_router, websocket_router

app.include_router(payment_router.router, prefix="/api", tags=["Payments"])
app.include_router(websocket_router.router)

# ------------------------------------------------------------
# 5. SPECIFIC ROUTES
# ------------------------------------------------------------

@app.get("/health", tags=["System"])
async def health_check(request: Request):
    try:
        await request.app.state.store.ping()
        return {"status": "healthy", "store": settings.PAYMENT_STORE}
    except StoreUnavailable as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})

# ------------------------------------------------------------
# 6. EXCEPTION HANDLERS
# ------------------------------------------------------------
@app.exception_handler(PaydashError)
async def paydash_exception_handler(request: Request, exc: PaydashError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    content = {"success": False, "message": exc.message}
    if exc.detail is not None:
        content["detail"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Something went wrong. We're on it.",
            "request_id": request.headers.get("X-Request-ID"),
        },
    )

# ------------------------------------------------------------
# 7. STARTUP EVENTS
# ------------------------------------------------------------
@app.on_event("startup")
async def startup_event():
    wire_services(app.state, settings)
    logger.info(f"🚀 Paydash API started | Env: {settings.ENVIRONMENT} | Store: {settings.PAYMENT_STORE}")

    if settings.SEED_SAMPLE_DATA:
        try:
            seeded = await app.state.payment_service.seed_sample_data()
            logger.info(f"✅ Sample data seeded ({seeded} payments)")
        except PaydashError as e:
            logger.error(f"❌ Sample data seeding failed: {e.message}")

# ------------------------------------------------------------
# 8. REQUEST LOGGING MIDDLEWARE
# ------------------------------------------------------------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"➡️ {request.client.host if request.client else '-'} {request.method} {request.url.path}")
    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception(f"💥 Exception during {request.method} {request.url.path}: {e}")
        raise
    logger.info(f"⬅️ {request.method} {request.url.path} → {response.status_code}")
    return response

# ------------------------------------------------------------
# 9. RUN LOCALLY
# ------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug",
        access_log=True
    )
