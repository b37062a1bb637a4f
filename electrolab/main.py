import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from electrolab.cache import cache
from electrolab.config import settings
from electrolab.errors import ServiceError
from electrolab.middleware import RequestMetricsMiddleware
from electrolab.routers import analytics, categories, comments, dashboard, public, tutorials

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable, continuing without Redis: %s", exc)
    yield
    await cache.disconnect()


app = FastAPI(
    title="Electrolab Content Admin API",
    description="Tutorials, categories, comment moderation and analytics for the electronics tutorial site",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestMetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error translation
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Routers
app.include_router(categories.router)
app.include_router(tutorials.router)
app.include_router(comments.router)
app.include_router(analytics.router)
app.include_router(dashboard.router)
app.include_router(public.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
