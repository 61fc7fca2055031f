import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from shop_admin.cache import NullCache, RedisCache
from shop_admin.config import settings
from shop_admin.exceptions import ServiceError
from shop_admin.logging_config import configure_logging
from shop_admin.middleware import TimingMiddleware
from shop_admin.routers import auth, metrics, products, users
from shop_admin.storage import LocalBlobStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    blobs = LocalBlobStore(settings.UPLOAD_DIR, settings.MAX_UPLOAD_SIZE, settings.ALLOWED_IMAGE_TYPES)
    blobs.ensure_dirs()
    app.state.blobs = blobs

    if settings.CACHE_ENABLED:
        cache = RedisCache(settings.REDIS_URL, default_ttl=settings.CACHE_TTL)
        await cache.connect()  # App works without Redis
    else:
        cache = NullCache()
    app.state.cache = cache
    yield
    # Shutdown
    if isinstance(cache, RedisCache):
        await cache.disconnect()


app = FastAPI(
    title="Shop Admin API",
    description="Users and products for an e-commerce admin panel",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error.", "errors": []})


# Routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(products.router)
app.include_router(metrics.router)

# Uploaded images, read-only.
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
