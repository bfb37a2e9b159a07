import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import listeners  # noqa: F401  (subscribes domain event listeners)
from app.cache import cache
from app.config import settings
from app.exceptions import (
    AppError,
    app_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from app.middleware import SecurityHeadersMiddleware, TimingMiddleware
from app.routers import (
    admin_articles,
    admin_comments,
    admin_newsletter,
    admin_notifications,
    admin_taxonomy,
    admin_users,
    articles,
    auth,
    comments,
    media,
    newsletter,
    notifications,
    stats,
    taxonomy,
    users,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the cache degrades to a no-op when Redis is unreachable.
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()


app = FastAPI(
    title="Blog CMS API",
    description="Articles, comments, users, notifications and newsletter for a blog/CMS",
    version="1.0.0",
    lifespan=lifespan,
)

# Error handlers
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
for module in (
    auth,
    articles,
    comments,
    users,
    notifications,
    newsletter,
    taxonomy,
    media,
    admin_articles,
    admin_comments,
    admin_users,
    admin_taxonomy,
    admin_notifications,
    admin_newsletter,
    stats,
):
    app.include_router(module.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
