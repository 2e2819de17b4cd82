import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.cache import cache
from marketplace.exceptions import register_exception_handlers
from marketplace.logging_config import configure_logging
from marketplace.middleware import TimingMiddleware
from marketplace.routers import categories, metrics, payouts, sellers, services, users

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable, continuing without Redis: %s", exc)
    yield
    # Shutdown
    await cache.disconnect()


app = FastAPI(
    title="Marketplace Catalog API",
    description="Services, categories, sellers and payouts with cursor-paginated listings",
    version=VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Response-Time-Ms", "X-Query-Count", "X-Correlation-ID"],
)

# Routers (categories first: its prefix nests under /services)
app.include_router(categories.router)
app.include_router(services.router)
app.include_router(sellers.router)
app.include_router(payouts.router)
app.include_router(users.router)
app.include_router(metrics.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}
