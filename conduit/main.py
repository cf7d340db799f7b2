import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conduit.cache import tag_cache
from conduit.config import settings
from conduit.errors import install_error_handlers
from conduit.middleware import RequestLogMiddleware
from conduit.routers import articles, drafts, profiles, tags

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await tag_cache.connect()
    except Exception as exc:
        # The tag list is served from the database when Redis is unavailable.
        logger.warning("Tag cache unavailable: %s", exc)
    yield
    await tag_cache.disconnect()


app = FastAPI(
    title="Conduit API",
    description="Article publishing backend: drafts, publication, tags, comments, favorites",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# Routers
app.include_router(articles.router)
app.include_router(drafts.router)
app.include_router(profiles.router)
app.include_router(tags.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
