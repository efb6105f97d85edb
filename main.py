import logging
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.base import Base
from app.db.session import engine
from app.core.config import settings
from app.api import deps
from app.api.v1.api import api_router
from app.api.errors import register_exception_handlers
from app.core.cache import init_redis, close_redis
from app.core.events import RedisChangeFeed, close_change_feed, get_change_feed

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, connect Redis and pick the change feed; undo it all on shutdown."""
    logger.info("Starting %s (%s)...", settings.PROJECT_NAME, settings.ENVIRONMENT)

    # Alembic owns the schema in deployed environments; this covers local SQLite
    Base.metadata.create_all(bind=engine)

    if settings.ENABLE_REDIS:
        try:
            await init_redis()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error(f"Failed to initialize Redis: {str(e)}")
            if not settings.DEBUG:
                raise
            logger.warning("Running without Redis - change events stay local to this worker")

    feed = get_change_feed()
    logger.info("Change feed: %s", type(feed).__name__)

    if not settings.IDENTITY_API_KEY:
        logger.warning("IDENTITY_API_KEY is not set; sign-in and token checks will fail")

    yield

    logger.info("Shutting down...")
    await close_change_feed()

    if settings.ENABLE_REDIS:
        await close_redis()
        logger.info("Redis connection closed")

app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/health")
def health_check(db: Session = Depends(deps.get_db)):
    """Liveness plus a database round trip."""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {str(e)}")
        database = "unreachable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "version": settings.PROJECT_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database,
        "change_feed": "redis" if isinstance(get_change_feed(), RedisChangeFeed) else "local",
    }
