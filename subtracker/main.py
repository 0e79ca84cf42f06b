"""
FastAPI application factory
"""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from subtracker.api.deps import get_notifier, get_search_index
from subtracker.api.v1 import subscriptions
from subtracker.application.reminders import sync_reminders
from subtracker.application.search_index import sync_search_index
from subtracker.config import get_settings
from subtracker.infrastructure.db.session import check_db_connection, get_session_factory, init_db
from subtracker.infrastructure.store import SubscriptionStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Catches ALL exceptions including sync routes"""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            tb_str = traceback.format_exc()
            logger.error(f"\n{'='*60}\nERROR on {request.method} {request.url.path}\n{tb_str}{'='*60}")
            return Response(content=f"Internal Server Error: {exc}", status_code=500)


def _resync_collaborators() -> None:
    """Rebuild reminders and search index from the stored list on startup."""
    settings = get_settings()
    now = settings.local_now()
    db = get_session_factory()()
    try:
        subs = SubscriptionStore(db).load()
    finally:
        db.close()

    notifier = get_notifier()
    if notifier is not None:
        notifier.start()
        n = sync_reminders(notifier, subs, now, settings.REMINDER_DAYS)
        logger.info("Scheduled %d reminder(s) for %d subscription(s)", n, len(subs))
    sync_search_index(get_search_index(), subs, now, settings.SEARCH_ITEM_TTL_DAYS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    _resync_collaborators()
    yield
    notifier = get_notifier()
    if notifier is not None:
        notifier.shutdown()


def create_app() -> FastAPI:
    """
    Application factory - создаёт и настраивает FastAPI приложение

    Returns:
        Настроенный FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="SubTracker",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.add_middleware(ErrorLoggingMiddleware)

    app.include_router(subscriptions.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready():
        """Readiness check endpoint (проверяет доступность БД)"""
        check_db_connection()
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "subtracker.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
