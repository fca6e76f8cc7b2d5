import asyncio
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .bot.repository import SqlBudgetRepository
from .bot.sessions import InMemorySessionStore
from .bot.telegram import TelegramGateway, TelegramPoller
from .bot.wizard import Wizard
from .config import Settings, settings as default_settings
from .core.errors import register_error_handlers
from .database import engine, init_db
from .routers import categories as categories_router
from .routers import fixed_expenses as fixed_expenses_router
from .routers import telegram as telegram_router
from .routers import transactions as transactions_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_wizard(settings: Settings):
    """Wire the chat wizard, or return ``(None, None)`` when no bot token is set."""
    if not settings.telegram_bot_token:
        logger.info("TELEGRAM_BOT_TOKEN not set, skipping bot init.")
        return None, None
    gateway = TelegramGateway(settings.telegram_bot_token, settings.telegram_api_url)
    wizard = Wizard(InMemorySessionStore(), SqlBudgetRepository(engine), gateway)
    return wizard, gateway


def create_app(settings: Settings = default_settings) -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="Household Budget – Backend", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    register_error_handlers(app)

    wizard, gateway = build_wizard(settings)
    app.state.wizard = wizard
    app.state.gateway = gateway
    app.state.poller_task = None

    @app.on_event("startup")
    async def on_startup():
        init_db()
        if wizard is not None and settings.telegram_polling:
            poller = TelegramPoller(gateway, wizard, timeout=settings.telegram_poll_timeout)
            app.state.poller_task = asyncio.create_task(poller.run())
        elif wizard is not None:
            logger.info("Telegram bot ready (webhook mode)")

    @app.on_event("shutdown")
    async def on_shutdown():
        task = app.state.poller_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if gateway is not None:
            await gateway.aclose()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(categories_router.router)
    app.include_router(transactions_router.router)
    app.include_router(fixed_expenses_router.router)
    app.include_router(telegram_router.router)

    return app


app = create_app()
