import asyncio
import logging
from contextlib import asynccontextmanager
from config import Settings
from connection_pool import HTTPSessionManager
from dedup_store import build_dedup_store
from logger import configure_logging
from telegram_bot import TelegramNotifier
from webhook_server import WebhookServer

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(settings: Settings):
    """Own the outbound HTTP pool and the dedup store for the app lifetime"""
    session_manager = HTTPSessionManager(pool_size=settings.http_pool_size, timeout=settings.http_timeout)
    async with session_manager:
        async with build_dedup_store(settings) as store:
            logger.info(f"Dedup backend: {store.name}")
            yield session_manager, store

async def main(settings: Settings):
    logger.info(f"Telegram Bot Token: {'set' if settings.telegram_bot_token else 'NOT SET'}")
    logger.info(f"Telegram Chat ID: {'set' if settings.telegram_chat_id else 'NOT SET'}")

    async with lifespan(settings) as (session_manager, store):
        notifier = TelegramNotifier(settings, session_manager)
        webhook_server = WebhookServer(settings, store, notifier)
        try:
            await webhook_server.start()
            logger.info("Application startup complete")
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            logger.info("Received shutdown signal")
        finally:
            logger.info("Starting application shutdown")
            await webhook_server.stop()
            logger.info("Application shutdown complete")

def run():
    settings = Settings()
    configure_logging(settings.log_level, settings.log_file)
    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        logger.info("Application terminated by user")
    except Exception as e:
        logger.critical(f"Fatal error: {str(e)}", exc_info=True)
        raise

if __name__ == "__main__":
    run()
