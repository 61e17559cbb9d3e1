import asyncio
import logging

from aiogram import Bot, Dispatcher

from listingdesk.bot.handlers import admin_listings as admin_listings_handlers
from listingdesk.bot.handlers import owner_payments as owner_payments_handlers
from listingdesk.bot.middlewares.correlation import CorrelationMiddleware
from listingdesk.config import settings
from listingdesk.db.session import dispose_engine
from listingdesk.logging_config import setup_logging
from listingdesk.services.notifications import aclose_bot
from listingdesk.storage.receipts import aclose_storage

try:
    # Optional: load .env in non-production environments
    from dotenv import load_dotenv  # type: ignore
    load_dotenv()
except ImportError:
    pass


async def main() -> None:
    setup_logging()

    token = settings.telegram_bot_token
    if not token:
        logging.error("TELEGRAM_BOT_TOKEN is not set; put it in the .env file.")
        raise SystemExit(1)
    if not settings.db_url:
        logging.error("DB_URL is not set; put it in the .env file.")
        raise SystemExit(1)

    bot = Bot(token=token)
    dp = Dispatcher()

    # Correlation id middleware for observability
    corr = CorrelationMiddleware()
    dp.message.middleware(corr)
    dp.callback_query.middleware(corr)

    # Admin commands first, then the owner commands and receipt uploads
    dp.include_router(admin_listings_handlers.router)
    dp.include_router(owner_payments_handlers.router)

    logging.info("Starting Telegram bot polling ...")
    await bot.delete_webhook(drop_pending_updates=True)
    try:
        await dp.start_polling(bot)
    finally:
        await aclose_bot()
        await aclose_storage()
        await dispose_engine()
        await bot.session.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
