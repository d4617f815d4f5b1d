import asyncio
import logging
import os
import sys

from src.config import Settings, AppConfig, generate_default_config
from src.inventory import InventoryStore
from src.bot.telegram_bot import create_bot, create_dispatcher, register_commands


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> None:
    # Check for first run and generate default config if needed
    config_path = os.environ.get("CONFIG_PATH", "config/config.yaml")
    if generate_default_config(config_path):
        logger.info(f"Created default config at {config_path}")

    # Load configuration
    try:
        settings = Settings()
        config = AppConfig(settings)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level)
    logger.info("Configuration loaded")

    store = InventoryStore(json_path=config.inventory.data_path)

    bot = create_bot(config.telegram_bot_token)
    dp = create_dispatcher(config.telegram_allowed_users)
    register_commands(dp, store, confirmation_config=config.confirmation)

    logger.info("Starting Telegram bot...")

    try:
        # Run bot until shutdown (aiogram handles SIGINT/SIGTERM)
        await dp.start_polling(bot)
    finally:
        logger.info("Shutting down...")
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
