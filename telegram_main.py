import logging
import os

import telebot
from dotenv import load_dotenv

from application.services import GameService
from application.settings import GameSettings
from infrastructure.db.kv_store_sqlite import SqliteKeyValueStore
from interfaces.telegram.handlers import create_telegram_bot
from interfaces.telegram.notifier import TelegramNotifier


load_dotenv()

BOT_TOKEN = os.environ.get("BOT_TOKEN")
DB_PATH = os.environ.get("DB_PATH", "tictactoe.db")
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def main() -> None:
    if not BOT_TOKEN:
        raise RuntimeError("BOT_TOKEN environment variable is not set.")

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    store = SqliteKeyValueStore(DB_PATH)
    bot = telebot.TeleBot(BOT_TOKEN)

    service = GameService(
        store,
        TelegramNotifier(bot, lambda player_id: service.language_of(player_id)),
        settings=GameSettings.from_env(),
    )

    service.prune_finished_matches()
    create_telegram_bot(bot, service, admin_username=ADMIN_USERNAME)
    logging.getLogger(__name__).info("Bot started with database %s", DB_PATH)
    bot.infinity_polling()


if __name__ == "__main__":
    main()
