# backend/bot/polling.py
#
# Local development: runs the same handlers as the webhook, via long polling.
#   cd backend && python -m bot.polling

import logging

from app.config import LOG_LEVEL, get_required_env

# ---------- LOGGING ----------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("bot")


# ---------- MAIN ----------
def main():
    get_required_env("TELEGRAM_BOT_TOKEN")

    from app.routes.telegram_webhook import telegram_app

    logger.info("🤖 Publi pricing bot starting (polling)...")
    telegram_app.run_polling()


if __name__ == "__main__":
    main()
