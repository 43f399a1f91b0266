import logging

from fastapi import APIRouter, Request
from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from app.config import TELEGRAM_BOT_TOKEN

# -------------------------------------------------
# LOGGING
# -------------------------------------------------
logger = logging.getLogger("telegram-webhook")

# -------------------------------------------------
# ENV
# -------------------------------------------------
if not TELEGRAM_BOT_TOKEN:
    raise RuntimeError("TELEGRAM_BOT_TOKEN missing")

# -------------------------------------------------
# IMPORT HANDLERS  (IMPORTANT: no 'backend.' prefix)
# -------------------------------------------------
from bot.handlers.start import start_message, help_message
from bot.handlers.pricing import pricing_command
from bot.handlers.text_router import text_router


# -------------------------------------------------
# ERROR HANDLER
# -------------------------------------------------
async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE):
    logger.error("Unhandled error", exc_info=context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text("❌ Algo deu errado. Tente de novo em instantes.")


# -------------------------------------------------
# TELEGRAM APPLICATION
# -------------------------------------------------
def build_telegram_app(token: str) -> Application:
    application = (
        Application.builder()
        .token(token)
        .build()
    )

    # ---- Commands ----
    application.add_handler(CommandHandler("start", start_message))
    application.add_handler(CommandHandler("ajuda", help_message))
    application.add_handler(CommandHandler("help", help_message))
    application.add_handler(CommandHandler("preco", pricing_command))

    # ---- Free text (non-command) ----
    application.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND, text_router)
    )

    application.add_error_handler(error_handler)
    return application


telegram_app: Application = build_telegram_app(TELEGRAM_BOT_TOKEN)

# -------------------------------------------------
# FASTAPI ROUTER
# -------------------------------------------------
router = APIRouter(prefix="/telegram")


# -------------------------------------------------
# WEBHOOK ENDPOINT
# -------------------------------------------------
@router.post("/webhook")
async def telegram_webhook(request: Request):
    """
    Receives Telegram webhook updates and routes them to PTB.
    """
    payload = await request.json()

    try:
        update = Update.de_json(payload, telegram_app.bot)
        await telegram_app.process_update(update)
    except Exception as e:
        logger.error("❌ Error processing Telegram update: %s", e)

    return {"ok": True}
