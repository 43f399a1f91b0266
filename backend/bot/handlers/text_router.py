# backend/bot/handlers/text_router.py

from __future__ import annotations

from typing import Dict, Any, cast

from telegram import Update
from telegram.ext import ContextTypes

from bot.handlers.pricing import chat_pricing_reply, clear_pending
from bot.handlers.start import help_message

CANCEL_WORDS = ("cancelar", "cancela", "sair")
HELP_WORDS = ("ajuda", "help", "menu")


async def text_router(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Single entry point for ALL non-command text messages.
    Handles:
        ✓ Cancel of a pending pricing question or provisional offer
        ✓ Help keywords
        ✓ Chat pricing (incl. answers to a clarification)
        ✓ Fallback help
    """

    message = update.message
    if message is None or not message.text:
        return

    text_lower = message.text.strip().lower()

    user_data = cast(Dict[str, Any], context.user_data if context.user_data is not None else {})

    # =====================================================
    # 1) CANCEL PENDING PRICING QUESTION
    # =====================================================
    if text_lower in CANCEL_WORDS:
        clear_pending(user_data)
        await message.reply_text("👍 Ok, cancelei. Quando quiser, me mande a proxima proposta.")
        return

    # =====================================================
    # 2) HELP KEYWORDS
    # =====================================================
    if text_lower in HELP_WORDS:
        await help_message(update, context)
        return

    # =====================================================
    # 3) CHAT PRICING
    # =====================================================
    if await chat_pricing_reply(update, context):
        return

    # =====================================================
    # 4) FALLBACK
    # =====================================================
    await message.reply_text(
        "🤔 Nao entendi como proposta de publi.\n"
        "Me diga a entrega e as condicoes, por exemplo:\n"
        "\"quanto cobrar por 1 reel, sem exclusividade, uso organico?\""
    )
