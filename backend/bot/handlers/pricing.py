# backend/bot/handlers/pricing.py

import logging
from typing import Any, Dict, Optional, cast

from telegram import Message, Update
from telegram.ext import ContextTypes

from app.routes.pricing import get_pricing_cache, get_pricing_flags, get_pricing_resolvers
from app.services.pricing_service import run_chat_pricing, run_provisional_pricing
from app.services.response_formatter import (
    BUTTON_ADJUST,
    BUTTON_COUNTER_PROPOSAL,
    BUTTON_PROVISIONAL,
    build_adjust_prompt,
    build_counterproposal,
    build_missing_context_reply,
)
from app.utils.helpers import normalize_text
from bot.keyboards.quick_replies import split_reply

logger = logging.getLogger(__name__)

PRICING_MODE = "pricing"

# keys cleared whenever the conversation starts over
PENDING_KEYS = ("mode", "pricing_text", "provisional_text")


def clear_pending(user_data: Dict[str, Any]) -> None:
    for key in PENDING_KEYS:
        user_data.pop(key, None)


async def _send(message: Message, reply: str) -> None:
    reply_text, keyboard = split_reply(reply)
    await message.reply_text(reply_text, reply_markup=keyboard)


async def _reply_with_pricing(
    message: Message,
    user_id: str,
    user_data: Dict[str, Any],
    text: str,
) -> bool:
    """
    user_data state:
        mode="pricing" + pricing_text -> waiting for missing terms,
                                         next message gets appended
        provisional_text              -> request that hit missing metrics,
                                         priced by the provisional button
        last_topic                    -> last priced request
        last_quote                    -> PricingResult behind the counterproposal
    """
    response = await run_chat_pricing(
        text,
        user_id,
        get_pricing_resolvers(),
        flags=get_pricing_flags(),
        previous_topic=user_data.get("last_topic"),
        cache=get_pricing_cache(),
    )

    if not response.handled:
        return False

    clear_pending(user_data)
    if response.outcome == "clarification":
        user_data["mode"] = PRICING_MODE
        user_data["pricing_text"] = text
    else:
        user_data["last_topic"] = text
        if response.outcome == "insufficient_data":
            user_data["provisional_text"] = text
        elif response.outcome == "priced":
            user_data["last_quote"] = response.result

    logger.info(f"[BOT_PRICING] {user_id} → {response.outcome}")

    await _send(message, response.reply)
    return True


# -------------------------------------------------
# FOLLOW-UP BUTTONS
# -------------------------------------------------
async def _answer_follow_up(
    message: Message,
    user_id: str,
    user_data: Dict[str, Any],
    text: str,
) -> Optional[bool]:
    """
    Buttons the bot offered after a reply. Returns None when the
    text is not one of them. Runs before parsing: "contraproposta"
    alone would read as a new price request.
    """
    choice = normalize_text(text)

    if choice == normalize_text(BUTTON_COUNTER_PROPOSAL):
        quote = user_data.get("last_quote")
        await _send(message, build_counterproposal(quote) if quote else build_missing_context_reply())
        return True

    if choice == normalize_text(BUTTON_ADJUST):
        clear_pending(user_data)
        await _send(message, build_adjust_prompt())
        return True

    if choice == normalize_text(BUTTON_PROVISIONAL):
        pending = user_data.get("provisional_text")
        if not pending:
            await _send(message, build_missing_context_reply())
            return True

        response = await run_provisional_pricing(
            pending,
            user_id,
            get_pricing_resolvers(),
            flags=get_pricing_flags(),
        )
        clear_pending(user_data)
        logger.info(f"[BOT_PRICING] {user_id} → {response.outcome}")
        await _send(message, response.reply)
        return True

    return None


# -------------------------------------------------
# FREE TEXT
# -------------------------------------------------
async def chat_pricing_reply(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    """
    Returns False when the message is not about pricing.
    """
    message = update.effective_message
    user = update.effective_user
    if not message or not message.text or not user:
        return False

    user_data = cast(Dict[str, Any], context.user_data if context.user_data is not None else {})

    text = message.text.strip()
    answered = await _answer_follow_up(message, str(user.id), user_data, text)
    if answered is not None:
        return answered

    if user_data.get("mode") == PRICING_MODE and user_data.get("pricing_text"):
        text = f"{user_data['pricing_text']} {text}"

    return await _reply_with_pricing(message, str(user.id), user_data, text)


# -------------------------------------------------
# /preco COMMAND
# -------------------------------------------------
async def pricing_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    /preco 1 reel + 3 stories, sem exclusividade, uso organico
    """
    message = update.effective_message
    user = update.effective_user
    if not message or not user:
        return

    args = " ".join(context.args or []).strip()
    if not args:
        await message.reply_text(
            "💰 Me conte a entrega e as condicoes da publi.\n\n"
            "Exemplo:\n"
            "/preco 1 reel + 3 stories, exclusividade de 15 dias, midia paga"
        )
        return

    user_data = cast(Dict[str, Any], context.user_data if context.user_data is not None else {})

    # the command itself is the price intent
    await _reply_with_pricing(message, str(user.id), user_data, f"quanto cobrar: {args}")
