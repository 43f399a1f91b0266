from typing import List, Tuple, Union

from telegram import KeyboardButton, ReplyKeyboardMarkup, ReplyKeyboardRemove

from app.services.response_formatter import MAX_BUTTONS, extract_buttons, strip_buttons


def quick_reply_keyboard(labels: List[str]) -> Union[ReplyKeyboardMarkup, ReplyKeyboardRemove]:
    """
    Two buttons per row; tapping one sends its label as a normal message.
    """
    labels = labels[:MAX_BUTTONS]
    if not labels:
        return ReplyKeyboardRemove()

    keyboard = [
        [KeyboardButton(label) for label in labels[i:i + 2]]
        for i in range(0, len(labels), 2)
    ]
    return ReplyKeyboardMarkup(keyboard, resize_keyboard=True, one_time_keyboard=True)


def split_reply(text: str) -> Tuple[str, Union[ReplyKeyboardMarkup, ReplyKeyboardRemove]]:
    """
    "...\\n[BUTTON: Reels]\\n[BUTTON: Stories]" -> ("...", keyboard[Reels, Stories])
    """
    return strip_buttons(text), quick_reply_keyboard(extract_buttons(text))
