import logging

from telegram import Update
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "📋 Como pedir um preco:\n\n"
    "Diga a entrega, a exclusividade e o uso de imagem. Exemplos:\n"
    "• \"quanto cobrar por 1 reel + 3 stories, sem exclusividade, uso organico?\"\n"
    "• \"2 reels, exclusividade de 15 dias, 90 dias de impulsionamento\"\n"
    "• \"presenca em evento de 8h, viagem nacional, 2 noites, com 1 reel\"\n\n"
    "Se faltar algo, eu pergunto. Digite \"cancelar\" para recomecar."
)


async def start_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    logger.info("🟢 /start handler hit")

    message = update.effective_message
    if not message:
        return

    await message.reply_text(
        "👋 Oi! Eu calculo quanto cobrar por uma publi.\n\n"
        "💰 Voce recebe tres valores:\n"
        "• Estrategico: o piso para fechar uma parceria que vale pela vitrine\n"
        "• Justo: o valor recomendado para o seu alcance\n"
        "• Premium: o teto da negociacao\n\n"
        "📊 Uso o seu alcance medio, o CPM do seu nicho e as publis que voce ja fechou.\n\n"
        + HELP_TEXT
    )


async def help_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    message = update.effective_message
    if not message:
        return

    await message.reply_text(HELP_TEXT)
