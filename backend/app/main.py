# -------------------------------------------------
# STANDARD IMPORTS
# -------------------------------------------------
import logging

from fastapi import FastAPI, status

from app.config import LOG_LEVEL, TELEGRAM_BOT_TOKEN
from app.routes.pricing import router as pricing_router

# -------------------------------------------------
# LOGGING SETUP
# -------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("publi-pricing")

# -------------------------------------------------
# FASTAPI APP
# -------------------------------------------------
app = FastAPI(
    title="Publi Pricing API",
    version="1.0.0",
)

# -------------------------------------------------
# ROUTERS
# -------------------------------------------------
app.include_router(pricing_router)

# chat surface is optional: no token, no webhook
telegram_app = None
if TELEGRAM_BOT_TOKEN:
    from app.routes.telegram_webhook import router as telegram_router
    from app.routes.telegram_webhook import telegram_app

    app.include_router(telegram_router)
else:
    logger.info("ℹ️ TELEGRAM_BOT_TOKEN not set, Telegram webhook disabled")

# -------------------------------------------------
# STARTUP / SHUTDOWN LIFECYCLE
# -------------------------------------------------
@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Startup event triggered")

    if telegram_app is None:
        return
    try:
        await telegram_app.initialize()
        logger.info("🤖 Telegram bot initialized")
    except Exception as e:
        logger.error(f"❌ Telegram init failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    if telegram_app is None:
        return
    try:
        await telegram_app.shutdown()
        logger.info("🛑 Telegram bot shutdown")
    except Exception as e:
        logger.error(f"❌ Telegram shutdown failed: {e}")

# -------------------------------------------------
# HEALTH CHECK (NO DB REQUIRED)
# -------------------------------------------------
@app.get("/health", status_code=status.HTTP_200_OK)
def health():
    return {"status": "ok", "telegram": telegram_app is not None}
