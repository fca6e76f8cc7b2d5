import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ..bot.telegram import TelegramUpdate, parse_update
from ..bot.wizard import Wizard
from ..config import settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/telegram",
    tags=["telegram"],
)


def get_wizard(request: Request) -> Wizard:
    wizard = getattr(request.app.state, "wizard", None)
    if wizard is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="הבוט לא מוגדר (TELEGRAM_BOT_TOKEN חסר)",
        )
    return wizard


def check_secret(x_telegram_bot_api_secret_token: Optional[str] = Header(default=None)) -> None:
    expected = settings.telegram_webhook_secret
    if expected and x_telegram_bot_api_secret_token != expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook secret")


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(check_secret)],
)
async def telegram_webhook(update: TelegramUpdate, wizard: Wizard = Depends(get_wizard)):
    """Entry point for Telegram updates when the bot runs in webhook mode."""
    event = parse_update(update)
    if event is None:
        logger.debug("Ignoring update %s", update.update_id)
        return {"ok": True}
    await wizard.handle(event)
    return {"ok": True}
