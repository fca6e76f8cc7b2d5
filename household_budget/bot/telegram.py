import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from .events import ButtonPressed, Command, InboundEvent, TextMessage
from .prompts import Reply

logger = logging.getLogger(__name__)


class TelegramError(Exception):
    pass


# ─────────────────────────────
#   UPDATE PAYLOADS
# ─────────────────────────────

class TelegramUser(BaseModel):
    id: int
    first_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int


class TelegramMessage(BaseModel):
    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None


class TelegramCallbackQuery(BaseModel):
    id: str
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None


def _sender(user: Optional[TelegramUser]) -> str:
    if user is None:
        return ""
    return user.first_name or user.username or ""


def parse_update(update: TelegramUpdate) -> Optional[InboundEvent]:
    """Map a Telegram update onto a wizard event; ``None`` for anything we ignore."""
    query = update.callback_query
    if query is not None:
        if query.message is None or query.data is None:
            return None
        return ButtonPressed(
            conversation_id=query.message.chat.id,
            sender=_sender(query.from_user),
            data=query.data,
            callback_id=query.id,
            message_id=query.message.message_id,
        )

    message = update.message
    if message is None or not message.text:
        return None
    text = message.text.strip()
    if text.startswith("/"):
        # "/start@MyBot args" -> "start"
        name = text[1:].split()[0].split("@")[0].lower() if len(text) > 1 else ""
        return Command(message.chat.id, _sender(message.from_user), name)
    return TextMessage(message.chat.id, _sender(message.from_user), text)


# ─────────────────────────────
#   OUTBOUND
# ─────────────────────────────

class TelegramGateway:
    """Sends, edits and acknowledges through the Bot API. Transport failures are
    logged; the wizard has already committed its state by the time we get here."""

    def __init__(self, token: str, api_url: str = "https://api.telegram.org", client: Optional[httpx.AsyncClient] = None):
        self.base_url = f"{api_url.rstrip('/')}/bot{token}"
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(40.0))

    async def call(self, method: str, payload: Dict[str, Any]) -> Optional[Any]:
        try:
            response = await self.client.post(f"{self.base_url}/{method}", json=payload)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Telegram %s failed: %s", method, e)
            return None
        if not body.get("ok"):
            logger.error("Telegram %s rejected: %s", method, body.get("description"))
            return None
        return body.get("result")

    @staticmethod
    def _payload(chat_id: int, reply: Reply) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": reply.text}
        if reply.parse_mode:
            payload["parse_mode"] = reply.parse_mode
        markup = reply.to_markup()
        if markup:
            payload["reply_markup"] = markup
        return payload

    async def send_message(self, chat_id: int, reply: Reply) -> None:
        await self.call("sendMessage", self._payload(chat_id, reply))

    async def edit_message(self, chat_id: int, message_id: int, reply: Reply) -> None:
        payload = self._payload(chat_id, reply)
        payload["message_id"] = message_id
        await self.call("editMessageText", payload)

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        await self.call("answerCallbackQuery", payload)

    async def get_updates(self, offset: Optional[int], timeout: int) -> List[TelegramUpdate]:
        payload: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message", "callback_query"]}
        if offset is not None:
            payload["offset"] = offset
        result = await self.call("getUpdates", payload)
        if result is None:
            raise TelegramError("getUpdates failed")
        return [TelegramUpdate.model_validate(item) for item in result]

    async def aclose(self) -> None:
        await self.client.aclose()


class TelegramPoller:
    """Long-polling loop for deployments without a public webhook URL."""

    def __init__(self, gateway: TelegramGateway, wizard, timeout: int = 30, retry_delay: float = 5.0):
        self.gateway = gateway
        self.wizard = wizard
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.offset: Optional[int] = None
        self._tasks: set = set()

    async def dispatch(self, update: TelegramUpdate) -> None:
        event = parse_update(update)
        if event is None:
            return
        try:
            await self.wizard.handle(event)
        except Exception:
            logger.exception("Update %s failed", update.update_id)

    async def poll_once(self) -> int:
        updates = await self.gateway.get_updates(self.offset, self.timeout)
        for update in updates:
            self.offset = update.update_id + 1
            # Handled concurrently; the wizard serializes per conversation.
            task = asyncio.create_task(self.dispatch(update))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return len(updates)

    async def run(self) -> None:
        logger.info("Telegram polling started")
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Polling iteration failed")
                await asyncio.sleep(self.retry_delay)
