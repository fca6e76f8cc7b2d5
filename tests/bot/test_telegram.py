import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from household_budget.bot.events import ButtonPressed, Command, TextMessage
from household_budget.bot.prompts import Reply, note_prompt, saved, sub_prompt, type_prompt
from household_budget.bot.telegram import (
    TelegramError,
    TelegramGateway,
    TelegramPoller,
    TelegramUpdate,
    parse_update,
)
from household_budget.bot.wizard import CategoryRef
from household_budget.main import app
from household_budget.routers.telegram import get_wizard


def message_update(text, update_id=1, chat_id=42, first_name="דנה"):
    return {
        "update_id": update_id,
        "message": {
            "message_id": 10,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": 7, "is_bot": False, "first_name": first_name},
            "date": 0,
            "text": text,
        },
    }


def callback_update(data, update_id=2, chat_id=42):
    return {
        "update_id": update_id,
        "callback_query": {
            "id": "cbq-1",
            "from": {"id": 7, "is_bot": False, "first_name": "דנה"},
            "message": {"message_id": 11, "chat": {"id": chat_id, "type": "private"}, "date": 0},
            "data": data,
        },
    }


class TestParseUpdate:
    def test_text(self):
        event = parse_update(TelegramUpdate.model_validate(message_update(" 120 ")))

        assert event == TextMessage(conversation_id=42, sender="דנה", text="120")

    def test_callback(self):
        event = parse_update(TelegramUpdate.model_validate(callback_update("type_expense")))

        assert event == ButtonPressed(
            conversation_id=42, sender="דנה", data="type_expense", callback_id="cbq-1", message_id=11
        )

    def test_commands(self):
        assert parse_update(TelegramUpdate.model_validate(message_update("/start"))) == Command(42, "דנה", "start")
        assert parse_update(TelegramUpdate.model_validate(message_update("/cancel@budget_bot now"))).name == "cancel"

    def test_non_text_ignored(self):
        update = message_update(None)
        update["message"].pop("text")

        assert parse_update(TelegramUpdate.model_validate(update)) is None
        assert parse_update(TelegramUpdate(update_id=5)) is None


class TestGateway:
    @pytest.mark.asyncio
    async def test_send_with_keyboard(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

        gateway = TelegramGateway("TOKEN", "https://tg.test", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        await gateway.send_message(42, type_prompt(Decimal("100")))
        await gateway.edit_message(42, 9, Reply("x", parse_mode="Markdown"))
        await gateway.answer_callback("cb", "הסשן פג תוקף")
        await gateway.aclose()

        assert [path for path, _ in seen] == [
            "/botTOKEN/sendMessage",
            "/botTOKEN/editMessageText",
            "/botTOKEN/answerCallbackQuery",
        ]
        sent = seen[0][1]
        assert sent["chat_id"] == 42
        assert [b["callback_data"] for b in sent["reply_markup"]["inline_keyboard"][0]] == ["type_expense", "type_income"]
        assert seen[1][1] == {"chat_id": 42, "text": "x", "parse_mode": "Markdown", "message_id": 9}
        assert seen[2][1] == {"callback_query_id": "cb", "text": "הסשן פג תוקף"}

    @pytest.mark.asyncio
    async def test_transport_errors_are_swallowed_and_logged(self, caplog):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        gateway = TelegramGateway("TOKEN", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        await gateway.send_message(1, Reply("hi"))

        assert "sendMessage failed" in caplog.text

    @pytest.mark.asyncio
    async def test_get_updates_failure_raises(self):
        def handler(request):
            return httpx.Response(401, json={"ok": False, "description": "Unauthorized"})

        gateway = TelegramGateway("BAD", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(TelegramError):
            await gateway.get_updates(None, 0)


class TestPromptFormatting:
    def test_user_text_is_escaped(self):
        reply = saved(Decimal("12.5"), "<ביטוח_רכב>", note="a*b & c")

        assert reply.parse_mode == "HTML"
        assert "<b>&lt;ביטוח_רכב&gt;</b>" in reply.text
        assert "הערה: a*b &amp; c" in reply.text

    def test_category_names_are_escaped(self):
        parent = CategoryRef(2, "R&D", "expense")

        assert "<b>R&amp;D</b>" in sub_prompt(parent, [CategoryRef(3, "x", "expense", parent_id=2)]).text
        assert "<b>a&lt;b</b>" in note_prompt("a<b").text


class RecordingWizard:
    def __init__(self):
        self.events = []

    async def handle(self, event):
        self.events.append(event)


class TestPoller:
    @pytest.mark.asyncio
    async def test_poll_once_dispatches_and_advances_offset(self):
        def handler(request):
            return httpx.Response(
                200, json={"ok": True, "result": [message_update("50", update_id=8), callback_update("note_skip", update_id=9)]}
            )

        gateway = TelegramGateway("TOKEN", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        wizard = RecordingWizard()
        poller = TelegramPoller(gateway, wizard, timeout=0)

        count = await poller.poll_once()
        await asyncio.sleep(0.01)

        assert count == 2
        assert poller.offset == 10
        assert [type(e) for e in wizard.events] == [TextMessage, ButtonPressed]


class TestWebhook:
    @pytest.fixture
    def wizard(self):
        recording = RecordingWizard()
        app.dependency_overrides[get_wizard] = lambda: recording
        return recording

    def test_forwards_event(self, client, wizard):
        response = client.post("/telegram/webhook", json=message_update("75"))

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert wizard.events == [TextMessage(42, "דנה", "75")]

    def test_ignored_update(self, client, wizard):
        response = client.post("/telegram/webhook", json={"update_id": 3})

        assert response.status_code == 200
        assert wizard.events == []

    def test_bot_disabled_without_token(self, client, monkeypatch):
        monkeypatch.setattr(app.state, "wizard", None)

        response = client.post("/telegram/webhook", json=message_update("75"))

        assert response.status_code == 503
        assert "error" in response.json()
