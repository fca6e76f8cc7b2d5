import asyncio
from typing import List, Optional

from household_budget.bot.events import ButtonPressed, TextMessage
from household_budget.bot.wizard import CategoryCatalog, CategoryRef, CreateCategory, RecordTransaction
from household_budget.core.errors import PersistenceError

CHAT = 1001


class FakeGateway:
    def __init__(self):
        self.calls: List[tuple] = []

    async def send_message(self, chat_id, reply):
        self.calls.append(("send", chat_id, reply))

    async def edit_message(self, chat_id, message_id, reply):
        self.calls.append(("edit", chat_id, reply, message_id))

    async def answer_callback(self, callback_id, text=None):
        self.calls.append(("answer", callback_id, text))

    def last(self, kind: Optional[str] = None):
        calls = [c for c in self.calls if kind is None or c[0] == kind]
        return calls[-1] if calls else None


class FakeRepository:
    def __init__(self, categories=()):
        self.categories = list(categories)
        self.transactions: List[RecordTransaction] = []
        self.fail_category = False
        self.fail_transaction = False
        self.fail_catalog = False
        self._next_id = 100

    async def load_catalog(self):
        if self.fail_catalog:
            raise PersistenceError("database is locked")
        return CategoryCatalog(self.categories)

    async def create_category(self, action: CreateCategory) -> int:
        if self.fail_category:
            raise PersistenceError("disk I/O error")
        self._next_id += 1
        self.categories.append(CategoryRef(self._next_id, action.name, action.type, action.parent_id))
        return self._next_id

    async def record_transaction(self, action: RecordTransaction) -> int:
        await asyncio.sleep(0)
        if self.fail_transaction:
            raise PersistenceError("disk I/O error")
        self.transactions.append(action)
        return len(self.transactions)


def text(body, chat=CHAT, sender="דנה"):
    return TextMessage(conversation_id=chat, sender=sender, text=body)


def press(data, chat=CHAT, message_id=55, callback_id="cb"):
    return ButtonPressed(conversation_id=chat, sender="דנה", data=data, callback_id=callback_id, message_id=message_id)


SEED = [
    CategoryRef(1, "מזון", "expense"),
    CategoryRef(2, "ביטוחים", "expense"),
    CategoryRef(3, "חיים", "expense", parent_id=2),
    CategoryRef(4, "בריאות", "expense", parent_id=2),
    CategoryRef(5, "משכורת", "income"),
]
