import asyncio
from decimal import Decimal

import pytest

from household_budget.bot.events import (
    AmountEntered,
    NewCategoryNamed,
    NewCategoryRequested,
    NoteChosen,
    NoteEntered,
    ParentChosen,
    SubChosen,
    TypeChosen,
    Unrecognized,
    parse_amount,
    parse_button,
    parse_text,
)
from household_budget.bot.sessions import InMemorySessionStore, Step, WizardSession
from household_budget.models.category import CategoryType


def _session(step=Step.TYPE):
    return WizardSession(step=step, amount=Decimal("10"), added_by="דנה")


class TestSessionStore:
    def test_get_set_delete(self):
        store = InMemorySessionStore()
        assert store.get(1) is None

        store.set(1, _session())
        store.set(1, _session(Step.PARENT_CATEGORY))

        assert len(store) == 1
        assert store.get(1).step == Step.PARENT_CATEGORY

        store.delete(1)
        store.delete(1)
        assert store.get(1) is None

    def test_advance_returns_new_value(self):
        original = _session()

        advanced = original.advance(Step.PARENT_CATEGORY, type="expense")

        assert original.step == Step.TYPE
        assert original.type is None
        assert advanced.type == "expense"

    @pytest.mark.asyncio
    async def test_lock_serializes_one_conversation(self):
        store = InMemorySessionStore()
        order = []

        async def worker(name):
            async with store.lock(7):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert store.active_locks == 0

    @pytest.mark.asyncio
    async def test_lock_does_not_block_other_conversations(self):
        store = InMemorySessionStore()
        entered = asyncio.Event()

        async def holder():
            async with store.lock(1):
                await asyncio.wait_for(entered.wait(), timeout=1)

        async def other():
            async with store.lock(2):
                entered.set()

        await asyncio.gather(holder(), other())
        assert store.active_locks == 0


class TestParsing:
    @pytest.mark.parametrize(
        "raw,expected",
        [("100", Decimal("100")), (" 12.5 ", Decimal("12.5")), ("1,250", Decimal("1250")), ("-3", Decimal("-3"))],
    )
    def test_amounts(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", "nan", "Infinity", "12a", "1e30", "10000000000"])
    def test_not_amounts(self, raw):
        assert parse_amount(raw) is None

    @pytest.mark.parametrize(
        "data,intent",
        [
            ("type_expense", TypeChosen(CategoryType.EXPENSE)),
            ("type_income", TypeChosen(CategoryType.INCOME)),
            ("parent_12", ParentChosen(12)),
            ("sub_3", SubChosen(3)),
            ("new_parent", NewCategoryRequested(sub=False)),
            ("new_sub", NewCategoryRequested(sub=True)),
            ("note_add", NoteChosen(add=True)),
            ("note_skip", NoteChosen(add=False)),
        ],
    )
    def test_buttons(self, data, intent):
        assert parse_button(data) == intent

    @pytest.mark.parametrize("data", ["type_savings", "parent_x", "sub_", "hello"])
    def test_unknown_buttons(self, data):
        assert parse_button(data) == Unrecognized(data, button=True)

    def test_text_depends_on_step(self):
        assert parse_text(None, "40") == AmountEntered(Decimal("40"))
        assert parse_text(None, "hi") == Unrecognized("hi")
        # Digits are a valid category name once we are asking for one.
        assert parse_text(_session(Step.NEW_PARENT_NAME), " 2024 ") == NewCategoryNamed("2024")
        assert parse_text(_session(Step.NEW_SUB_NAME), "   ") == Unrecognized("")
        assert parse_text(_session(Step.WAIT_FOR_NOTE), "קפה") == NoteEntered("קפה")
        assert parse_text(_session(Step.CONFIRM_NOTE), "קפה") == Unrecognized("קפה")
