"""The transaction-capture wizard.

``transition`` is a pure function of (session, intent, catalog). It never touches
the database or the chat transport; it says what the next session should be, what
to show the user and which write (if any) must succeed first. ``Wizard`` runs it:
it serializes events per conversation, performs the write, commits the session and
delivers the reply.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from ..core.errors import PersistenceError
from . import prompts
from .events import (
    AmountEntered,
    ButtonPressed,
    Command,
    InboundEvent,
    Intent,
    NewCategoryNamed,
    NewCategoryRequested,
    NoteChosen,
    NoteEntered,
    ParentChosen,
    SubChosen,
    TypeChosen,
    Unrecognized,
    parse_event,
)
from .prompts import Reply
from .sessions import SessionStore, Step, WizardSession

logger = logging.getLogger(__name__)


# ─────────────────────────────
#   CATEGORY SNAPSHOT
# ─────────────────────────────

@dataclass(frozen=True)
class CategoryRef:
    id: int
    name: str
    type: str
    parent_id: Optional[int] = None


class CategoryCatalog:
    """Read-only view of the category tree used to drive the keyboards."""

    def __init__(self, categories: Iterable[CategoryRef] = ()):
        self._by_id: Dict[int, CategoryRef] = {}
        self._children: Dict[int, List[CategoryRef]] = {}
        for category in categories:
            self._by_id[category.id] = category
            if category.parent_id is not None:
                self._children.setdefault(category.parent_id, []).append(category)

    def get(self, category_id: Optional[int]) -> Optional[CategoryRef]:
        if category_id is None:
            return None
        return self._by_id.get(category_id)

    def roots(self, type: str) -> List[CategoryRef]:
        return [c for c in self._by_id.values() if c.parent_id is None and c.type == type]

    def children(self, parent_id: int) -> List[CategoryRef]:
        return list(self._children.get(parent_id, []))

    def name_of(self, category_id: Optional[int]) -> str:
        category = self.get(category_id)
        return category.name if category else "?"


# ─────────────────────────────
#   WRITES
# ─────────────────────────────

@dataclass(frozen=True)
class CreateCategory:
    name: str
    type: str
    parent_id: Optional[int] = None


@dataclass(frozen=True)
class RecordTransaction:
    amount: Decimal
    category_id: int
    added_by: str
    description: Optional[str] = None


Action = Union[CreateCategory, RecordTransaction]


@dataclass(frozen=True)
class Transition:
    session: Optional[WizardSession]
    reply: Optional[Reply] = None
    # Short text shown when acknowledging a button press.
    notice: Optional[str] = None
    action: Optional[Action] = None
    # Sent instead of ``reply`` when ``action`` fails; the session is then kept.
    failure: Optional[Reply] = None
    changed: bool = True


def _stay(session: Optional[WizardSession], reply: Optional[Reply] = None, notice: Optional[str] = None) -> Transition:
    return Transition(session=session, reply=reply, notice=notice, changed=False)


def transition(session: Optional[WizardSession], intent: Intent, catalog: CategoryCatalog, sender: str = "") -> Transition:
    if session is None:
        if isinstance(intent, AmountEntered):
            started = WizardSession(step=Step.TYPE, amount=intent.amount, added_by=sender)
            return Transition(session=started, reply=prompts.type_prompt(intent.amount))
        if isinstance(intent, Unrecognized) and not intent.button:
            return _stay(None, reply=Reply(prompts.NOT_UNDERSTOOD))
        return _stay(None, notice=prompts.SESSION_EXPIRED)

    step = session.step

    if step == Step.TYPE and isinstance(intent, TypeChosen):
        type_value = intent.type.value
        return Transition(
            session=session.advance(Step.PARENT_CATEGORY, type=type_value),
            reply=prompts.parent_prompt(catalog.roots(type_value)),
        )

    if step == Step.PARENT_CATEGORY and isinstance(intent, ParentChosen):
        parent = catalog.get(intent.category_id)
        if parent is None or parent.parent_id is not None or parent.type != session.type:
            return _stay(session, notice=prompts.UNKNOWN_CATEGORY)
        subs = catalog.children(parent.id)
        if not subs:
            return Transition(
                session=session.advance(Step.CONFIRM_NOTE, parent_id=parent.id, category_id=parent.id),
                reply=prompts.note_prompt(parent.name),
            )
        return Transition(
            session=session.advance(Step.SUB_CATEGORY, parent_id=parent.id),
            reply=prompts.sub_prompt(parent, subs),
        )

    if step == Step.PARENT_CATEGORY and isinstance(intent, NewCategoryRequested) and not intent.sub:
        return Transition(session=session.advance(Step.NEW_PARENT_NAME), reply=prompts.ask_category_name(sub=False))

    if step == Step.SUB_CATEGORY and isinstance(intent, SubChosen):
        chosen = catalog.get(intent.category_id)
        # "Finish here" carries the parent's own id.
        if chosen is None or (chosen.id != session.parent_id and chosen.parent_id != session.parent_id):
            return _stay(session, notice=prompts.UNKNOWN_CATEGORY)
        return Transition(
            session=session.advance(Step.CONFIRM_NOTE, category_id=chosen.id),
            reply=prompts.note_prompt(chosen.name),
        )

    if step == Step.SUB_CATEGORY and isinstance(intent, NewCategoryRequested) and intent.sub:
        return Transition(session=session.advance(Step.NEW_SUB_NAME), reply=prompts.ask_category_name(sub=True))

    if step in (Step.NEW_PARENT_NAME, Step.NEW_SUB_NAME) and isinstance(intent, NewCategoryNamed):
        sub = step == Step.NEW_SUB_NAME
        return Transition(
            # category_id is filled in once the row exists
            session=session.advance(Step.CONFIRM_NOTE),
            reply=prompts.category_created_prompt(intent.name, sub=sub),
            action=CreateCategory(
                name=intent.name,
                type=session.type,
                parent_id=session.parent_id if sub else None,
            ),
            failure=Reply(prompts.SUB_CATEGORY_FAILED if sub else prompts.CATEGORY_FAILED),
        )

    if step == Step.CONFIRM_NOTE and isinstance(intent, NoteChosen):
        if intent.add:
            return Transition(session=session.advance(Step.WAIT_FOR_NOTE), reply=prompts.ask_note())
        return _finish(session, catalog, note=None)

    if step == Step.WAIT_FOR_NOTE and isinstance(intent, NoteEntered):
        return _finish(session, catalog, note=intent.text)

    if isinstance(intent, Unrecognized) and not intent.button:
        if step in (Step.NEW_PARENT_NAME, Step.NEW_SUB_NAME):
            return _stay(session, reply=Reply(prompts.EMPTY_NAME))
        return _stay(session, reply=Reply(prompts.USE_BUTTONS))

    # A button from an older keyboard, or a double tap.
    return _stay(session, notice=prompts.STALE_BUTTON)


def _finish(session: WizardSession, catalog: CategoryCatalog, note: Optional[str]) -> Transition:
    return Transition(
        session=None,
        reply=prompts.saved(session.amount, catalog.name_of(session.category_id), note),
        action=RecordTransaction(
            amount=session.amount,
            category_id=session.category_id,
            added_by=session.added_by,
            description=note,
        ),
        failure=Reply(prompts.SAVE_FAILED),
    )


# ─────────────────────────────
#   RUNNER
# ─────────────────────────────

class Wizard:
    def __init__(self, store: SessionStore, repository, gateway, default_sender: str = "משתמש טלגרם"):
        self.store = store
        self.repository = repository
        self.gateway = gateway
        self.default_sender = default_sender

    async def handle(self, event: InboundEvent) -> None:
        if isinstance(event, Command):
            await self._command(event)
            return

        conversation_id = event.conversation_id
        async with self.store.lock(conversation_id):
            session = self.store.get(conversation_id)
            intent = parse_event(session, event)

            catalog = CategoryCatalog()
            if session is not None and not isinstance(intent, Unrecognized):
                try:
                    catalog = await self.repository.load_catalog()
                except PersistenceError:
                    logger.exception("Loading categories failed for chat %s", conversation_id)
                    await self._acknowledge(event)
                    await self.gateway.send_message(conversation_id, Reply(prompts.LOOKUP_FAILED))
                    return

            result = transition(session, intent, catalog, sender=event.sender or self.default_sender)
            next_session = result.session

            if result.action is not None:
                try:
                    created_id = await self._apply(result.action)
                except PersistenceError:
                    logger.exception("Wizard step %s failed for chat %s", session.step.value, conversation_id)
                    await self._acknowledge(event)
                    await self.gateway.send_message(conversation_id, result.failure)
                    return
                if isinstance(result.action, CreateCategory):
                    next_session = next_session.advance(next_session.step, category_id=created_id)

            if result.changed:
                if next_session is None:
                    self.store.delete(conversation_id)
                else:
                    self.store.set(conversation_id, next_session)

            await self._acknowledge(event, result.notice)
            if result.reply is not None:
                await self._deliver(event, result.reply)

    async def _apply(self, action: Action) -> int:
        if isinstance(action, CreateCategory):
            return await self.repository.create_category(action)
        return await self.repository.record_transaction(action)

    async def _acknowledge(self, event, notice: Optional[str] = None) -> None:
        if isinstance(event, ButtonPressed):
            await self.gateway.answer_callback(event.callback_id, notice)

    async def _deliver(self, event, reply: Reply) -> None:
        # Button presses replace the prompt they came from; text gets a fresh message.
        if isinstance(event, ButtonPressed) and event.message_id is not None:
            await self.gateway.edit_message(event.conversation_id, event.message_id, reply)
        else:
            await self.gateway.send_message(event.conversation_id, reply)

    async def _command(self, event: Command) -> None:
        if event.name == "start":
            await self.gateway.send_message(event.conversation_id, Reply(prompts.GREETING))
        elif event.name == "cancel":
            async with self.store.lock(event.conversation_id):
                had_session = self.store.get(event.conversation_id) is not None
                self.store.delete(event.conversation_id)
            text = prompts.CANCELLED if had_session else prompts.NOTHING_TO_CANCEL
            await self.gateway.send_message(event.conversation_id, Reply(text))
