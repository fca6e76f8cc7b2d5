"""Inbound chat events and the intents they are parsed into.

The transport hands us raw text messages and button presses. Before the wizard
sees them they are turned into one of a closed set of intents, interpreted
against the conversation's current step.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from ..core.errors import ValidationError
from ..models.category import CategoryType
from ..services.transactions import to_money
from .sessions import Step, WizardSession


# ─────────────────────────────
#   RAW EVENTS
# ─────────────────────────────

@dataclass(frozen=True)
class TextMessage:
    conversation_id: int
    sender: str
    text: str


@dataclass(frozen=True)
class ButtonPressed:
    conversation_id: int
    sender: str
    data: str
    callback_id: str
    message_id: Optional[int] = None


@dataclass(frozen=True)
class Command:
    conversation_id: int
    sender: str
    name: str


InboundEvent = Union[TextMessage, ButtonPressed, Command]


# ─────────────────────────────
#   INTENTS
# ─────────────────────────────

@dataclass(frozen=True)
class AmountEntered:
    amount: Decimal


@dataclass(frozen=True)
class TypeChosen:
    type: CategoryType


@dataclass(frozen=True)
class ParentChosen:
    category_id: int


@dataclass(frozen=True)
class SubChosen:
    category_id: int


@dataclass(frozen=True)
class NewCategoryRequested:
    sub: bool


@dataclass(frozen=True)
class NewCategoryNamed:
    name: str


@dataclass(frozen=True)
class NoteChosen:
    add: bool


@dataclass(frozen=True)
class NoteEntered:
    text: str


@dataclass(frozen=True)
class Unrecognized:
    raw: str
    button: bool = False


Intent = Union[
    AmountEntered,
    TypeChosen,
    ParentChosen,
    SubChosen,
    NewCategoryRequested,
    NewCategoryNamed,
    NoteChosen,
    NoteEntered,
    Unrecognized,
]


def parse_amount(text: str) -> Optional[Decimal]:
    cleaned = text.strip().replace(",", "").replace("₪", "").strip()
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    try:
        return to_money(amount)
    except ValidationError:
        return None


def _parse_id(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        return None


def parse_button(data: str) -> Intent:
    if data.startswith("type_"):
        try:
            return TypeChosen(CategoryType(data[len("type_"):]))
        except ValueError:
            return Unrecognized(data, button=True)
    if data == "new_parent":
        return NewCategoryRequested(sub=False)
    if data == "new_sub":
        return NewCategoryRequested(sub=True)
    if data == "note_add":
        return NoteChosen(add=True)
    if data == "note_skip":
        return NoteChosen(add=False)
    for prefix, intent in (("parent_", ParentChosen), ("sub_", SubChosen)):
        if data.startswith(prefix):
            category_id = _parse_id(data[len(prefix):])
            if category_id is not None:
                return intent(category_id)
    return Unrecognized(data, button=True)


def parse_text(session: Optional[WizardSession], text: str) -> Intent:
    """Free text means different things depending on where the wizard stands."""
    text = text.strip()
    if session is None:
        amount = parse_amount(text)
        return AmountEntered(amount) if amount is not None else Unrecognized(text)
    if session.step in (Step.NEW_PARENT_NAME, Step.NEW_SUB_NAME):
        return NewCategoryNamed(text) if text else Unrecognized(text)
    if session.step == Step.WAIT_FOR_NOTE:
        return NoteEntered(text)
    return Unrecognized(text)


def parse_event(session: Optional[WizardSession], event: Union[TextMessage, ButtonPressed]) -> Intent:
    if isinstance(event, ButtonPressed):
        return parse_button(event.data)
    return parse_text(session, event.text)
