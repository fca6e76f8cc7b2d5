import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import AsyncIterator, Dict, Optional, Protocol


class Step(str, Enum):
    TYPE = "TYPE"
    PARENT_CATEGORY = "PARENT_CATEGORY"
    SUB_CATEGORY = "SUB_CATEGORY"
    NEW_PARENT_NAME = "NEW_PARENT_NAME"
    NEW_SUB_NAME = "NEW_SUB_NAME"
    CONFIRM_NOTE = "CONFIRM_NOTE"
    WAIT_FOR_NOTE = "WAIT_FOR_NOTE"


@dataclass(frozen=True)
class WizardSession:
    """State of one in-flight wizard. Immutable: transitions build a new value."""

    step: Step
    amount: Decimal
    added_by: str
    type: Optional[str] = None
    parent_id: Optional[int] = None
    category_id: Optional[int] = None

    def advance(self, step: Step, **changes) -> "WizardSession":
        return replace(self, step=step, **changes)


class SessionStore(Protocol):
    def get(self, conversation_id: int) -> Optional[WizardSession]: ...

    def set(self, conversation_id: int, session: WizardSession) -> None: ...

    def delete(self, conversation_id: int) -> None: ...

    def lock(self, conversation_id: int): ...


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class InMemorySessionStore:
    """
    Process-wide conversation id -> session mapping.

    Nothing survives a restart: in-flight wizards are silently abandoned. Sessions
    never expire on their own; ``/cancel`` or completing the wizard removes them.
    """

    def __init__(self):
        self._sessions: Dict[int, WizardSession] = {}
        self._locks: Dict[int, _KeyLock] = {}

    def get(self, conversation_id: int) -> Optional[WizardSession]:
        return self._sessions.get(conversation_id)

    def set(self, conversation_id: int, session: WizardSession) -> None:
        self._sessions[conversation_id] = session

    def delete(self, conversation_id: int) -> None:
        self._sessions.pop(conversation_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, conversation_id: int) -> bool:
        return conversation_id in self._sessions

    @asynccontextmanager
    async def lock(self, conversation_id: int) -> AsyncIterator[None]:
        """Serialize event handling for one conversation; others proceed freely."""
        entry = self._locks.get(conversation_id)
        if entry is None:
            entry = self._locks[conversation_id] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[conversation_id]

    @property
    def active_locks(self) -> int:
        return len(self._locks)
