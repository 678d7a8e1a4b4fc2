"""Per-sender conversation sessions.

Sessions live only while a ticket is still being collected. The in-memory
store loses in-flight dialogues on restart.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from app.services.state_machine import ConversationState, reset

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


@dataclass
class Turn:
    role: str
    text: str


@dataclass
class ConversationSession:
    sender_id: str
    turns: List[Turn] = field(default_factory=list)
    state: ConversationState = ConversationState.COLLECTING

    def add_user_turn(self, text: str) -> None:
        self.turns.append(Turn(ROLE_USER, text))

    def add_assistant_turn(self, text: str) -> None:
        self.turns.append(Turn(ROLE_ASSISTANT, text))

    @property
    def assistant_turns(self) -> int:
        return sum(1 for turn in self.turns if turn.role == ROLE_ASSISTANT)


class SessionStore(ABC):
    """Abstract base class for session stores keyed by sender id."""

    @abstractmethod
    def get(self, sender_id: str) -> Optional[ConversationSession]:
        pass

    @abstractmethod
    def save(self, session: ConversationSession) -> None:
        pass

    @abstractmethod
    def clear(self, sender_id: str) -> None:
        """Drop the session; a COMPLETE session is moved back to EMPTY on the way out."""
        pass

    @abstractmethod
    def lock(self, sender_id: str):
        """Context manager serializing turns for one sender."""
        pass


@dataclass
class _SenderLock:
    """Per-sender lock, dropped once no turn holds or waits on it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: dict[str, ConversationSession] = {}
        self._locks: dict[str, _SenderLock] = {}
        self._guard = threading.Lock()

    def get(self, sender_id: str) -> Optional[ConversationSession]:
        with self._guard:
            return self._sessions.get(sender_id)

    def save(self, session: ConversationSession) -> None:
        with self._guard:
            self._sessions[session.sender_id] = session

    def clear(self, sender_id: str) -> None:
        with self._guard:
            session = self._sessions.pop(sender_id, None)
        if session is not None and session.state == ConversationState.COMPLETE:
            session.state = reset(session.state)

    @contextmanager
    def lock(self, sender_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(sender_id)
            if entry is None:
                entry = self._locks[sender_id] = _SenderLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[sender_id]
