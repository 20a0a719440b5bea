"""In-memory chat session collection, persisted through the preference store."""

from __future__ import annotations

import logging

from .config import CHAT_HISTORY_KEY, DEFAULT_TITLE, TITLE_MAX_CHARS
from .errors import SessionNotFound
from .models import ChatSession, Message
from .storage import PreferenceStore

logger = logging.getLogger(__name__)


class SessionRepository:
    """Owns the session list and is the only writer of the history key.

    Every mutation is written back to the store before the method returns,
    so a user turn is durable even if the reply never arrives.
    """

    def __init__(self, store: PreferenceStore, key: str = CHAT_HISTORY_KEY):
        self.store = store
        self.key = key
        self._sessions: list[ChatSession] = store.get_serialized_collection(key)

    def _persist(self):
        self.store.set_serialized_collection(self.key, self._sessions)

    def create_session(self) -> ChatSession:
        session = ChatSession()
        self._sessions.insert(0, session)
        self._persist()
        logger.debug("Created session %s", session.id)
        return session

    def list_sessions(self) -> list[ChatSession]:
        """Sessions newest first."""
        return list(self._sessions)

    def get_session(self, session_id: str) -> ChatSession:
        for session in self._sessions:
            if session.id == session_id:
                return session
        raise SessionNotFound(session_id)

    def delete_session(self, session_id: str):
        remaining = [s for s in self._sessions if s.id != session_id]
        if len(remaining) == len(self._sessions):
            return
        self._sessions = remaining
        self._persist()
        logger.debug("Deleted session %s", session_id)

    def append_message(self, session_id: str, message: Message) -> ChatSession:
        """Append a message; the first one also names the session."""
        session = self.get_session(session_id)
        session.messages.append(message)
        if len(session.messages) == 1:
            session.title = message.content[:TITLE_MAX_CHARS]
        session.touch()
        self._persist()
        return session

    def clear_session(self, session_id: str) -> ChatSession:
        session = self.get_session(session_id)
        session.messages = []
        session.title = DEFAULT_TITLE
        session.touch()
        self._persist()
        return session
