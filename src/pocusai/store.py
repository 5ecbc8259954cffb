"""Session store: saved conversations keyed by session id."""

import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from .models import ChatSession
from .storage import CHAT_SESSIONS_KEY, Storage

logger = logging.getLogger(__name__)

_sessions_adapter = TypeAdapter(List[ChatSession])


class SessionStore:
    """CRUD over the durable list of saved conversations.

    Titles are not derived here; the orchestrator decides the title before
    calling :meth:`upsert_session`, and the store saves whatever it is given.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    def list_sessions(self) -> List[ChatSession]:
        """Returns all sessions in stored order."""
        raw = self.storage.get(CHAT_SESSIONS_KEY, default=[])
        try:
            return _sessions_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning("Stored sessions are invalid, treating as empty: %s", e)
            return []

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        return next((s for s in self.list_sessions() if s.id == session_id), None)

    def upsert_session(self, session: ChatSession) -> None:
        """Replaces the session with the same id in place, or appends it."""
        sessions = self.list_sessions()
        for index, existing in enumerate(sessions):
            if existing.id == session.id:
                sessions[index] = session
                break
        else:
            sessions.append(session)

        self.storage.set(CHAT_SESSIONS_KEY, [s.to_record() for s in sessions])
        logger.debug("Saved session %s (%d messages)", session.id, len(session.messages))
