"""The conversation orchestrator.

Holds the active mode, session and messages in memory, drives the context
builder and the model boundary, and writes conversations to the session store
when the user leaves them.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .auth import CredentialStore
from .constants import MODE_TITLE_PREFIXES, QuickAction, quick_actions, welcome_text
from .context import build_request
from .llm import LLM
from .models import (
    MODEL_ROLE,
    USER_ROLE,
    WELCOME_MESSAGE_ID,
    ChatSession,
    Message,
    Mode,
)
from .store import SessionStore
from .usage import UsageCounter

logger = logging.getLogger(__name__)

TITLE_LENGTH = 30


class OrchestratorState(str, Enum):
    NO_MODE_SELECTED = "NoModeSelected"
    MODE_ACTIVE = "ModeActive"
    AWAITING_MODEL_RESPONSE = "AwaitingModelResponse"


class OrchestratorStateError(RuntimeError):
    """Raised when an operation is not valid in the current state."""


def derive_title(messages: List[Message], mode: str) -> str:
    """Builds a session title from the first user message, tagged with the mode."""
    first_user = next((m for m in messages if m.role == USER_ROLE), None)
    if first_user is None:
        base = "New Chat"
    else:
        base = first_user.text[:TITLE_LENGTH]
        if len(first_user.text) > TITLE_LENGTH:
            base += "..."
    return MODE_TITLE_PREFIXES[mode] + base


class Orchestrator:
    """Top-level controller for one signed-in user's conversation flow.

    Parameters
    ----------
    llm : LLM
        The model boundary.
    sessions : SessionStore
        Where conversations are saved when the user navigates away.
    credentials : CredentialStore
        Used only to tear down the identity on logout.
    usage : UsageCounter, optional
        Receives one event per user turn.
    language : str
        Initial display and response language code.
    temperature : float
        Sampling temperature for every request.
    """

    def __init__(
        self,
        llm: LLM,
        sessions: SessionStore,
        credentials: CredentialStore,
        usage: Optional[UsageCounter] = None,
        language: str = "ko",
        temperature: float = 0.2,
    ):
        self.llm = llm
        self.sessions = sessions
        self.credentials = credentials
        self.usage = usage
        self.language = language
        self.temperature = temperature

        self.state = OrchestratorState.NO_MODE_SELECTED
        self.mode: Optional[Mode] = None
        self.messages: List[Message] = []
        self.session_id: Optional[str] = None
        self.session_title: Optional[str] = None
        self._lock = threading.Lock()

    def _reset(self) -> None:
        self.state = OrchestratorState.NO_MODE_SELECTED
        self.mode = None
        self.messages = []
        self.session_id = None
        self.session_title = None

    def select_mode(self, mode: Mode) -> None:
        """Starts a new, unsaved conversation in ``mode``."""
        if self.state == OrchestratorState.AWAITING_MODEL_RESPONSE:
            raise OrchestratorStateError("Cannot change mode while awaiting a response.")
        self.mode = mode
        self.messages = [
            Message(id=WELCOME_MESSAGE_ID, role=MODEL_ROLE, text=welcome_text(self.language))
        ]
        self.session_id = None
        self.session_title = None
        self.state = OrchestratorState.MODE_ACTIVE

    def set_language(self, language: str) -> None:
        self.language = language
        if self.messages and self.messages[0].id == WELCOME_MESSAGE_ID:
            self.messages[0] = self.messages[0].model_copy(
                update={"text": welcome_text(language)}
            )

    def quick_actions(self) -> List[QuickAction]:
        if self.mode is None:
            return []
        return quick_actions(self.language, self.mode)

    def send_user_turn(self, text: str, image: Optional[str] = None) -> Message:
        """Sends one user turn and returns the resulting model message.

        The returned message has ``is_error`` set when the model call failed;
        failures never propagate out of this method.

        Raises
        ------
        OrchestratorStateError
            If no mode is selected or a previous turn is still awaiting its
            response.
        """
        with self._lock:
            if self.state != OrchestratorState.MODE_ACTIVE or self.mode is None:
                raise OrchestratorStateError(
                    f"Cannot send a message in state {self.state.value}."
                )
            self.state = OrchestratorState.AWAITING_MODEL_RESPONSE

        try:
            history = list(self.messages)
            self.messages.append(Message(role=USER_ROLE, text=text, image=image))
            self._record_usage(text)

            request = build_request(
                history,
                text,
                image,
                self.mode,
                self.language,
                temperature=self.temperature,
            )
            try:
                reply = Message(role=MODEL_ROLE, text=self.llm.generate(request))
            except Exception as e:
                logger.error("Model request failed: %s", e)
                reply = Message(
                    role=MODEL_ROLE,
                    text=str(e) or "Error generating response.",
                    is_error=True,
                )
            self.messages.append(reply)
            return reply
        finally:
            self.state = OrchestratorState.MODE_ACTIVE

    def _record_usage(self, text: str) -> None:
        if self.usage is None:
            return
        match = next((a for a in self.quick_actions() if a.query == text), None)
        self.usage.record_event(match.label if match else None)

    def save_current_session(self) -> Optional[ChatSession]:
        """Persists the active conversation if it has at least one exchange.

        The id and title are assigned on the first save and reused afterwards.
        """
        if self.mode is None or len(self.messages) < 2:
            return None

        if self.session_id is None:
            self.session_id = str(uuid.uuid4())
            self.session_title = derive_title(self.messages, self.mode)
        elif self.session_title is None:
            existing = self.sessions.get_session(self.session_id)
            self.session_title = (
                existing.title if existing else derive_title(self.messages, self.mode)
            )

        session = ChatSession(
            id=self.session_id,
            title=self.session_title,
            messages=list(self.messages),
            mode=self.mode,
            timestamp=datetime.now(timezone.utc),
        )
        self.sessions.upsert_session(session)
        return session

    def _require_idle(self) -> None:
        if self.state == OrchestratorState.AWAITING_MODEL_RESPONSE:
            raise OrchestratorStateError("A model response is still pending.")

    def load_session(self, session: ChatSession) -> None:
        self._require_idle()
        self.save_current_session()
        self.mode = session.mode
        self.messages = list(session.messages)
        self.session_id = session.id
        self.session_title = session.title
        self.state = OrchestratorState.MODE_ACTIVE

    def start_new_conversation(self) -> None:
        self._require_idle()
        self.save_current_session()
        self._reset()

    def logout(self) -> None:
        """Signs out without saving the active conversation."""
        self.credentials.logout()
        self._reset()
