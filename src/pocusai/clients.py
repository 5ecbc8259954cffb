"""Per-browser state for the Dash app.

The app process serves many browsers. Each browser carries two opaque tokens
in ``dcc.Store`` components: a device id kept in local storage and a tab id
kept in session storage. The device id scopes the keys that the browser
would hold locally (identity snapshot, login flags, saved sessions). The tab
id selects the in-memory :class:`Client`, so a login without stay-signed-in
lasts only as long as that tab.
"""

import logging
import threading
import uuid
from typing import Any, Callable, Dict, Optional

from .admin import AdminConsole
from .auth import CredentialStore
from .engine import Orchestrator
from .store import SessionStore

logger = logging.getLogger(__name__)


def new_token() -> str:
    return uuid.uuid4().hex


def is_token(value: Any) -> bool:
    """True for strings produced by :func:`new_token`.

    Tokens end up in storage keys and file names, so anything else is refused.
    """
    if not isinstance(value, str):
        return False
    try:
        return uuid.UUID(hex=value).hex == value
    except ValueError:
        return False


class Client:
    """Everything one browser tab owns: identity, conversation and admin console."""

    def __init__(
        self,
        device_id: str,
        auth: CredentialStore,
        sessions: SessionStore,
        orchestrator: Orchestrator,
        admin: AdminConsole,
    ):
        self.device_id = device_id
        self.auth = auth
        self.sessions = sessions
        self.orchestrator = orchestrator
        self.admin = admin

    @property
    def signed_in(self) -> bool:
        return self.auth.current_identity() is not None


class ClientRegistry:
    """Maps tab ids to :class:`Client` objects, building them on first use.

    Parameters
    ----------
    factory : Callable[[str], Client]
        Builds a client for a device id.
    """

    def __init__(self, factory: Callable[[str], Client]):
        self._factory = factory
        self._clients: Dict[str, Client] = {}
        self._lock = threading.Lock()

    def get(self, device_id: Any, tab_id: Any) -> Optional[Client]:
        """Returns the tab's client, or None when either token is invalid."""
        if not (is_token(device_id) and is_token(tab_id)):
            return None
        with self._lock:
            client = self._clients.get(tab_id)
            if client is None or client.device_id != device_id:
                client = self._factory(device_id)
                self._clients[tab_id] = client
                logger.debug("Opened client for tab %s", tab_id)
            return client

    def __len__(self) -> int:
        return len(self._clients)
