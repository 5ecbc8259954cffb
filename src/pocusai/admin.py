"""Administration surface over the credential store and usage counters."""

import logging
from typing import Dict, List, Optional

from .auth import CredentialStore
from .models import APPROVED, PENDING, UsageCounters, User, UserStatus
from .usage import UsageCounter

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("all", PENDING, APPROVED)


class AdminConsole:
    """Gatekeeper for administrative operations.

    Every operation checks :meth:`CredentialStore.is_administrator` for the
    identity that signed in to the console; the stores themselves do not.
    """

    def __init__(self, credentials: CredentialStore, usage: UsageCounter):
        self.credentials = credentials
        self.usage = usage
        self.identity: Optional[User] = None

    @property
    def is_authorized(self) -> bool:
        return self.credentials.is_administrator(self.identity)

    def sign_in(self, username: str, password: str) -> bool:
        """Opens the console for an approved administrator account."""
        user = self.credentials.authenticate(username, password)
        if not self.credentials.is_administrator(user):
            logger.warning("Rejected administrator sign-in for %r", username)
            self.identity = None
            return False
        self.identity = user
        return True

    def sign_out(self) -> None:
        self.identity = None

    def _require_admin(self) -> None:
        if not self.is_authorized:
            raise PermissionError("Administrator access required.")

    def list_users(self, search: str = "", status: str = "all") -> List[User]:
        """Users matching a case-insensitive search and a status filter.

        The search matches username, email or occupation.
        """
        self._require_admin()
        if status not in STATUS_FILTERS:
            raise ValueError(f"Unknown status filter: {status!r}")

        query = search.lower()

        def matches(user: User) -> bool:
            haystacks = [user.username, user.email, user.occupation or ""]
            return any(query in h.lower() for h in haystacks)

        return [
            u
            for u in self.credentials.list_users()
            if matches(u) and (status == "all" or u.status == status)
        ]

    def stats(self) -> Dict[str, int]:
        self._require_admin()
        users = self.credentials.list_users()
        return {
            "total": len(users),
            "pending": sum(1 for u in users if u.status == PENDING),
            "approved": sum(1 for u in users if u.status == APPROVED),
        }

    def _require_not_self(self, user_id: str, action: str) -> None:
        if self.identity is not None and user_id == self.identity.id:
            raise ValueError(f"Administrators cannot {action} their own account.")

    def set_status(self, user_id: str, status: UserStatus) -> None:
        self._require_admin()
        self._require_not_self(user_id, "change the status of")
        self.credentials.set_status(user_id, status)

    def toggle_status(self, user_id: str) -> Optional[UserStatus]:
        """Flips approved to pending and anything else to approved."""
        self._require_admin()
        self._require_not_self(user_id, "change the status of")
        user = self.credentials.get_user(user_id)
        if user is None:
            return None
        new_status = PENDING if user.status == APPROVED else APPROVED
        self.credentials.set_status(user_id, new_status)
        return new_status

    def delete_user(self, user_id: str) -> None:
        self._require_admin()
        self._require_not_self(user_id, "delete")
        self.credentials.delete_user(user_id)

    def analytics(self) -> UsageCounters:
        self._require_admin()
        return self.usage.snapshot()
