"""Credential store: user accounts, approval status and signed-in state.

Access control is not enforced here. Any caller holding a ``CredentialStore``
can list, approve or delete accounts; restricting that to administrators is
the job of the administration surface (see ``admin.AdminConsole``), which
relies on :meth:`CredentialStore.is_administrator`.

The app builds one store per browser tab. Accounts are shared through
`storage`; the remembered username, stay-signed-in flag and identity
snapshot live in `client_storage`, which is scoped to one browser.
"""

import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from .models import (
    APPROVED,
    AuthError,
    AuthResult,
    AuthSessionFlags,
    Profile,
    User,
    UserStatus,
)
from .storage import (
    CURRENT_USER_KEY,
    SAVED_USERNAME_KEY,
    STAY_LOGGED_IN_KEY,
    USERS_KEY,
    Storage,
)

logger = logging.getLogger(__name__)

_users_adapter = TypeAdapter(List[User])

ADMIN_ID = "admin_1"


class CredentialStore:
    """Owns the durable set of accounts and the current identity snapshot."""

    def __init__(
        self,
        storage: Storage,
        admin_username: str,
        admin_password: str,
        admin_email: str = "admin@pocus-ai.com",
        client_storage: Optional[Storage] = None,
    ):
        self.storage = storage
        # Per-browser flags and snapshot; accounts always live in `storage`.
        self.client_storage = client_storage if client_storage is not None else storage
        self._admin_username = admin_username
        self._admin_password = admin_password
        self._admin_email = admin_email
        # Id of the user who logged in through this instance, if any.
        self._session_user_id: Optional[str] = None

    # --- persistence helpers ---
    def _load_users(self) -> List[User]:
        raw = self.storage.get(USERS_KEY, default=[])
        try:
            return _users_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning("Stored user list is invalid, treating as empty: %s", e)
            return []

    def _save_users(self, users: List[User]) -> None:
        self.storage.set(USERS_KEY, [u.to_record() for u in users])

    def _load_snapshot(self) -> Optional[User]:
        raw = self.client_storage.get(CURRENT_USER_KEY)
        if raw is None:
            return None
        try:
            return User.model_validate(raw)
        except ValidationError as e:
            logger.warning("Stored identity snapshot is invalid: %s", e)
            return None

    # --- lifecycle ---
    def bootstrap(self) -> None:
        """Ensures at least one approved administrator exists.

        Any approved administrator on record satisfies the check. Otherwise
        the pre-shared account (id ``ADMIN_ID``) is re-approved in place, or
        created from the configured credentials when it does not exist.

        Raises
        ------
        ValueError
            If the pre-shared account has to be created but its username or
            email already belongs to another account.
        """
        users = self._load_users()
        if any(u.is_admin and u.status == APPROVED for u in users):
            return

        existing = next((u for u in users if u.id == ADMIN_ID), None)
        if existing is not None:
            restored = existing.model_copy(update={"is_admin": True, "status": APPROVED})
            self._save_users([restored if u.id == ADMIN_ID else u for u in users])
            logger.warning("Re-approved administrator account %r", existing.username)
            return

        if any(u.username == self._admin_username for u in users):
            raise ValueError(
                f"Cannot provision administrator: username {self._admin_username!r} is taken."
            )
        if any(u.email == self._admin_email for u in users):
            raise ValueError(
                f"Cannot provision administrator: email {self._admin_email!r} is already registered."
            )

        admin = User(
            id=ADMIN_ID,
            username=self._admin_username,
            email=self._admin_email,
            password=self._admin_password,
            status=APPROVED,
            is_admin=True,
            occupation="Administrator",
            introduction="System Admin",
        )
        self._save_users(users + [admin])
        logger.info("Provisioned administrator account %r", self._admin_username)

    def signup(
        self,
        username: str,
        email: str,
        password: str,
        profile: Optional[Profile] = None,
    ) -> AuthResult:
        users = self._load_users()
        if any(u.username == username for u in users):
            return AuthResult(
                success=False,
                message="Username already exists.",
                error=AuthError.DUPLICATE_USERNAME,
            )
        if any(u.email == email for u in users):
            return AuthResult(
                success=False,
                message="Email already registered.",
                error=AuthError.DUPLICATE_EMAIL,
            )

        profile_fields = profile.model_dump() if profile else {}
        user = User(username=username, email=email, password=password, **profile_fields)
        self._save_users(users + [user])
        logger.info("New signup %r pending approval", username)
        return AuthResult(
            success=True,
            message="Signup successful! Please wait for administrator approval.",
            user=user,
        )

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Returns the account matching both username and password exactly."""
        return next(
            (
                u
                for u in self._load_users()
                if u.username == username and u.password == password
            ),
            None,
        )

    def login(
        self,
        username: str,
        password: str,
        remember_username: bool = False,
        stay_signed_in: bool = False,
    ) -> AuthResult:
        user = self.authenticate(username, password)
        if user is None:
            logger.info("Rejected login for %r: invalid credentials", username)
            return AuthResult(
                success=False,
                message="Invalid username or password.",
                error=AuthError.INVALID_CREDENTIALS,
            )
        if user.status != APPROVED:
            logger.info("Rejected login for %r: status %s", username, user.status)
            return AuthResult(
                success=False,
                message="Account pending approval. Please contact the administrator.",
                error=AuthError.PENDING_APPROVAL,
            )

        if remember_username:
            self.client_storage.set(SAVED_USERNAME_KEY, username)
        else:
            self.client_storage.remove(SAVED_USERNAME_KEY)

        if stay_signed_in:
            self.client_storage.set(STAY_LOGGED_IN_KEY, True)
        else:
            self.client_storage.remove(STAY_LOGGED_IN_KEY)

        self.client_storage.set(CURRENT_USER_KEY, user.to_record())
        self._session_user_id = user.id
        logger.info("User %r logged in", username)
        return AuthResult(success=True, message="Login successful.", user=user)

    def logout(self) -> None:
        """Clears the identity snapshot and stay-signed-in, keeps the saved username."""
        self.client_storage.remove(CURRENT_USER_KEY)
        self.client_storage.remove(STAY_LOGGED_IN_KEY)
        self._session_user_id = None

    def remembered_username(self) -> str:
        return self.client_storage.get(SAVED_USERNAME_KEY) or ""

    def stay_signed_in(self) -> bool:
        return self.client_storage.get(STAY_LOGGED_IN_KEY) is True

    def current_identity(self) -> Optional[User]:
        """Returns the signed-in user, or None.

        The snapshot is honoured when stay-signed-in is set, or when it was
        written by a login through this store instance (one per browser tab). It is then checked
        against the stored account so that a deleted or revoked user is not
        resurrected from the cache.
        """
        snapshot = self._load_snapshot()
        if snapshot is None:
            return None
        if not (self.stay_signed_in() or self._session_user_id == snapshot.id):
            return None

        user = self.get_user(snapshot.id)
        if user is None or user.status != APPROVED:
            return None
        return user

    def session_flags(self) -> AuthSessionFlags:
        return AuthSessionFlags(
            saved_username=self.remembered_username() or None,
            stay_logged_in=self.stay_signed_in(),
            current_user=self._load_snapshot(),
        )

    # --- administration primitives ---
    def list_users(self) -> List[User]:
        return self._load_users()

    def get_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self._load_users() if u.id == user_id), None)

    def set_status(self, user_id: str, status: UserStatus) -> None:
        users = self._load_users()
        updated = [
            u.model_copy(update={"status": status}) if u.id == user_id else u
            for u in users
        ]
        self._save_users(updated)
        logger.info("Set status of user %s to %s", user_id, status)

    def delete_user(self, user_id: str) -> None:
        """Removes an account. Sessions are not user-scoped and are untouched."""
        users = self._load_users()
        self._save_users([u for u in users if u.id != user_id])
        logger.info("Deleted user %s", user_id)

    def is_administrator(self, identity: Optional[User]) -> bool:
        """The single capability check for administrative access."""
        if identity is None:
            return False
        user = self.get_user(identity.id)
        return bool(user and user.is_admin and user.status == APPROVED)

