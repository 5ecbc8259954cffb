"""
Defines the core Pydantic data models for the application.

These models serve as the formal, validated data contract between the stores,
the context builder and the orchestrator. Field aliases keep the camelCase
names used in stored records, so previously persisted data validates as is.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
MODEL_ROLE = "model"
Role = Literal[USER_ROLE, MODEL_ROLE]

ADULT_MODE = "adult"
PEDIATRIC_MODE = "pediatric"
Mode = Literal[ADULT_MODE, PEDIATRIC_MODE]

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
UserStatus = Literal[PENDING, APPROVED, REJECTED]

WELCOME_MESSAGE_ID = "welcome"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Record(BaseModel):
    """Base for stored records: snake_case attributes, camelCase on disk."""

    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Accounts ---
class Profile(Record):
    """Optional professional metadata collected at signup."""

    occupation: Optional[str] = None
    introduction: Optional[str] = None
    purpose: Optional[str] = None
    referral: Optional[str] = None


class User(Profile):
    """A registered professional account."""

    id: str = Field(default_factory=_new_id)
    username: str
    email: str
    password: str
    status: UserStatus = PENDING
    is_admin: bool = Field(default=False, alias="isAdmin")
    created_at: datetime = Field(default_factory=_now, alias="createdAt")


class AuthError(str, Enum):
    DUPLICATE_USERNAME = "DuplicateUsername"
    DUPLICATE_EMAIL = "DuplicateEmail"
    INVALID_CREDENTIALS = "InvalidCredentials"
    PENDING_APPROVAL = "PendingApproval"


class AuthResult(BaseModel):
    """Typed outcome of a credential operation.

    Store level failures are reported here instead of being raised, so the
    caller can show ``message`` directly.
    """

    success: bool
    message: str
    error: Optional[AuthError] = None
    user: Optional[User] = None


class AuthSessionFlags(Record):
    """Cached projection of the signed-in state. Never the source of truth."""

    saved_username: Optional[str] = None
    stay_logged_in: bool = False
    current_user: Optional[User] = None


# --- Conversations ---
class Message(Record):
    """Represents a single message within a conversation."""

    role: Role
    text: str = ""
    image: Optional[str] = None
    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_now)
    is_error: bool = Field(default=False, alias="isError")


class ChatSession(Record):
    """A saved conversation the user can resume later."""

    id: str = Field(default_factory=_new_id)
    title: str
    messages: List[Message] = Field(default_factory=list)
    mode: Mode
    timestamp: datetime = Field(default_factory=_now)


# --- Analytics ---
class UsageCounters(Record):
    """Aggregate, non-identifying usage statistics."""

    topic_counts: Dict[str, int] = Field(default_factory=dict, alias="topicCounts")
    hourly_usage: Dict[int, int] = Field(default_factory=dict, alias="hourlyUsage")
    total_messages: int = Field(default=0, alias="totalMessages")
    last_active: datetime = Field(default_factory=_now, alias="lastActive")


# --- Model boundary payload ---
class InlineData(BaseModel):
    mime_type: str
    data: str  # base64 payload, without the data URI header


class Part(BaseModel):
    """One piece of a turn: either text or inline media."""

    text: Optional[str] = None
    inline_data: Optional[InlineData] = None


class Turn(BaseModel):
    role: Role
    parts: List[Part] = Field(default_factory=list)


class ModelRequest(BaseModel):
    """The exact payload handed to the model boundary."""

    system_instruction: str
    history: List[Turn] = Field(default_factory=list)
    turn: Turn
    temperature: float = 0.2
