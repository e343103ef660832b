"""
Directory Models

Normalized rows exchanged between the synchronization orchestrator,
the directory store and the API layer.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class ChannelKind(str, Enum):
    """Conversation kinds, named after the Slack conversation types."""

    PUBLIC = "public_channel"
    PRIVATE = "private_channel"
    DIRECT = "im"
    MULTI_DIRECT = "mpim"


class ChannelRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    kind: ChannelKind
    is_private: bool = False
    is_archived: bool = False
    topic: Optional[str] = None
    purpose: Optional[str] = None
    num_members: Optional[int] = None
    created: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.now)


class MemberSummary(BaseModel):
    """Short member view attached to channel listings."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    real_name: Optional[str] = None
    display_name: Optional[str] = None


class ChannelWithMembers(ChannelRecord):
    members: List[MemberSummary] = []


class UserRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    display_name: Optional[str] = None
    real_name: Optional[str] = None
    email: Optional[str] = None
    is_bot: bool = False
    is_deleted: bool = False
    is_admin: bool = False
    is_owner: bool = False
    is_restricted: bool = False
    is_app_user: bool = False
    profile_image: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None
    team_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def stub(cls, user_id: str) -> "UserRecord":
        """Placeholder for a member whose profile could not be fetched."""
        return cls(id=user_id)


class MembershipRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel_id: str
    user_id: str
    added_at: datetime = Field(default_factory=datetime.now)


class DMConversationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: ChannelKind = ChannelKind.DIRECT
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    is_user_deleted: bool = False
    is_open: bool = True
    unread_count: int = 0
    latest_message_ts: Optional[str] = None
    # None keeps whatever priority is already stored for this conversation
    priority: Optional[int] = None
    created: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.now)


class CredentialRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    team_id: str
    team_name: Optional[str] = None
    user_id: str
    user_name: Optional[str] = None
    access_token: str = Field(repr=False)
    scope: str = ""
    token_type: str = "user"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_active: bool = True


class RefreshSummary(BaseModel):
    """Outcome of one directory refresh cycle."""

    channels: int = Field(0, description="Channel rows written")
    users: int = Field(0, description="Unique user rows written")
    memberships: int = Field(0, description="Membership edges written")
    dm_conversations: int = Field(0, description="DM conversation rows written")
    stub_users: int = Field(
        0, description="Users stored as stubs because their profile fetch failed"
    )
    failed_conversations: List[str] = Field(
        default_factory=list,
        description="Conversations whose member list could not be fetched",
    )
    steps: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-table persistence outcome: 'ok' or the error message",
    )
    message: str = ""

    @property
    def complete(self) -> bool:
        return not self.failed_conversations and all(
            outcome == "ok" for outcome in self.steps.values()
        )
