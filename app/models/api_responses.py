"""
API Response Models

Pydantic models for consistent API request and response structures.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Union
from datetime import datetime

from app.integrations.slack.models import SlackMessage
from app.models.directory import (
    ChannelRecord,
    ChannelWithMembers,
    CredentialRecord,
    DMConversationRecord,
    RefreshSummary,
    UserRecord,
)


class ErrorResponse(BaseModel):
    """Structured failure payload returned for every handled error."""

    success: bool = False
    error: str = Field(..., description="Error kind, e.g. auth_required or no_dm_channel")
    message: str = Field(..., description="Human-readable cause")


class ChannelListResponse(BaseModel):
    success: bool = True
    channels: List[Union[ChannelWithMembers, ChannelRecord]]
    total: int


class UserListResponse(BaseModel):
    success: bool = True
    users: List[UserRecord]
    total: int


class DMListResponse(BaseModel):
    success: bool = True
    dms: List[DMConversationRecord]
    total: int


class DMPriorityRequest(BaseModel):
    priority: int = Field(..., description="Higher values sort first")


class RefreshResponse(BaseModel):
    success: bool = True
    complete: bool = Field(
        ..., description="False when some members or tables could not be refreshed"
    )
    summary: RefreshSummary


class MessagesResponse(BaseModel):
    success: bool = True
    channel_id: str
    messages: List[SlackMessage]
    total_messages: int = Field(..., description="Primary messages returned")
    total_replies: int = Field(..., description="Thread replies nested under primaries")
    incomplete_threads: List[str] = Field(
        default_factory=list,
        description="Parent timestamps whose replies could not be fully fetched",
    )


class ThreadRepliesResponse(BaseModel):
    success: bool = True
    channel_id: str
    thread_ts: str
    messages: List[SlackMessage]
    total: int


class SendMessageRequest(BaseModel):
    target: str = Field(..., description="Channel id, or a user id to message via DM")
    text: str
    parent_ts: Optional[str] = Field(
        None, description="Reply in the thread rooted at this message"
    )
    broadcast_reply: bool = Field(
        False, description="Also show a thread reply in the channel"
    )
    unfurl_links: Optional[bool] = None
    unfurl_media: Optional[bool] = None


class SendMessageResponse(BaseModel):
    success: bool = True
    channel: str
    ts: str


class SlackConnectRequest(BaseModel):
    access_token: str
    scope: str = ""


class CredentialSummary(BaseModel):
    """Stored credential without the secret."""

    id: Optional[int]
    team_id: str
    team_name: Optional[str] = None
    user_id: str
    user_name: Optional[str] = None
    scope: str
    token_type: str
    token_preview: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: CredentialRecord) -> "CredentialSummary":
        return cls(
            **record.model_dump(exclude={"access_token"}),
            token_preview=f"{record.access_token[:10]}...",
        )


class CredentialListResponse(BaseModel):
    success: bool = True
    credentials: List[CredentialSummary]
    total: int
