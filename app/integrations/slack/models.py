"""
Slack Data Models

Typed views of Slack Web API payloads. Raw dictionaries are parsed here and
never travel past the Slack client.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.models.directory import ChannelKind, ChannelRecord, UserRecord


def ts_to_datetime(ts: Optional[str]) -> Optional[datetime]:
    """Convert a Slack message timestamp ("1706123400.123456") to a datetime."""
    if not ts:
        return None
    return datetime.fromtimestamp(float(ts))


def _epoch_to_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value))


def _text_value(field: Any) -> Optional[str]:
    # topic/purpose arrive as {"value": "...", "creator": ..., "last_set": ...}
    if isinstance(field, dict):
        return field.get("value") or None
    return field or None


class SlackConversation(BaseModel):
    """A conversation as listed by conversations.list."""

    id: str
    name: str
    kind: ChannelKind
    is_private: bool = False
    is_archived: bool = False
    topic: Optional[str] = None
    purpose: Optional[str] = None
    num_members: Optional[int] = None
    created: Optional[datetime] = None
    # Direct conversations only
    user_id: Optional[str] = None
    is_user_deleted: bool = False
    is_open: bool = True
    unread_count: int = 0
    latest_message_ts: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SlackConversation":
        if data.get("is_im"):
            kind = ChannelKind.DIRECT
        elif data.get("is_mpim"):
            kind = ChannelKind.MULTI_DIRECT
        elif data.get("is_private") or data.get("is_group"):
            kind = ChannelKind.PRIVATE
        else:
            kind = ChannelKind.PUBLIC

        latest = data.get("latest")
        latest_ts = latest.get("ts") if isinstance(latest, dict) else latest

        return cls(
            id=data["id"],
            # IMs have no name; fall back to the counterpart id
            name=data.get("name") or data.get("user") or data["id"],
            kind=kind,
            is_private=bool(data.get("is_private")) or kind != ChannelKind.PUBLIC,
            is_archived=bool(data.get("is_archived")),
            topic=_text_value(data.get("topic")),
            purpose=_text_value(data.get("purpose")),
            num_members=data.get("num_members"),
            created=_epoch_to_datetime(data.get("created")),
            user_id=data.get("user"),
            is_user_deleted=bool(data.get("is_user_deleted")),
            is_open=data.get("is_open", True),
            unread_count=data.get("unread_count_display", data.get("unread_count")) or 0,
            latest_message_ts=latest_ts,
        )

    @property
    def is_direct(self) -> bool:
        return self.kind == ChannelKind.DIRECT

    def to_record(self, synced_at: datetime) -> ChannelRecord:
        return ChannelRecord(
            id=self.id,
            name=self.name,
            kind=self.kind,
            is_private=self.is_private,
            is_archived=self.is_archived,
            topic=self.topic,
            purpose=self.purpose,
            num_members=self.num_members,
            created=self.created,
            updated_at=synced_at,
        )


def parse_user(data: Dict[str, Any], synced_at: Optional[datetime] = None) -> UserRecord:
    """Build a UserRecord from a users.info ``user`` payload."""
    profile = data.get("profile") or {}
    return UserRecord(
        id=data["id"],
        name=data.get("name") or None,
        display_name=profile.get("display_name") or None,
        real_name=data.get("real_name") or profile.get("real_name") or None,
        email=profile.get("email") or None,
        is_bot=bool(data.get("is_bot")),
        is_deleted=bool(data.get("deleted")),
        is_admin=bool(data.get("is_admin")),
        is_owner=bool(data.get("is_owner")),
        is_restricted=bool(data.get("is_restricted") or data.get("is_ultra_restricted")),
        is_app_user=bool(data.get("is_app_user")),
        profile_image=profile.get("image_72") or None,
        timezone=data.get("tz") or None,
        locale=data.get("locale") or None,
        team_id=data.get("team_id") or None,
        updated_at=synced_at or datetime.now(),
    )


class ConversationContext(BaseModel):
    """Where a message lives: attached to every returned message."""

    id: str
    name: str
    type: str = "unknown"

    @classmethod
    def from_api(cls, channel_id: str, data: Dict[str, Any]) -> "ConversationContext":
        if data.get("is_channel"):
            conversation_type = "channel"
        elif data.get("is_group"):
            conversation_type = "group"
        elif data.get("is_mpim"):
            conversation_type = "mpim"
        elif data.get("is_im"):
            conversation_type = "im"
        else:
            conversation_type = "unknown"
        return cls(id=channel_id, name=data.get("name") or channel_id, type=conversation_type)

    @classmethod
    def unknown(cls, channel_id: str) -> "ConversationContext":
        return cls(id=channel_id, name=channel_id)


class SlackReaction(BaseModel):
    name: str
    count: int = 0


class SlackMessage(BaseModel):
    """Standardized Slack message, optionally carrying its thread replies."""

    ts: str  # Message timestamp (unique ID)
    user_id: Optional[str] = None  # Bot messages may have no user
    text: str = ""
    timestamp: datetime
    reactions: List[SlackReaction] = []
    reply_count: int = 0
    thread_ts: Optional[str] = None
    parent_ts: Optional[str] = None
    is_thread_parent: bool = False
    is_thread_reply: bool = False
    replies: List["SlackMessage"] = []
    replies_incomplete: bool = False
    conversation_id: Optional[str] = None
    conversation_name: Optional[str] = None
    conversation_type: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SlackMessage":
        reply_count = data.get("reply_count") or 0
        return cls(
            ts=data["ts"],
            user_id=data.get("user") or data.get("bot_id"),
            text=data.get("text", ""),
            timestamp=ts_to_datetime(data["ts"]),
            reactions=[
                SlackReaction(name=r["name"], count=r.get("count", 0))
                for r in data.get("reactions", [])
            ],
            reply_count=reply_count,
            thread_ts=data.get("thread_ts"),
            is_thread_parent=reply_count > 0,
        )

    def with_context(self, context: ConversationContext) -> "SlackMessage":
        self.conversation_id = context.id
        self.conversation_name = context.name
        self.conversation_type = context.type
        return self

    @property
    def sort_key(self) -> float:
        return float(self.ts or 0)


class RepliesPage(BaseModel):
    """One page of conversations.replies; the parent message comes first."""

    messages: List[SlackMessage]
    has_more: bool = False


class PostedMessage(BaseModel):
    channel: str
    ts: str


class AuthIdentity(BaseModel):
    """Result of auth.test for a token."""

    team_id: str
    team: Optional[str] = None
    user_id: str
    user: Optional[str] = None
