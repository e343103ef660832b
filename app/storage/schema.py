"""
Directory Cache Schema

Local mirror of slow-changing Slack entities plus stored access tokens.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Channel(Base):
    __tablename__ = "channels"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    topic: Mapped[Optional[str]] = mapped_column(Text)
    purpose: Mapped[Optional[str]] = mapped_column(Text)
    num_members: Mapped[Optional[int]] = mapped_column(Integer)
    created: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )

    def __repr__(self):
        return f"<Channel(id={self.id}, name={self.name}, kind={self.kind})>"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    # Everything but the id is nullable so profile fetch failures can be stored as stubs
    name: Mapped[Optional[str]] = mapped_column(String(255))
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    real_name: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    is_bot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_owner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_restricted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_app_user: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    profile_image: Mapped[Optional[str]] = mapped_column(Text)
    timezone: Mapped[Optional[str]] = mapped_column(String(64))
    locale: Mapped[Optional[str]] = mapped_column(String(32))
    team_id: Mapped[Optional[str]] = mapped_column(String(32))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name})>"


class ChannelMembership(Base):
    __tablename__ = "channel_memberships"

    channel_id: Mapped[str] = mapped_column(
        ForeignKey("channels.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), primary_key=True)
    added_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )


class DMConversation(Base):
    __tablename__ = "dm_conversations"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    kind: Mapped[str] = mapped_column(String(8), nullable=False, default="im")
    user_id: Mapped[Optional[str]] = mapped_column(String(32), index=True)
    user_name: Mapped[Optional[str]] = mapped_column(String(255))
    is_user_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    latest_message_ts: Mapped[Optional[str]] = mapped_column(String(32))
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )


class SlackToken(Base):
    __tablename__ = "slack_tokens"
    # At most one active token per (team, user); inactive history rows are allowed
    __table_args__ = (
        Index(
            "uq_slack_tokens_active_team_user",
            "team_id",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[str] = mapped_column(String(32), nullable=False)
    team_name: Mapped[Optional[str]] = mapped_column(String(255))
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_name: Mapped[Optional[str]] = mapped_column(String(255))
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False, default="")
    token_type: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<SlackToken(id={self.id}, team={self.team_id}, user={self.user_id}, active={self.is_active})>"
