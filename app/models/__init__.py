# Shared data models
from app.models.directory import (
    ChannelKind,
    ChannelRecord,
    ChannelWithMembers,
    CredentialRecord,
    DMConversationRecord,
    MemberSummary,
    MembershipRecord,
    RefreshSummary,
    UserRecord,
)

__all__ = [
    "ChannelKind",
    "ChannelRecord",
    "ChannelWithMembers",
    "CredentialRecord",
    "DMConversationRecord",
    "MemberSummary",
    "MembershipRecord",
    "RefreshSummary",
    "UserRecord",
]
