"""
Slack Tool Service

Single long-lived entry point behind every tool-style operation:
- Local directory reads (channels, users, members, DMs) never touch Slack
- Directory refresh, message retrieval and sending call Slack live
- Every remote operation runs under a bounded timeout
"""

import asyncio
import logging
from functools import partial
from typing import Awaitable, List, Optional, TypeVar

from app.config import Settings
from app.integrations.slack.client import SlackClient
from app.integrations.slack.models import PostedMessage, SlackMessage
from app.integrations.slack.parser import looks_like_user_id, resolve_thread_reference
from app.models.directory import (
    ChannelKind,
    ChannelRecord,
    CredentialRecord,
    DMConversationRecord,
    RefreshSummary,
    UserRecord,
)
from app.services.credential_store import CredentialStore
from app.services.directory_orchestrator import DirectoryOrchestrator
from app.services.errors import NoDMChannelError, OperationTimeoutError, ValidationError
from app.services.message_retrieval import MessageRetriever
from app.storage.directory_store import DirectoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlackToolService:
    def __init__(
        self,
        settings: Settings,
        store: DirectoryStore,
        credentials: CredentialStore,
        client_factory=None,
    ):
        self.settings = settings
        self.store = store
        self.credentials = credentials
        self.client_factory = client_factory or partial(
            SlackClient,
            max_concurrent_requests=settings.max_concurrent_requests,
            rate_limit_retries=settings.rate_limit_retries,
        )
        self.orchestrator = DirectoryOrchestrator(store, self.client_factory)
        self.retriever = MessageRetriever(
            self.client_factory,
            history_limit=settings.history_page_limit,
            thread_reply_limit=settings.thread_reply_limit,
            thread_fetch_delay=settings.thread_fetch_delay,
        )

    async def _with_timeout(self, operation: str, awaitable: Awaitable[T]) -> T:
        timeout = self.settings.operation_timeout
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"{operation} timed out after {timeout} seconds")
            raise OperationTimeoutError(
                f"{operation} timed out after {timeout} seconds"
            ) from None

    def _channel(self, channel_id: Optional[str]) -> str:
        channel_id = (channel_id or self.settings.slack_default_channel_id).strip()
        if not channel_id:
            raise ValidationError(
                "No channel_id provided and SLACK_DEFAULT_CHANNEL_ID not configured"
            )
        return channel_id

    # ── Local directory (no network) ────────────────────────

    def list_channels(self, include_members: bool = True) -> List[ChannelRecord]:
        return self.store.list_channels(include_members=include_members)

    def list_users(self) -> List[UserRecord]:
        return self.store.list_users()

    def get_channel_members(self, channel_id: str) -> List[UserRecord]:
        return self.store.get_channel_members(channel_id)

    def get_user_channels(self, user_id: str) -> List[ChannelRecord]:
        return self.store.get_user_channels(user_id)

    def list_dms(
        self, kind: Optional[ChannelKind] = None, open_only: bool = False
    ) -> List[DMConversationRecord]:
        return self.store.list_dms(kind=kind, open_only=open_only)

    def set_dm_priority(self, dm_id: str, priority: int) -> DMConversationRecord:
        return self.store.set_dm_priority(dm_id, priority)

    # ── Remote operations ───────────────────────────────────

    async def refresh_directory(
        self, credential: Optional[CredentialRecord] = None
    ) -> RefreshSummary:
        credential = await asyncio.to_thread(self.credentials.require_credential, credential)
        return await self._with_timeout(
            "refresh_directory", self.orchestrator.refresh_directory(credential)
        )

    async def get_channel_messages(
        self,
        channel_id: Optional[str] = None,
        credential: Optional[CredentialRecord] = None,
    ) -> List[SlackMessage]:
        channel_id = self._channel(channel_id)
        credential = await asyncio.to_thread(self.credentials.require_credential, credential)
        return await self._with_timeout(
            "get_channel_messages",
            self.retriever.get_channel_messages(credential, channel_id),
        )

    async def get_thread_replies(
        self,
        parent_ts: str,
        channel_id: Optional[str] = None,
        limit: int = 50,
        credential: Optional[CredentialRecord] = None,
    ) -> List[SlackMessage]:
        """``parent_ts`` may be a raw timestamp or a message permalink."""
        reference = resolve_thread_reference(
            parent_ts, channel_id or self.settings.slack_default_channel_id
        )
        credential = await asyncio.to_thread(self.credentials.require_credential, credential)
        return await self._with_timeout(
            "get_thread_replies",
            self.retriever.get_thread_replies(
                credential, reference.channel_id, reference.thread_ts, limit=limit
            ),
        )

    async def send_message(
        self,
        target: str,
        text: str,
        parent_ts: Optional[str] = None,
        broadcast_reply: bool = False,
        unfurl_links: Optional[bool] = None,
        unfurl_media: Optional[bool] = None,
        credential: Optional[CredentialRecord] = None,
    ) -> PostedMessage:
        """
        Post to a channel, or to a user's DM when ``target`` is a user id.

        User ids are resolved through the cached DM table only; a user with
        no cached DM raises NoDMChannelError without calling Slack.
        """
        target = (target or "").strip()
        if not target:
            raise ValidationError("A channel or user id is required")
        if not text or not text.strip():
            raise ValidationError("Message text must not be empty")

        channel_id = target
        if looks_like_user_id(target):
            dm = await asyncio.to_thread(self.store.get_dm_channel_for_user, target)
            if dm is None:
                raise NoDMChannelError(target)
            channel_id = dm.id
            logger.info(f"Resolved user {target} to DM channel {channel_id}")

        if parent_ts:
            parent_ts = resolve_thread_reference(parent_ts, channel_id).thread_ts

        credential = await asyncio.to_thread(self.credentials.require_credential, credential)
        client = self.client_factory(credential.access_token)
        return await self._with_timeout(
            "send_message",
            client.post_message(
                channel_id,
                text,
                thread_ts=parent_ts,
                reply_broadcast=broadcast_reply,
                unfurl_links=unfurl_links,
                unfurl_media=unfurl_media,
            ),
        )

    async def connect_token(self, access_token: str, scope: str = "") -> CredentialRecord:
        """Identify a token with auth.test and store it as the active credential."""
        access_token = (access_token or "").strip()
        if not access_token:
            raise ValidationError("Access token is required")

        client = self.client_factory(access_token)
        identity = await self._with_timeout("auth_test", client.auth_test())
        token_type = "bot" if access_token.startswith("xoxb-") else "user"
        return await asyncio.to_thread(
            self.credentials.store_token,
            team_id=identity.team_id,
            user_id=identity.user_id,
            access_token=access_token,
            scope=scope,
            team_name=identity.team,
            user_name=identity.user,
            token_type=token_type,
        )
