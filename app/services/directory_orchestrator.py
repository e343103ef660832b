"""
Directory Synchronization Orchestrator

Drives one full refresh of the local directory cache:
1. List every non-archived conversation visible to the credential
2. Resolve members of each conversation and their profiles
3. Deduplicate users discovered across conversations
4. Build channel, membership and DM rows
5. Persist each table independently and report what succeeded
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from app.integrations.slack.client import SlackClient
from app.integrations.slack.models import SlackConversation
from app.models.directory import (
    CredentialRecord,
    DMConversationRecord,
    MembershipRecord,
    RefreshSummary,
    UserRecord,
)
from app.services.errors import RemoteAPIError, StorageError
from app.storage.directory_store import DirectoryStore

logger = logging.getLogger(__name__)


class _ProfileResolver:
    """
    Fetches user profiles for one refresh cycle.

    A profile is fetched at most once per cycle; concurrent requests for the
    same id share one in-flight call. Failures are not cached, so a later
    conversation may retry the same id.
    """

    def __init__(self, client: SlackClient, synced_at: datetime):
        self.client = client
        self.synced_at = synced_at
        self._profiles: Dict[str, asyncio.Task] = {}

    async def resolve(self, user_id: str) -> Tuple[UserRecord, bool]:
        """Return (profile, fetched_ok); a failed fetch yields a stub."""
        task = self._profiles.get(user_id)
        if task is None or (
            task.done() and (task.cancelled() or task.exception() is not None)
        ):
            task = asyncio.ensure_future(self.client.get_user(user_id))
            self._profiles[user_id] = task
        try:
            profile = await asyncio.shield(task)
        except RemoteAPIError as e:
            logger.warning(f"Could not fetch profile for {user_id}, storing stub: {e}")
            return UserRecord.stub(user_id), False
        return profile.model_copy(update={"updated_at": self.synced_at}), True

    def cancel_pending(self) -> None:
        for task in self._profiles.values():
            if not task.done():
                task.cancel()


class DirectoryOrchestrator:
    """Refreshes channels, users, memberships and DMs from Slack."""

    def __init__(self, store: DirectoryStore, client_factory=SlackClient):
        self.store = store
        self.client_factory = client_factory

    async def refresh_directory(self, credential: CredentialRecord) -> RefreshSummary:
        synced_at = datetime.now()
        client = self.client_factory(credential.access_token)

        # Step 1: Listing failures are fatal
        conversations = await client.list_conversations()
        logger.info(f"Refreshing directory from {len(conversations)} conversations")

        # Step 2: Members and profiles, all conversations in parallel
        resolver = _ProfileResolver(client, synced_at)
        try:
            results = await asyncio.gather(
                *(self._collect_members(client, resolver, c) for c in conversations)
            )
        finally:
            # A cancelled refresh must not leave users.info calls running
            resolver.cancel_pending()

        # Step 3: Dedup users; the last profile written for an id wins
        users: Dict[str, UserRecord] = {}
        stub_ids = set()
        member_sets: Dict[str, List[str]] = {}
        failed_conversations: List[str] = []
        for conversation, (member_ids, profiles) in zip(conversations, results):
            if member_ids is None:
                failed_conversations.append(conversation.id)
                continue
            member_sets[conversation.id] = member_ids
            for profile, fetched in profiles:
                if fetched:
                    users[profile.id] = profile
                    stub_ids.discard(profile.id)
                elif profile.id not in users:
                    # Never let a stub shadow a profile fetched this cycle
                    users[profile.id] = profile
                    stub_ids.add(profile.id)

        # Step 4: Normalized rows
        channels = [c.to_record(synced_at) for c in conversations]
        memberships = [
            MembershipRecord(channel_id=channel_id, user_id=user_id, added_at=synced_at)
            for channel_id, member_ids in member_sets.items()
            for user_id in member_ids
        ]
        dms = [
            self._build_dm(
                c,
                member_sets.get(c.id, []),
                users,
                credential.user_id,
                synced_at,
            )
            for c in conversations
            if c.is_direct
        ]

        # Step 5: Persist each table independently
        summary = RefreshSummary(
            stub_users=len(stub_ids),
            failed_conversations=failed_conversations,
        )
        summary.channels = await self._persist(
            summary, "channels", lambda: self.store.upsert_channels(channels)
        )
        summary.users = await self._persist(
            summary, "users", lambda: self.store.upsert_users(list(users.values()))
        )
        summary.memberships = await self._persist(
            summary,
            "memberships",
            lambda: self.store.replace_memberships(
                memberships, channel_ids=list(member_sets)
            ),
        )
        summary.dm_conversations = await self._persist(
            summary, "dm_conversations", lambda: self.store.replace_dm_conversations(dms)
        )

        if all(outcome != "ok" for outcome in summary.steps.values()):
            raise StorageError(
                "Directory refresh fetched data but could not store any of it: "
                + "; ".join(f"{k}: {v}" for k, v in summary.steps.items())
            )

        summary.message = (
            f"stored {summary.channels} of {len(channels)} channels, "
            f"{summary.users} of {len(users)} users "
            f"({summary.stub_users} without profile), "
            f"{summary.memberships} of {len(memberships)} memberships, "
            f"{summary.dm_conversations} of {len(dms)} DMs"
        )
        if failed_conversations:
            summary.message += (
                f"; members unavailable for {len(failed_conversations)} conversations"
            )
        logger.info(f"Directory refresh complete: {summary.message}")
        return summary

    async def _collect_members(
        self,
        client: SlackClient,
        resolver: _ProfileResolver,
        conversation: SlackConversation,
    ) -> Tuple[Optional[List[str]], List[Tuple[UserRecord, bool]]]:
        """
        Member ids and profiles for one conversation.

        Returns ``(None, [])`` when the member list itself cannot be fetched,
        so the caller leaves that channel's stored edges untouched.
        """
        if conversation.is_direct:
            member_ids = [conversation.user_id] if conversation.user_id else []
        else:
            try:
                member_ids = await client.list_members(conversation.id)
            except RemoteAPIError as e:
                logger.warning(f"Could not fetch members for {conversation.id}: {e}")
                return None, []

        member_ids = list(dict.fromkeys(member_ids))
        profiles = await asyncio.gather(*(resolver.resolve(uid) for uid in member_ids))
        return member_ids, list(profiles)

    @staticmethod
    def _build_dm(
        conversation: SlackConversation,
        member_ids: List[str],
        users: Dict[str, UserRecord],
        holder_id: str,
        synced_at: datetime,
    ) -> DMConversationRecord:
        # The counterpart is whoever is not the credential holder; a self-DM
        # has nobody else, so the holder is its own counterpart.
        others = [uid for uid in member_ids if uid != holder_id]
        counterpart_id = others[0] if others else (member_ids[0] if member_ids else None)
        counterpart = users.get(counterpart_id) if counterpart_id else None

        return DMConversationRecord(
            id=conversation.id,
            kind=conversation.kind,
            user_id=counterpart_id,
            user_name=(counterpart.real_name or counterpart.name) if counterpart else None,
            is_user_deleted=conversation.is_user_deleted
            or bool(counterpart and counterpart.is_deleted),
            is_open=conversation.is_open,
            unread_count=conversation.unread_count,
            latest_message_ts=conversation.latest_message_ts,
            created=conversation.created,
            updated_at=synced_at,
        )

    @staticmethod
    async def _persist(summary: RefreshSummary, step: str, write) -> int:
        """Run one blocking store write in a worker thread, recording its outcome."""
        try:
            written = await asyncio.to_thread(write)
        except StorageError as e:
            logger.error(f"Directory refresh could not store {step}: {e}")
            summary.steps[step] = e.message
            return 0
        summary.steps[step] = "ok"
        return written
