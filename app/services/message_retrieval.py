"""
Threaded Message Retrieval

Live (never cached) retrieval of channel messages with their threads:
1. Fetch the latest page of primary messages
2. For every thread parent (reply_count > 0), fetch the full reply set
3. Nest replies under their parent, excluding the echoed parent message
4. Return primaries oldest first; replies keep the order Slack returns
"""

import asyncio
import logging
from typing import List

from app.integrations.slack.client import SlackClient
from app.integrations.slack.models import ConversationContext, SlackMessage
from app.models.directory import CredentialRecord
from app.services.errors import RemoteAPIError, ValidationError

logger = logging.getLogger(__name__)

MAX_THREAD_LIMIT = 1000


class MessageRetriever:
    """Fetches channel history and thread replies for one request at a time."""

    def __init__(
        self,
        client_factory=SlackClient,
        history_limit: int = 15,
        thread_reply_limit: int = MAX_THREAD_LIMIT,
        thread_fetch_delay: float = 0.1,
    ):
        self.client_factory = client_factory
        self.history_limit = history_limit
        self.thread_reply_limit = thread_reply_limit
        self.thread_fetch_delay = thread_fetch_delay

    async def _context(self, client: SlackClient, channel_id: str) -> ConversationContext:
        try:
            return await client.get_conversation_context(channel_id)
        except RemoteAPIError as e:
            logger.warning(f"Could not fetch channel info for {channel_id}: {e}")
            return ConversationContext.unknown(channel_id)

    async def get_channel_messages(
        self, credential: CredentialRecord, channel_id: str
    ) -> List[SlackMessage]:
        """
        Latest primary messages of a channel with nested thread replies.

        A failed reply fetch does not abort the request: the parent is
        returned with no replies and ``replies_incomplete`` set.
        """
        client = self.client_factory(credential.access_token)

        # Step 1: Primary messages (history failures propagate)
        messages = await client.fetch_history(channel_id, limit=self.history_limit)
        if not messages:
            logger.info(f"No messages found in {channel_id}")
            return []

        context = await self._context(client, channel_id)

        # Step 2: Expand threads, throttled between successive fetches
        fetched_threads = 0
        for message in messages:
            message.with_context(context)
            if not message.is_thread_parent:
                continue

            if fetched_threads:
                await asyncio.sleep(self.thread_fetch_delay)
            fetched_threads += 1

            logger.debug(f"Message {message.ts} has {message.reply_count} replies")
            try:
                page = await client.fetch_replies(
                    channel_id, message.ts, limit=self.thread_reply_limit
                )
            except RemoteAPIError as e:
                logger.warning(f"Skipping replies of {message.ts} in {channel_id}: {e}")
                message.replies_incomplete = True
                continue

            message.replies = [
                self._as_reply(reply, message.ts, context)
                for reply in page.messages
                if reply.ts != message.ts
            ]
            message.replies_incomplete = page.has_more

        # Step 3: Oldest first
        messages.sort(key=lambda m: m.sort_key)

        total_replies = sum(len(m.replies) for m in messages)
        logger.info(
            f"Returning {len(messages)} primary messages with {total_replies} "
            f"nested replies from {context.name}"
        )
        return messages

    async def get_thread_replies(
        self,
        credential: CredentialRecord,
        channel_id: str,
        parent_ts: str,
        limit: int = 50,
    ) -> List[SlackMessage]:
        """One thread, parent first, each message tagged with its conversation."""
        if not 1 <= limit <= MAX_THREAD_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_THREAD_LIMIT}")

        client = self.client_factory(credential.access_token)
        page = await client.fetch_replies(channel_id, parent_ts, limit=limit)
        if not page.messages:
            logger.info(f"No messages found in thread {parent_ts}")
            return []

        context = await self._context(client, channel_id)
        thread = []
        for message in page.messages:
            message.with_context(context)
            message.thread_ts = parent_ts
            if message.ts != parent_ts:
                message.is_thread_reply = True
                message.parent_ts = parent_ts
            thread.append(message)

        logger.info(
            f"Returning {len(thread)} messages from thread {parent_ts} in {context.name}"
        )
        return thread

    @staticmethod
    def _as_reply(
        reply: SlackMessage, parent_ts: str, context: ConversationContext
    ) -> SlackMessage:
        reply.with_context(context)
        reply.thread_ts = parent_ts
        reply.parent_ts = parent_ts
        reply.is_thread_parent = False
        reply.is_thread_reply = True
        return reply
