"""
Slack API Client

Responsibilities:
- conversations.list / conversations.members: directory discovery (cursor paginated)
- users.info: member profiles
- conversations.history / conversations.replies: live message retrieval
- chat.postMessage: sending
- Pure fetching focus - NO caching, returns typed models only
"""

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.http_retry.builtin_handlers import RateLimitErrorRetryHandler
from typing import Any, Dict, List, Optional
import asyncio
import logging

from app.integrations.slack.models import (
    AuthIdentity,
    ConversationContext,
    PostedMessage,
    RepliesPage,
    SlackConversation,
    SlackMessage,
    parse_user,
)
from app.models.directory import UserRecord
from app.services.errors import RemoteAPIError

logger = logging.getLogger(__name__)

CONVERSATION_TYPES = "public_channel,private_channel,im,mpim"


class SlackClient:
    """Slack Web API client bound to one access token."""

    def __init__(
        self,
        token: str,
        max_concurrent_requests: int = 8,
        rate_limit_retries: int = 3,
    ):
        self.client = WebClient(token=token)
        # slack_sdk waits out Retry-After on HTTP 429 before giving up
        self.client.retry_handlers.append(
            RateLimitErrorRetryHandler(max_retry_count=rate_limit_retries)
        )
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)

    async def _call(self, method: str, **kwargs) -> Dict[str, Any]:
        """Run a blocking WebClient method in a worker thread."""
        async with self._semaphore:
            try:
                response = await asyncio.to_thread(getattr(self.client, method), **kwargs)
                return response.data
            except SlackApiError as e:
                code = e.response.get("error", "unknown_error")
                logger.error(f"Slack API error in {method}: {code}")
                raise RemoteAPIError(method, code, e.response.status_code) from e
            except (SlackClientError, OSError) as e:
                logger.error(f"Slack transport error in {method}: {e}")
                raise RemoteAPIError(method, "transport_error", message=f"Slack API {method} failed: {e}") from e

    async def _paginate(self, method: str, key: str, **kwargs) -> List[Any]:
        items: List[Any] = []
        cursor = None
        while True:
            data = await self._call(method, cursor=cursor, **kwargs)
            items.extend(data.get(key, []))
            cursor = (data.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                return items

    async def auth_test(self) -> AuthIdentity:
        data = await self._call("auth_test")
        return AuthIdentity(
            team_id=data["team_id"],
            team=data.get("team"),
            user_id=data["user_id"],
            user=data.get("user"),
        )

    async def list_conversations(self) -> List[SlackConversation]:
        """All non-archived conversations of every kind visible to the token."""
        raw = await self._paginate(
            "conversations_list",
            "channels",
            types=CONVERSATION_TYPES,
            exclude_archived=True,
            limit=1000,
        )
        conversations = [SlackConversation.from_api(c) for c in raw]
        logger.info(f"Listed {len(conversations)} conversations")
        return conversations

    async def list_members(self, channel_id: str) -> List[str]:
        members = await self._paginate(
            "conversations_members", "members", channel=channel_id, limit=1000
        )
        logger.debug(f"Conversation {channel_id} has {len(members)} members")
        return members

    async def get_user(self, user_id: str) -> UserRecord:
        data = await self._call("users_info", user=user_id)
        if not data.get("user"):
            raise RemoteAPIError("users_info", "user_not_found")
        return parse_user(data["user"])

    async def get_conversation_context(self, channel_id: str) -> ConversationContext:
        data = await self._call("conversations_info", channel=channel_id)
        return ConversationContext.from_api(channel_id, data.get("channel") or {})

    async def fetch_history(self, channel_id: str, limit: int) -> List[SlackMessage]:
        """Most recent page of primary messages (newest first, as Slack returns them)."""
        data = await self._call("conversations_history", channel=channel_id, limit=limit)
        messages = [SlackMessage.from_api(m) for m in data.get("messages", [])]
        logger.info(f"Fetched {len(messages)} messages from {channel_id}")
        return messages

    async def fetch_replies(self, channel_id: str, thread_ts: str, limit: int) -> RepliesPage:
        logger.debug(f"Fetching thread replies for {channel_id}/{thread_ts}")
        data = await self._call(
            "conversations_replies", channel=channel_id, ts=thread_ts, limit=limit
        )
        return RepliesPage(
            messages=[SlackMessage.from_api(m) for m in data.get("messages", [])],
            has_more=bool(data.get("has_more")),
        )

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        reply_broadcast: bool = False,
        unfurl_links: Optional[bool] = None,
        unfurl_media: Optional[bool] = None,
    ) -> PostedMessage:
        params: Dict[str, Any] = {"channel": channel, "text": text}

        if thread_ts:
            params["thread_ts"] = thread_ts
            # Broadcast only makes sense for thread replies
            if reply_broadcast:
                params["reply_broadcast"] = True

        if unfurl_links is not None:
            params["unfurl_links"] = unfurl_links
        if unfurl_media is not None:
            params["unfurl_media"] = unfurl_media

        data = await self._call("chat_postMessage", **params)
        logger.info(f"Posted message {data['ts']} to {data.get('channel', channel)}")
        return PostedMessage(channel=data.get("channel", channel), ts=data["ts"])
