"""
Message API Routes

Live Slack calls: channel history with nested threads, single-thread
replies, and sending.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging
import time

from app.api.deps import get_credential, get_tool_service
from app.models.api_responses import (
    MessagesResponse,
    SendMessageRequest,
    SendMessageResponse,
    ThreadRepliesResponse,
)
from app.models.directory import CredentialRecord
from app.services.slack_tools import SlackToolService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/messages", response_model=MessagesResponse)
async def get_channel_messages(
    channel_id: Optional[str] = Query(None, description="Slack channel ID (optional, uses config if not provided)"),
    service: SlackToolService = Depends(get_tool_service),
    credential: Optional[CredentialRecord] = Depends(get_credential),
):
    """
    Latest messages of a channel, oldest first, each thread parent carrying
    its replies.

    Examples:
    - GET /api/messages  (uses the configured default channel)
    - GET /api/messages?channel_id=C123ABC456
    """
    start_time = time.time()
    messages = await service.get_channel_messages(channel_id, credential=credential)

    logger.info(
        f"Retrieved {len(messages)} messages in {time.time() - start_time:.2f}s"
    )
    return MessagesResponse(
        channel_id=channel_id or service.settings.slack_default_channel_id,
        messages=messages,
        total_messages=len(messages),
        total_replies=sum(len(m.replies) for m in messages),
        incomplete_threads=[m.ts for m in messages if m.replies_incomplete],
    )


@router.get("/threads/replies", response_model=ThreadRepliesResponse)
async def get_thread_replies(
    parent_ts: str = Query(..., description="Parent message timestamp or permalink"),
    channel_id: Optional[str] = Query(None, description="Slack channel ID (optional, uses config if not provided)"),
    limit: int = Query(50, description="Maximum messages to fetch, including the parent"),
    service: SlackToolService = Depends(get_tool_service),
    credential: Optional[CredentialRecord] = Depends(get_credential),
):
    messages = await service.get_thread_replies(
        parent_ts, channel_id=channel_id, limit=limit, credential=credential
    )
    thread_channel = messages[0].conversation_id if messages else channel_id
    return ThreadRepliesResponse(
        channel_id=thread_channel or service.settings.slack_default_channel_id,
        thread_ts=messages[0].ts if messages else parent_ts,
        messages=messages,
        total=len(messages),
    )


@router.post("/messages", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    service: SlackToolService = Depends(get_tool_service),
    credential: Optional[CredentialRecord] = Depends(get_credential),
):
    """Send to a channel, or to a user's cached DM channel when given a user id."""
    posted = await service.send_message(
        request.target,
        request.text,
        parent_ts=request.parent_ts,
        broadcast_reply=request.broadcast_reply,
        unfurl_links=request.unfurl_links,
        unfurl_media=request.unfurl_media,
        credential=credential,
    )
    return SendMessageResponse(channel=posted.channel, ts=posted.ts)
