"""
Directory API Routes

Channel, user and DM listings are served from the local cache. Only
/directory/refresh calls Slack.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from app.api.deps import get_credential, get_tool_service
from app.models.api_responses import (
    ChannelListResponse,
    DMListResponse,
    DMPriorityRequest,
    RefreshResponse,
    UserListResponse,
)
from app.models.directory import ChannelKind, CredentialRecord, DMConversationRecord
from app.services.errors import ValidationError
from app.services.slack_tools import SlackToolService

logger = logging.getLogger(__name__)
router = APIRouter()

DM_FILTERS = ("all", "open", "im", "mpim")


@router.get("/channels", response_model=ChannelListResponse)
def list_channels(
    include_members: bool = Query(True, description="Attach active members to each channel"),
    service: SlackToolService = Depends(get_tool_service),
):
    """List cached channels. Fast path: no Slack API calls."""
    channels = service.list_channels(include_members=include_members)
    return ChannelListResponse(channels=channels, total=len(channels))


@router.post("/directory/refresh", response_model=RefreshResponse)
async def refresh_directory(
    service: SlackToolService = Depends(get_tool_service),
    credential: Optional[CredentialRecord] = Depends(get_credential),
):
    """
    Refresh channels, users, memberships and DMs from Slack.

    Partial failures (missing profiles, unavailable member lists, a table that
    could not be written) are reported in the summary instead of failing.
    """
    summary = await service.refresh_directory(credential)
    return RefreshResponse(complete=summary.complete, summary=summary)


@router.get("/users", response_model=UserListResponse)
def list_users(service: SlackToolService = Depends(get_tool_service)):
    users = service.list_users()
    return UserListResponse(users=users, total=len(users))


@router.get("/channels/{channel_id}/members", response_model=UserListResponse)
def get_channel_members(
    channel_id: str, service: SlackToolService = Depends(get_tool_service)
):
    users = service.get_channel_members(channel_id)
    return UserListResponse(users=users, total=len(users))


@router.get("/users/{user_id}/channels", response_model=ChannelListResponse)
def get_user_channels(user_id: str, service: SlackToolService = Depends(get_tool_service)):
    channels = service.get_user_channels(user_id)
    return ChannelListResponse(channels=channels, total=len(channels))


@router.get("/dms", response_model=DMListResponse)
def list_dms(
    type: Optional[str] = Query(None, description="One of: all, open, im, mpim"),
    service: SlackToolService = Depends(get_tool_service),
):
    """DM conversations by priority, then most recent activity."""
    dm_filter = (type or "all").lower()
    if dm_filter not in DM_FILTERS:
        raise ValidationError(f"Unknown DM type '{type}', expected one of {', '.join(DM_FILTERS)}")

    if dm_filter == "open":
        dms = service.list_dms(open_only=True)
    elif dm_filter == "all":
        dms = service.list_dms()
    else:
        dms = service.list_dms(kind=ChannelKind(dm_filter))
    return DMListResponse(dms=dms, total=len(dms))


@router.put("/dms/{dm_id}/priority", response_model=DMConversationRecord)
def set_dm_priority(
    dm_id: str,
    request: DMPriorityRequest,
    service: SlackToolService = Depends(get_tool_service),
):
    logger.info(f"Setting priority of {dm_id} to {request.priority}")
    return service.set_dm_priority(dm_id, request.priority)
