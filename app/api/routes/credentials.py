
from fastapi import APIRouter, Depends
from typing import Optional
import logging

from app.api.deps import get_tool_service
from app.models.api_responses import (
    CredentialListResponse,
    CredentialSummary,
    SlackConnectRequest,
)
from app.services.slack_tools import SlackToolService

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Slack ──────────────────────────────────────────────

@router.post("/credentials/slack", response_model=CredentialSummary)
async def connect_slack(
    request: SlackConnectRequest,
    service: SlackToolService = Depends(get_tool_service),
):
    """
    Store a Slack token and make it the active credential.

    The token is identified with auth.test first, so an invalid token is
    rejected (auth_required / remote_api_error) and never stored. Any prior
    active token for the same team and user is deactivated.
    """
    record = await service.connect_token(request.access_token, scope=request.scope)
    logger.info(f"Slack credentials stored for {record.user_id} in team {record.team_id}")
    return CredentialSummary.from_record(record)


@router.get("/credentials", response_model=CredentialListResponse)
def list_credentials(
    active_only: Optional[bool] = False,
    service: SlackToolService = Depends(get_tool_service),
):
    credentials = [
        CredentialSummary.from_record(record)
        for record in service.credentials.list_credentials(active_only=bool(active_only))
    ]
    return CredentialListResponse(credentials=credentials, total=len(credentials))


@router.post("/credentials/{credential_id}/deactivate", response_model=CredentialSummary)
def deactivate_credential(
    credential_id: int, service: SlackToolService = Depends(get_tool_service)
):
    record = service.credentials.deactivate(credential_id)
    logger.info(f"Slack credential {credential_id} deactivated")
    return CredentialSummary.from_record(record)


@router.delete("/credentials/{credential_id}")
def delete_credential(
    credential_id: int, service: SlackToolService = Depends(get_tool_service)
):
    service.credentials.delete(credential_id)
    logger.info(f"Slack credential {credential_id} deleted")
    return {"success": True, "message": f"Credential {credential_id} deleted"}
