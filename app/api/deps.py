"""
Shared FastAPI dependencies.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from app.config import get_settings
from app.models.directory import CredentialRecord
from app.services.credential_store import CredentialStore
from app.services.slack_tools import SlackToolService
from app.storage.database import create_database_engine, create_session_factory
from app.storage.directory_store import DirectoryStore

logger = logging.getLogger(__name__)


@lru_cache
def get_tool_service() -> SlackToolService:
    """One service instance per process, shared by every request."""
    settings = get_settings()
    session_factory = create_session_factory(
        create_database_engine(settings.database_url)
    )
    return SlackToolService(
        settings,
        store=DirectoryStore(session_factory),
        credentials=CredentialStore(session_factory),
    )


def get_credential(
    service: SlackToolService = Depends(get_tool_service),
) -> Optional[CredentialRecord]:
    """
    Default credential for a request.

    Stored tokens take precedence; SLACK_USER_TOKEN from the environment is
    only a fallback. Returning None lets the service raise AuthRequiredError.
    """
    credential = service.credentials.get_active_credential()
    if credential is not None:
        return credential

    token = service.settings.slack_user_token
    if token:
        logger.debug("No stored credential, using SLACK_USER_TOKEN")
        return CredentialRecord(
            team_id="", user_id="", access_token=token, token_type="env"
        )
    return None
