"""
Credential store for Slack access tokens.

Tokens persist in the ``slack_tokens`` table. Storing a token for a
(team, user) pair deactivates the previous one in the same transaction,
so a pair never has two active tokens at once.
"""

from datetime import datetime
from typing import List, Optional
import logging
import threading

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.models.directory import CredentialRecord
from app.services.errors import AuthRequiredError, NotFoundError, StorageError
from app.storage.schema import SlackToken

logger = logging.getLogger(__name__)


class CredentialStore:
    def __init__(self, session_factory: sessionmaker):
        self.Session = session_factory
        self._lock = threading.Lock()

    def store_token(
        self,
        team_id: str,
        user_id: str,
        access_token: str,
        scope: str = "",
        team_name: Optional[str] = None,
        user_name: Optional[str] = None,
        token_type: str = "user",
    ) -> CredentialRecord:
        now = datetime.now()
        with self._lock:
            try:
                with self.Session() as session, session.begin():
                    session.execute(
                        update(SlackToken)
                        .where(
                            SlackToken.team_id == team_id,
                            SlackToken.user_id == user_id,
                            SlackToken.is_active.is_(True),
                        )
                        .values(is_active=False, updated_at=now)
                    )
                    token = SlackToken(
                        team_id=team_id,
                        team_name=team_name,
                        user_id=user_id,
                        user_name=user_name,
                        access_token=access_token,
                        scope=scope,
                        token_type=token_type,
                        created_at=now,
                        updated_at=now,
                        is_active=True,
                    )
                    session.add(token)
                    session.flush()
                    record = CredentialRecord.model_validate(token)
            except SQLAlchemyError as e:
                logger.error(f"Failed to store token for {team_id}/{user_id}: {e}")
                raise StorageError(f"Failed to store token: {e}") from e

        logger.info(f"Stored active token {record.id} for team {team_id}, user {user_id}")
        return record

    def get_active_credential(
        self, team_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> Optional[CredentialRecord]:
        """Most recently updated active credential matching the given filters."""
        query = select(SlackToken).where(SlackToken.is_active.is_(True))
        if team_id:
            query = query.where(SlackToken.team_id == team_id)
        if user_id:
            query = query.where(SlackToken.user_id == user_id)
        query = query.order_by(SlackToken.updated_at.desc(), SlackToken.id.desc()).limit(1)

        try:
            with self.Session() as session:
                token = session.scalars(query).first()
                return CredentialRecord.model_validate(token) if token else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read active credential: {e}")
            raise StorageError(f"Failed to read credentials: {e}") from e

    def require_credential(
        self, credential: Optional[CredentialRecord] = None
    ) -> CredentialRecord:
        """Return ``credential`` if given, otherwise the latest active one."""
        if credential is not None:
            return credential
        credential = self.get_active_credential()
        if credential is None:
            raise AuthRequiredError(
                "No active Slack credential found. Store a token first."
            )
        return credential

    def list_credentials(self, active_only: bool = False) -> List[CredentialRecord]:
        query = select(SlackToken).order_by(SlackToken.updated_at.desc())
        if active_only:
            query = query.where(SlackToken.is_active.is_(True))
        try:
            with self.Session() as session:
                return [
                    CredentialRecord.model_validate(t)
                    for t in session.scalars(query).all()
                ]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list credentials: {e}")
            raise StorageError(f"Failed to read credentials: {e}") from e

    def deactivate(self, credential_id: int) -> CredentialRecord:
        record = self._modify(credential_id, delete=False)
        logger.info(f"Deactivated token {credential_id}")
        return record

    def delete(self, credential_id: int) -> None:
        self._modify(credential_id, delete=True)
        logger.info(f"Deleted token {credential_id}")

    def _modify(self, credential_id: int, delete: bool) -> Optional[CredentialRecord]:
        with self._lock:
            try:
                with self.Session() as session, session.begin():
                    token = session.get(SlackToken, credential_id)
                    if token is None:
                        raise NotFoundError(f"Credential {credential_id} not found")
                    if delete:
                        session.delete(token)
                        return None
                    token.is_active = False
                    token.updated_at = datetime.now()
                    session.flush()
                    return CredentialRecord.model_validate(token)
            except SQLAlchemyError as e:
                logger.error(f"Failed to update credential {credential_id}: {e}")
                raise StorageError(f"Failed to update credential: {e}") from e
