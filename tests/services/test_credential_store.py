"""
Tests for the persistent Slack token store.
"""

import pytest

from app.models.directory import CredentialRecord
from app.services.errors import AuthRequiredError, NotFoundError


class TestStoreToken:
    def test_new_token_replaces_active_one(self, credential_store):
        """Storing a second token for the same pair leaves exactly one active."""
        first = credential_store.store_token("T1", "U1", "xoxp-one")
        second = credential_store.store_token("T1", "U1", "xoxp-two")

        active = credential_store.get_active_credential("T1", "U1")
        assert active.id == second.id
        assert active.access_token == "xoxp-two"

        history = {c.id: c.is_active for c in credential_store.list_credentials()}
        assert history == {first.id: False, second.id: True}

    def test_other_pairs_stay_active(self, credential_store):
        """Tokens of other (team, user) pairs are left active."""
        credential_store.store_token("T1", "U1", "xoxp-one")
        credential_store.store_token("T1", "U2", "xoxp-two")

        active = credential_store.list_credentials(active_only=True)
        assert {c.user_id for c in active} == {"U1", "U2"}

    def test_latest_active_wins_without_filters(self, credential_store):
        """Without filters the most recently stored active token is returned."""
        credential_store.store_token("T1", "U1", "xoxp-one")
        latest = credential_store.store_token("T2", "U9", "xoxp-nine")

        assert credential_store.get_active_credential().id == latest.id

    def test_token_hidden_from_repr(self, credential_store):
        """The access token never appears in a record's repr."""
        record = credential_store.store_token("T1", "U1", "xoxp-secret")
        assert "xoxp-secret" not in repr(record)


class TestRequireCredential:
    def test_raises_when_nothing_stored(self, credential_store):
        """AuthRequiredError is raised when no token is stored."""
        with pytest.raises(AuthRequiredError):
            credential_store.require_credential()

    def test_explicit_credential_is_used(self, credential_store):
        """An explicit credential is returned unchanged."""
        explicit = CredentialRecord(team_id="T1", user_id="U1", access_token="xoxp-x")
        assert credential_store.require_credential(explicit) is explicit

    def test_deactivated_tokens_are_not_used(self, credential_store):
        """A deactivated token is no longer handed out."""
        record = credential_store.store_token("T1", "U1", "xoxp-one")
        deactivated = credential_store.deactivate(record.id)

        assert deactivated.is_active is False
        with pytest.raises(AuthRequiredError):
            credential_store.require_credential()


class TestDelete:
    def test_delete_removes_row(self, credential_store):
        """Deleting a credential removes its row."""
        record = credential_store.store_token("T1", "U1", "xoxp-one")
        credential_store.delete(record.id)

        assert credential_store.list_credentials() == []

    def test_unknown_id(self, credential_store):
        """Unknown credential ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            credential_store.delete(42)
        with pytest.raises(NotFoundError):
            credential_store.deactivate(42)
