"""
Directory Store

Persisted mirror of Slack channels, users, channel memberships and DM
conversations.

Responsibilities:
- Insert-or-replace upserts for channels and users
- Per-channel full replace of membership edges (delete-then-insert)
- Full rebuild of the derived DM conversation table
- Read-only queries for the API layer (never blocked by writes)
"""

from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Sequence
import logging
import threading

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.models.directory import (
    ChannelKind,
    ChannelRecord,
    ChannelWithMembers,
    DMConversationRecord,
    MemberSummary,
    MembershipRecord,
    UserRecord,
)
from app.services.errors import NotFoundError, StorageError
from app.storage.schema import Channel, ChannelMembership, DMConversation, User

logger = logging.getLogger(__name__)


def _last_by_key(rows: Iterable, key) -> list:
    """Collapse rows sharing a key, keeping the last occurrence."""
    latest = {}
    for row in rows:
        latest[key(row)] = row
    return list(latest.values())


class DirectoryStore:
    """
    Local directory cache backed by SQLAlchemy.

    Writes to the same logical table are serialized with one lock per table so
    concurrent refreshes never interleave inside a single upsert or replace.
    Reads take no lock; a read during a refresh may see the previous state.
    """

    def __init__(self, session_factory: sessionmaker):
        self.Session = session_factory
        self._locks: Dict[str, threading.Lock] = {
            "channels": threading.Lock(),
            "users": threading.Lock(),
            "channel_memberships": threading.Lock(),
            "dm_conversations": threading.Lock(),
        }

    @contextmanager
    def _write(self, table: str) -> Iterator[Session]:
        with self._locks[table]:
            try:
                with self.Session() as session, session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error(f"Failed to write {table}: {e}")
                raise StorageError(f"Failed to write {table}: {e}") from e

    @contextmanager
    def _read(self, what: str) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {what}: {e}")
            raise StorageError(f"Failed to read {what}: {e}") from e

    # ── Writes ──────────────────────────────────────────────

    def upsert_channels(self, rows: Sequence[ChannelRecord]) -> int:
        rows = _last_by_key(rows, lambda r: r.id)
        with self._write("channels") as session:
            for row in rows:
                session.merge(
                    Channel(**row.model_dump(exclude={"kind"}), kind=row.kind.value)
                )
        logger.debug(f"Upserted {len(rows)} channels")
        return len(rows)

    def upsert_users(self, rows: Sequence[UserRecord]) -> int:
        rows = _last_by_key(rows, lambda r: r.id)
        with self._write("users") as session:
            for row in rows:
                session.merge(User(**row.model_dump()))
        logger.debug(f"Upserted {len(rows)} users")
        return len(rows)

    def replace_memberships(
        self,
        rows: Sequence[MembershipRecord],
        channel_ids: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Replace the membership edge set of every channel present in ``rows``.

        Channels listed in ``channel_ids`` are replaced as well, which lets a
        caller clear a channel whose member list is now empty. Channels not
        mentioned at all keep their existing edges.
        """
        rows = _last_by_key(rows, lambda r: (r.channel_id, r.user_id))
        affected = list(dict.fromkeys([r.channel_id for r in rows] + list(channel_ids or [])))

        with self._write("channel_memberships") as session:
            for channel_id in affected:
                session.execute(
                    delete(ChannelMembership).where(
                        ChannelMembership.channel_id == channel_id
                    )
                )
            session.add_all(ChannelMembership(**row.model_dump()) for row in rows)

        logger.debug(
            f"Replaced memberships for {len(affected)} channels ({len(rows)} edges)"
        )
        return len(rows)

    def replace_dm_conversations(self, rows: Sequence[DMConversationRecord]) -> int:
        """
        Rebuild the DM conversation table from ``rows``.

        Conversations missing from ``rows`` are dropped. A row without an
        explicit priority keeps the priority previously stored for its id.
        """
        rows = _last_by_key(rows, lambda r: r.id)
        with self._write("dm_conversations") as session:
            priorities = dict(
                session.execute(select(DMConversation.id, DMConversation.priority)).all()
            )
            session.execute(delete(DMConversation))
            for row in rows:
                priority = row.priority
                if priority is None:
                    priority = priorities.get(row.id, 0)
                session.add(
                    DMConversation(
                        **row.model_dump(exclude={"kind", "priority"}),
                        kind=row.kind.value,
                        priority=priority,
                    )
                )
        logger.debug(f"Rebuilt DM conversations with {len(rows)} rows")
        return len(rows)

    def set_dm_priority(self, dm_id: str, priority: int) -> DMConversationRecord:
        with self._write("dm_conversations") as session:
            dm = session.get(DMConversation, dm_id)
            if dm is None:
                raise NotFoundError(f"DM conversation {dm_id} not found")
            dm.priority = priority
            dm.updated_at = datetime.now()
            session.flush()
            return DMConversationRecord.model_validate(dm)

    # ── Reads ───────────────────────────────────────────────

    def list_channels(self, include_members: bool = False) -> List[ChannelRecord]:
        with self._read("channels") as session:
            channels = session.scalars(select(Channel).order_by(Channel.name)).all()
            if not include_members:
                return [ChannelRecord.model_validate(c) for c in channels]

            members_by_channel = defaultdict(list)
            edges = session.execute(
                select(ChannelMembership.channel_id, User)
                .join(User, User.id == ChannelMembership.user_id)
                .where(User.is_deleted.is_(False))
                .order_by(func.coalesce(User.name, User.id))
            ).all()
            for channel_id, user in edges:
                members_by_channel[channel_id].append(MemberSummary.model_validate(user))

            return [
                ChannelWithMembers(
                    **ChannelRecord.model_validate(c).model_dump(),
                    members=members_by_channel.get(c.id, []),
                )
                for c in channels
            ]

    def get_channel(self, channel_id: str) -> Optional[ChannelRecord]:
        with self._read("channels") as session:
            channel = session.get(Channel, channel_id)
            return ChannelRecord.model_validate(channel) if channel else None

    def list_users(self) -> List[UserRecord]:
        """Active (non-deleted) users ordered by handle."""
        with self._read("users") as session:
            users = session.scalars(
                select(User)
                .where(User.is_deleted.is_(False))
                .order_by(func.coalesce(User.name, User.id))
            ).all()
            return [UserRecord.model_validate(u) for u in users]

    def get_channel_members(self, channel_id: str) -> List[UserRecord]:
        with self._read("channel members") as session:
            users = session.scalars(
                select(User)
                .join(ChannelMembership, ChannelMembership.user_id == User.id)
                .where(
                    ChannelMembership.channel_id == channel_id,
                    User.is_deleted.is_(False),
                )
                .order_by(func.coalesce(User.name, User.id))
            ).all()
            return [UserRecord.model_validate(u) for u in users]

    def get_user_channels(self, user_id: str) -> List[ChannelRecord]:
        """Non-archived channels the user is a member of."""
        with self._read("user channels") as session:
            channels = session.scalars(
                select(Channel)
                .join(ChannelMembership, ChannelMembership.channel_id == Channel.id)
                .where(
                    ChannelMembership.user_id == user_id,
                    Channel.is_archived.is_(False),
                )
                .order_by(Channel.name)
            ).all()
            return [ChannelRecord.model_validate(c) for c in channels]

    def list_dms(
        self, kind: Optional[ChannelKind] = None, open_only: bool = False
    ) -> List[DMConversationRecord]:
        """DM conversations by priority (highest first), then most recent activity."""
        query = select(DMConversation)
        if kind is not None:
            query = query.where(DMConversation.kind == ChannelKind(kind).value)
        if open_only:
            query = query.where(DMConversation.is_open.is_(True))
        query = query.order_by(
            DMConversation.priority.desc(),
            DMConversation.latest_message_ts.desc().nulls_last(),
            DMConversation.updated_at.desc(),
        )
        with self._read("dm conversations") as session:
            return [
                DMConversationRecord.model_validate(dm)
                for dm in session.scalars(query).all()
            ]

    def get_dm_channel_for_user(self, user_id: str) -> Optional[DMConversationRecord]:
        with self._read("dm conversations") as session:
            dm = session.scalars(
                select(DMConversation)
                .where(
                    DMConversation.user_id == user_id,
                    DMConversation.kind == ChannelKind.DIRECT.value,
                )
                .order_by(DMConversation.updated_at.desc())
                .limit(1)
            ).first()
            return DMConversationRecord.model_validate(dm) if dm else None

    def counts(self) -> Dict[str, int]:
        with self._read("table counts") as session:
            return {
                "channels": session.scalar(select(func.count()).select_from(Channel)),
                "users": session.scalar(select(func.count()).select_from(User)),
                "channel_memberships": session.scalar(
                    select(func.count()).select_from(ChannelMembership)
                ),
                "dm_conversations": session.scalar(
                    select(func.count()).select_from(DMConversation)
                ),
            }
