"""Document store interface consumed by the monitoring core, and its SQLAlchemy implementation."""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from lonelycare.models.admin_setting import AdminSetting
from lonelycare.models.friendship import Friendship
from lonelycare.models.heartbeat import Heartbeat
from lonelycare.models.user import User
from lonelycare.models.user_profile import UserProfile
from lonelycare.services.alert_levels import as_utc


class Direction(str, enum.Enum):
    OUTGOING = "outgoing"  # owner created the link
    INCOMING = "incoming"  # someone else added the owner


@dataclass
class Relationship:
    id: int
    user_id: int  # initiator
    friend_id: int  # target
    status: str
    created_at: datetime | None = None

    def other_party(self, owner_id: int) -> int:
        return self.friend_id if self.user_id == owner_id else self.user_id


@dataclass
class Identity:
    id: int
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass
class HeartbeatRecord:
    user_id: int
    timestamp: datetime
    source: str = "app"


class DocumentStore(Protocol):
    async def get_relationships(self, owner_id: int, direction: Direction) -> list[Relationship]: ...

    async def get_identity(self, user_id: int) -> Identity | None: ...

    async def get_latest_heartbeat(self, user_id: int) -> HeartbeatRecord | None: ...

    async def get_profile(self, user_id: int) -> dict[str, Any] | None: ...

    async def get_threshold_config(self) -> dict[str, Any] | None: ...

    async def save_threshold_config(self, config: dict[str, Any], updated_by: str = "system") -> None: ...


def latest_heartbeat(records: list[HeartbeatRecord]) -> HeartbeatRecord | None:
    """Newest record by timestamp, sorted client-side."""
    if not records:
        return None
    ordered = sorted(records, key=lambda r: as_utc(r.timestamp), reverse=True)
    return ordered[0]


class SqlDocumentStore:
    """DocumentStore backed by the relational schema in lonelycare.models.

    Queries use equality filters only; ordering happens in Python. Session
    work runs in a worker thread so the event loop keeps serving sockets.
    """

    def __init__(self, session_factory: sessionmaker[Session], thresholds_key: str = "notification_thresholds") -> None:
        self._session_factory = session_factory
        self._thresholds_key = thresholds_key

    async def get_relationships(self, owner_id: int, direction: Direction) -> list[Relationship]:
        return await asyncio.to_thread(self._relationships, owner_id, direction)

    async def get_identity(self, user_id: int) -> Identity | None:
        return await asyncio.to_thread(self._identity, user_id)

    async def get_latest_heartbeat(self, user_id: int) -> HeartbeatRecord | None:
        records = await asyncio.to_thread(self._heartbeats, user_id)
        return latest_heartbeat(records)

    async def get_profile(self, user_id: int) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._profile, user_id)

    async def get_threshold_config(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._threshold_config)

    async def save_threshold_config(self, config: dict[str, Any], updated_by: str = "system") -> None:
        await asyncio.to_thread(self._save_threshold_config, dict(config), updated_by)

    def _relationships(self, owner_id: int, direction: Direction) -> list[Relationship]:
        column = Friendship.user_id if direction is Direction.OUTGOING else Friendship.friend_id
        with self._session_factory() as db:
            rows = db.execute(
                select(Friendship).where(column == owner_id).where(Friendship.status == "active")
            ).scalars().all()
            return [
                Relationship(
                    id=row.id,
                    user_id=row.user_id,
                    friend_id=row.friend_id,
                    status=row.status,
                    created_at=row.created_at,
                )
                for row in rows
            ]

    def _identity(self, user_id: int) -> Identity | None:
        with self._session_factory() as db:
            user = db.get(User, user_id)
            if not user or not user.is_active:
                return None
            return Identity(id=user.id, name=user.name, email=user.email, phone=user.phone)

    def _heartbeats(self, user_id: int) -> list[HeartbeatRecord]:
        with self._session_factory() as db:
            rows = db.execute(select(Heartbeat).where(Heartbeat.user_id == user_id)).scalars().all()
            return [HeartbeatRecord(user_id=r.user_id, timestamp=as_utc(r.timestamp), source=r.source) for r in rows]

    def _profile(self, user_id: int) -> dict[str, Any] | None:
        with self._session_factory() as db:
            profile = db.execute(
                select(UserProfile).where(UserProfile.user_id == user_id)
            ).scalar_one_or_none()
            if profile is None:
                return None
            return {
                "address": profile.address,
                "detail_address": profile.detail_address,
                "postal_code": profile.postal_code,
                "blood_type": profile.blood_type,
                "medical_conditions": profile.medical_conditions,
                "medications": profile.medications,
                "allergies": profile.allergies,
                "emergency_contacts": profile.emergency_contacts,
                "emergency_contact_consent": profile.emergency_contact_consent,
            }

    def _threshold_config(self) -> dict[str, Any] | None:
        with self._session_factory() as db:
            row = db.get(AdminSetting, self._thresholds_key)
            return dict(row.value) if row else None

    def _save_threshold_config(self, config: dict[str, Any], updated_by: str) -> None:
        with self._session_factory() as db:
            row = db.get(AdminSetting, self._thresholds_key)
            if row:
                row.value = config
                row.updated_by = updated_by
            else:
                db.add(AdminSetting(key=self._thresholds_key, value=config, updated_by=updated_by))
            db.commit()
