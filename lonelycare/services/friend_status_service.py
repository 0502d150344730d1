"""Resolve an owner's contacts and their most recent heartbeat."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from lonelycare.services.store import Direction, DocumentStore, Relationship

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "unknown"


@dataclass
class Contact:
    """A monitored friend as seen from one owner."""

    id: int
    name: str
    relationship: Relationship | None
    last_activity: datetime | None
    email: str | None = None
    phone: str | None = None
    heartbeat_source: str | None = None
    status: str = "ok"  # ok | degraded

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"


def merge_relationships(owner_id: int, outgoing: list[Relationship], incoming: list[Relationship]) -> dict[int, Relationship]:
    """Combine both link directions keyed by the other party; owner-created links win."""
    merged: dict[int, Relationship] = {}
    for rel in outgoing:
        other = rel.other_party(owner_id)
        if other != owner_id:
            merged.setdefault(other, rel)
    for rel in incoming:
        other = rel.other_party(owner_id)
        if other != owner_id and other not in merged:
            merged[other] = rel
    return merged


class FriendStatusResolver:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def resolve(self, owner_id: int) -> list[Contact]:
        """Contacts for owner_id, in order of first appearance.

        Unknown identities are skipped; per-contact fetch errors yield a degraded contact.
        """
        try:
            outgoing = await self._store.get_relationships(owner_id, Direction.OUTGOING)
            incoming = await self._store.get_relationships(owner_id, Direction.INCOMING)
        except Exception:
            logger.exception("Relationship lookup failed for owner=%s", owner_id)
            return []

        contacts: list[Contact] = []
        for contact_id, rel in merge_relationships(owner_id, outgoing, incoming).items():
            contact = await self._resolve_one(contact_id, rel)
            if contact is not None:
                contacts.append(contact)

        logger.debug("Resolved %s contacts for owner=%s", len(contacts), owner_id)
        return contacts

    async def _resolve_one(self, contact_id: int, rel: Relationship) -> Contact | None:
        try:
            identity = await self._store.get_identity(contact_id)
        except Exception as exc:
            logger.warning("Identity fetch failed for contact=%s: %s", contact_id, exc)
            return Contact(id=contact_id, name=UNKNOWN_NAME, relationship=rel, last_activity=None, status="degraded")

        if identity is None:
            logger.info("Skipping contact=%s with unknown identity", contact_id)
            return None

        contact = Contact(
            id=identity.id,
            name=identity.name or UNKNOWN_NAME,
            relationship=rel,
            last_activity=None,
            email=identity.email,
            phone=identity.phone,
        )
        try:
            heartbeat = await self._store.get_latest_heartbeat(contact_id)
        except Exception as exc:
            logger.warning("Heartbeat fetch failed for contact=%s: %s", contact_id, exc)
            contact.status = "degraded"
            return contact

        if heartbeat is not None:
            contact.last_activity = heartbeat.timestamp
            contact.heartbeat_source = heartbeat.source
        return contact
