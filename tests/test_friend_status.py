"""Contact resolution tests."""

import asyncio
import threading
from datetime import timedelta

from lonelycare.models import Friendship, Heartbeat, User, UserProfile
from lonelycare.services.friend_status_service import FriendStatusResolver, merge_relationships
from lonelycare.services.store import Direction, HeartbeatRecord, Relationship, SqlDocumentStore, latest_heartbeat
from tests.conftest import TestingSessionLocal
from tests.fakes import NOW, FakeStore


def _store_with_users(*ids):
    store = FakeStore()
    for user_id in ids:
        store.add_user(user_id, f"user{user_id}")
    return store


def test_links_are_visible_from_both_sides():
    """A link created by A shows B to A and A to B."""
    store = _store_with_users(1, 2)
    store.link(1, 2)
    resolver = FriendStatusResolver(store)

    assert [c.id for c in asyncio.run(resolver.resolve(1))] == [2]
    assert [c.id for c in asyncio.run(resolver.resolve(2))] == [1]


def test_mutual_links_yield_one_contact_preferring_outgoing():
    store = _store_with_users(1, 2)
    incoming = store.link(2, 1)
    outgoing = store.link(1, 2)

    contacts = asyncio.run(FriendStatusResolver(store).resolve(1))

    assert len(contacts) == 1
    assert contacts[0].relationship is outgoing
    assert contacts[0].relationship is not incoming


def test_merge_skips_self_links():
    rel = Relationship(id=1, user_id=5, friend_id=5, status="active")
    assert merge_relationships(5, [rel], [rel]) == {}


def test_blocked_links_are_ignored():
    store = _store_with_users(1, 2, 3)
    store.link(1, 2, status="blocked")
    store.link(3, 1)
    assert [c.id for c in asyncio.run(FriendStatusResolver(store).resolve(1))] == [3]


def test_unknown_identity_is_skipped():
    store = _store_with_users(1, 2)
    store.link(1, 2)
    store.link(1, 99)
    contacts = asyncio.run(FriendStatusResolver(store).resolve(1))
    assert [c.id for c in contacts] == [2]


def test_identity_failure_yields_degraded_contact():
    store = _store_with_users(1, 2, 3)
    store.link(1, 2)
    store.link(1, 3)
    store.fail_identity.add(2)

    contacts = asyncio.run(FriendStatusResolver(store).resolve(1))

    assert [c.id for c in contacts] == [2, 3]
    assert contacts[0].degraded
    assert contacts[0].name == "unknown"
    assert contacts[0].last_activity is None
    assert not contacts[1].degraded


def test_heartbeat_failure_keeps_identity_but_degrades():
    store = _store_with_users(1, 2)
    store.link(1, 2)
    store.fail_heartbeat.add(2)

    contact = asyncio.run(FriendStatusResolver(store).resolve(1))[0]

    assert contact.name == "user2"
    assert contact.degraded
    assert contact.last_activity is None


def test_relationship_failure_returns_empty_list():
    store = _store_with_users(1)
    store.fail_relationships = True
    assert asyncio.run(FriendStatusResolver(store).resolve(1)) == []


def test_latest_heartbeat_is_chosen_client_side():
    store = _store_with_users(1, 2)
    store.link(1, 2)
    store.beat(2, NOW - timedelta(hours=5), source="motion")
    store.beat(2, NOW - timedelta(hours=1), source="app")
    store.beat(2, NOW - timedelta(hours=3), source="service")

    contact = asyncio.run(FriendStatusResolver(store).resolve(1))[0]

    assert contact.last_activity == NOW - timedelta(hours=1)
    assert contact.heartbeat_source == "app"


def test_latest_heartbeat_handles_empty():
    assert latest_heartbeat([]) is None
    naive = HeartbeatRecord(user_id=1, timestamp=(NOW - timedelta(hours=2)).replace(tzinfo=None))
    aware = HeartbeatRecord(user_id=1, timestamp=NOW - timedelta(hours=1))
    assert latest_heartbeat([naive, aware]) is aware


def test_sql_store_reads_both_directions(setup_db):
    """SqlDocumentStore returns links, identities, heartbeats and profiles from the database."""
    db = TestingSessionLocal()
    try:
        owner = User(name="Owner")
        friend = User(name="Friend", phone="010-0000-0000")
        inactive = User(name="Gone", is_active=False)
        db.add_all([owner, friend, inactive])
        db.commit()
        db.add_all(
            [
                Friendship(user_id=friend.id, friend_id=owner.id, status="active"),
                Friendship(user_id=owner.id, friend_id=inactive.id, status="active"),
                Heartbeat(user_id=friend.id, timestamp=NOW - timedelta(hours=2), source="app"),
                Heartbeat(user_id=friend.id, timestamp=NOW - timedelta(minutes=10), source="motion"),
                UserProfile(user_id=friend.id, address="1 Main St", emergency_contact_consent=False),
            ]
        )
        db.commit()
        owner_id, friend_id, inactive_id = owner.id, friend.id, inactive.id
    finally:
        db.close()

    store = SqlDocumentStore(TestingSessionLocal)

    incoming = asyncio.run(store.get_relationships(owner_id, Direction.INCOMING))
    assert [r.user_id for r in incoming] == [friend_id]
    assert asyncio.run(store.get_identity(inactive_id)) is None

    contacts = asyncio.run(FriendStatusResolver(store).resolve(owner_id))
    assert [c.id for c in contacts] == [friend_id]
    assert contacts[0].heartbeat_source == "motion"
    assert contacts[0].last_activity == NOW - timedelta(minutes=10)

    profile = asyncio.run(store.get_profile(friend_id))
    assert profile["address"] == "1 Main St"
    assert profile["emergency_contact_consent"] is False


def test_sql_store_runs_sessions_off_the_event_loop_thread(setup_db):
    session_threads = []

    def session_factory():
        session_threads.append(threading.get_ident())
        return TestingSessionLocal()

    store = SqlDocumentStore(session_factory)

    async def lookups():
        await store.get_relationships(1, Direction.OUTGOING)
        await store.get_threshold_config()
        return threading.get_ident()

    loop_thread = asyncio.run(lookups())

    assert len(session_threads) == 2
    assert loop_thread not in session_threads
