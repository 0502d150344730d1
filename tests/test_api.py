"""HTTP API tests."""

from datetime import datetime, timedelta, timezone

from lonelycare.models import Friendship
from tests.conftest import TestingSessionLocal


def _link(user_id, friend_id):
    db = TestingSessionLocal()
    try:
        db.add(Friendship(user_id=user_id, friend_id=friend_id, status="active"))
        db.commit()
    finally:
        db.close()


def _headers(user_id):
    return {"X-User-Id": str(user_id)}


def test_health(client):
    """Health endpoint returns ok."""
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_requires_user_header(client):
    assert client.post("/monitor/run").status_code == 401
    assert client.post("/monitor/run", headers=_headers(999999)).status_code == 401


def test_heartbeat_recorded_for_current_user(client, make_user):
    user_id = make_user("Beat")
    r = client.post("/heartbeats", headers=_headers(user_id), json={"source": "motion"})
    assert r.status_code == 200
    assert r.json()["user_id"] == user_id
    assert r.json()["source"] == "motion"

    bad = client.post("/heartbeats", headers=_headers(user_id), json={"source": "carrier-pigeon"})
    assert bad.status_code == 422


def test_run_pass_notifies_through_audit_log_without_socket(client, make_user):
    """With no open socket the audit log still delivers; a second run is cooled down."""
    owner = make_user("Owner")
    friend = make_user("Friend")
    _link(friend, owner)
    last = datetime.now(timezone.utc) - timedelta(hours=30)
    client.post("/heartbeats", headers=_headers(friend), json={"timestamp": last.isoformat()})

    r = client.post("/monitor/run", headers=_headers(owner))
    assert r.status_code == 200
    body = r.json()
    assert body["skipped"] is False
    evaluation = body["summary"]["evaluations"][0]
    assert evaluation["contact_id"] == friend
    assert evaluation["tier"] == "warning"
    assert evaluation["notified"] is True
    assert evaluation["channels"]["audit_log"] == "delivered"
    assert evaluation["channels"]["banner"] == "failed"
    assert "last_resort" not in evaluation["channels"]

    again = client.post("/monitor/run", headers=_headers(owner)).json()
    assert again["summary"]["evaluations"][0]["cooldown_blocked"] is True

    assert client.get("/alerts/pending", headers=_headers(owner)).json() == []

    history = client.get("/notifications/history", headers=_headers(owner)).json()
    assert history["entries"][0]["contact_id"] == friend

    last_pass = client.get("/monitor/last", headers=_headers(owner))
    assert last_pass.json()["evaluations"][0]["cooldown_blocked"] is True


def test_cooldown_status_and_reset(client, make_user):
    owner = make_user("Owner")
    friend = make_user("Friend")
    _link(owner, friend)
    last = datetime.now(timezone.utc) - timedelta(hours=50)
    client.post("/heartbeats", headers=_headers(friend), json={"timestamp": last.isoformat()})
    client.post("/monitor/run", headers=_headers(owner))

    status = client.get("/monitor/cooldowns", headers=_headers(owner)).json()
    assert status["cooldown_minutes"] == 120
    assert status["contacts"][str(friend)]["danger"]["can_send"] is False

    assert client.delete("/monitor/cooldowns?tier=danger", headers=_headers(owner)).status_code == 400
    r = client.delete(f"/monitor/cooldowns?contact_id={friend}&tier=danger", headers=_headers(owner))
    assert r.json() == {"cleared": 1}

    rerun = client.post("/monitor/run", headers=_headers(owner)).json()
    assert rerun["summary"]["evaluations"][0]["notified"] is True


def test_last_pass_404_before_any_run(client, make_user):
    owner = make_user("Fresh")
    assert client.get("/monitor/last", headers=_headers(owner)).status_code == 404


def test_thresholds_update_and_read(client, make_user):
    admin = make_user("Admin")

    r = client.put("/thresholds", headers=_headers(admin), json={"warning": 60, "danger": 120, "emergency": 180})
    assert r.status_code == 200
    assert r.json()["source"] == "remote"

    r = client.get("/thresholds?refresh=true", headers=_headers(admin))
    assert r.json() == {"warning": 60, "danger": 120, "emergency": 180, "source": "remote"}

    bad = client.put("/thresholds", headers=_headers(admin), json={"warning": 100, "danger": 50, "emergency": 200})
    assert bad.status_code == 400

    too_big = client.put("/thresholds", headers=_headers(admin), json={"warning": 60, "danger": 120, "emergency": 99999})
    assert too_big.status_code == 422

    # restore defaults for the rest of the session
    client.put("/thresholds", headers=_headers(admin), json={"warning": 1440, "danger": 2880, "emergency": 4320})


def test_interaction_unlocks_sound(client, make_user, registry):
    owner = make_user("Listener")
    assert not registry.permissions.allowed(owner)
    r = client.post("/interaction", headers=_headers(owner))
    assert r.status_code == 200
    assert registry.permissions.allowed(owner)


def test_start_and_stop_monitor(client, make_user):
    owner = make_user("Scheduler")
    started = client.post("/monitor/start", headers=_headers(owner), json={"interval_minutes": 60})
    assert started.status_code == 200
    assert started.json()["scheduled"] is True

    stopped = client.post("/monitor/stop", headers=_headers(owner))
    assert stopped.json()["scheduled"] is False


def test_websocket_ping_and_unknown_user(client, make_user):
    from lonelycare.core.ws_manager import ws_manager

    user_id = make_user("Socket")
    with client.websocket_connect(f"/ws?user_id={user_id}") as ws:
        assert ws_manager.is_connected(user_id)
        ws.send_text("ping")
        assert ws.receive_json() == {"event": "pong"}


def test_pending_alert_acknowledge(client, make_user, registry):
    from lonelycare.services.alert_levels import Tier
    from lonelycare.services.channels import Notification
    from lonelycare.services.friend_status_service import Contact

    owner = make_user("Pending")
    contact = Contact(id=77, name="Mina", relationship=None, last_activity=None)
    registry.pending.enqueue(Notification(owner_id=owner, contact=contact, tier=Tier.EMERGENCY, title="t", body="b"))

    pending = client.get("/alerts/pending", headers=_headers(owner)).json()
    assert len(pending) == 1
    assert pending[0]["tier"] == "emergency"

    ack = client.post(f"/alerts/{pending[0]['id']}/ack", headers=_headers(owner))
    assert ack.status_code == 200
    assert client.post(f"/alerts/{pending[0]['id']}/ack", headers=_headers(owner)).status_code == 404
