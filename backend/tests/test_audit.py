"""Admin action log tests: best-effort writes, immutability, queries."""

import pytest
from sqlalchemy.exc import OperationalError

from storefront.actor import Actor
from storefront.extensions import db
from storefront.models import AdminActionLog, LedgerImmutableError
from storefront.services import audit_service


def _append(actor, action="order_status_update", target_id=1, **kwargs):
    return audit_service.append(
        actor=actor,
        action=action,
        target_type=kwargs.pop("target_type", "order"),
        target_id=target_id,
        target_name=f"Order {target_id}",
        description="test entry",
        **kwargs,
    )


def test_append_persists_entry(db_session, actor):
    entry = _append(actor, before={"status": "pending"}, after={"status": "confirmed"}, metadata={"k": 1})

    stored = db.session.get(AdminActionLog, entry.id)
    assert stored.actor_email == actor.email
    assert stored.metadata_json == {"k": 1}
    data = stored.to_dict()
    assert data["changes"] == {"before": {"status": "pending"}, "after": {"status": "confirmed"}}
    assert data["severity"] == "medium"


def test_append_never_raises(db_session, actor, monkeypatch):
    def _boom():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", _boom)

    assert _append(actor) is None


def test_entries_are_immutable(db_session, actor):
    entry = _append(actor)
    entry.description = "edited"
    with pytest.raises(LedgerImmutableError):
        db.session.flush()
    db.session.rollback()


def test_system_actor_has_no_id(db_session):
    entry = _append(Actor.system())
    assert entry.actor_id is None
    assert entry.actor_name == "system"


def test_queries(db_session, actor):
    other = Actor(id=actor.id + 1000, name="Night Shift", email="night@storefront.test")
    _append(actor, target_id=1)
    _append(actor, action="order_deleted", target_id=2, severity="high")
    _append(other, target_id=1)

    assert audit_service.list_logs(action="order_deleted")["total"] == 1
    assert audit_service.list_logs(severity="high")["items"][0].action == "order_deleted"
    assert len(audit_service.by_actor(actor.id)) == 2
    assert len(audit_service.by_target("order", 1)) == 2
    assert len(audit_service.recent(limit=2)) == 2

    stats = audit_service.action_stats(days=7)
    counts = {row["action"]: row["count"] for row in stats["actions"]}
    assert counts == {"order_status_update": 2, "order_deleted": 1}
    assert stats["top_actors"][0] == {"actor_id": actor.id, "actor": actor.name, "count": 2}
    assert sum(day["count"] for day in stats["daily_activity"]) == 3
