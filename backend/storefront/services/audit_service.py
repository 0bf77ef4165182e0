# Overview: Service-layer operations for the admin action log; best-effort audit sink and its queries.

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..actor import Actor
from ..extensions import db
from ..models import AdminActionLog
from storefront.time_utils import utcnow, start_of_day
"""
Admin Action Log contract

- append() NEVER raises. A failed write is rolled back and reported on the
  application log instead.
- append() commits its own row, so callers invoke it after their unit of
  work has committed or rolled back, never in the middle of one.
- Entries are immutable (see AdminActionLog mapper events).
"""


def append(
    *,
    actor: Actor,
    action: str,
    target_type: str,
    target_id: Any,
    target_name: str,
    description: str,
    before: dict | None = None,
    after: dict | None = None,
    metadata: dict | None = None,
    severity: str = "medium",
    status: str = "success",
    error_message: str | None = None,
) -> AdminActionLog | None:
    """Write one audit entry. Returns the entry, or None if the write failed."""
    try:
        entry = AdminActionLog(
            actor_id=actor.id,
            actor_name=actor.name,
            actor_email=actor.email,
            action=action,
            target_type=target_type,
            target_id=str(target_id),
            target_name=target_name,
            description=description,
            before_snapshot=before,
            after_snapshot=after,
            metadata_json=metadata or {},
            severity=severity,
            status=status,
            error_message=error_message,
            occurred_at=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Audit write failed: action=%s target=%s:%s actor=%s",
            action, target_type, target_id, actor.name,
        )
        return None


def list_logs(
    *,
    action: str | None = None,
    actor_id: int | None = None,
    target_type: str | None = None,
    severity: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    q = AdminActionLog.query
    if action:
        q = q.filter(AdminActionLog.action == action)
    if actor_id is not None:
        q = q.filter(AdminActionLog.actor_id == actor_id)
    if target_type:
        q = q.filter(AdminActionLog.target_type == target_type)
    if severity:
        q = q.filter(AdminActionLog.severity == severity)
    if start is not None:
        q = q.filter(AdminActionLog.occurred_at >= start)
    if end is not None:
        q = q.filter(AdminActionLog.occurred_at <= end)

    total = q.count()
    items = (
        q.order_by(AdminActionLog.occurred_at.desc(), AdminActionLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit if limit else 0,
    }


def recent(limit: int = 20) -> list[AdminActionLog]:
    return (
        AdminActionLog.query.order_by(AdminActionLog.occurred_at.desc(), AdminActionLog.id.desc())
        .limit(limit)
        .all()
    )


def by_actor(actor_id: int, limit: int = 50) -> list[AdminActionLog]:
    return (
        AdminActionLog.query.filter_by(actor_id=actor_id)
        .order_by(AdminActionLog.occurred_at.desc(), AdminActionLog.id.desc())
        .limit(limit)
        .all()
    )


def by_target(target_type: str, target_id: Any, limit: int = 50) -> list[AdminActionLog]:
    return (
        AdminActionLog.query.filter_by(target_type=target_type, target_id=str(target_id))
        .order_by(AdminActionLog.occurred_at.desc(), AdminActionLog.id.desc())
        .limit(limit)
        .all()
    )


def action_stats(days: int = 30, now: datetime | None = None) -> dict:
    """Counts per action, daily activity and the most active admins over `days`."""
    now = now or utcnow()
    since = start_of_day(now) - timedelta(days=days - 1)

    per_action = (
        db.session.query(AdminActionLog.action, func.count(AdminActionLog.id))
        .filter(AdminActionLog.occurred_at >= since)
        .group_by(AdminActionLog.action)
        .order_by(func.count(AdminActionLog.id).desc())
        .all()
    )

    day = func.date(AdminActionLog.occurred_at)
    daily = (
        db.session.query(day, func.count(AdminActionLog.id))
        .filter(AdminActionLog.occurred_at >= since)
        .group_by(day)
        .order_by(day)
        .all()
    )

    top_actors = (
        db.session.query(
            AdminActionLog.actor_id,
            AdminActionLog.actor_name,
            func.count(AdminActionLog.id),
        )
        .filter(AdminActionLog.occurred_at >= since, AdminActionLog.actor_id.isnot(None))
        .group_by(AdminActionLog.actor_id, AdminActionLog.actor_name)
        .order_by(func.count(AdminActionLog.id).desc())
        .limit(10)
        .all()
    )

    return {
        "days": days,
        "actions": [{"action": a, "count": int(c)} for a, c in per_action],
        "daily_activity": [{"date": str(d), "count": int(c)} for d, c in daily],
        "top_actors": [{"actor_id": i, "actor": n, "count": int(c)} for i, n, c in top_actors],
    }
