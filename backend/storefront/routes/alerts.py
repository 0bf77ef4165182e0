# backend/storefront/routes/alerts.py
"""
Low-stock alert routes (admin).

- GET  /api/admin/alerts                 - active, unresolved alerts (dashboard)
- GET  /api/admin/alerts/all             - every alert, paginated, optional resolved filter
- GET  /api/admin/alerts/stats           - totals, active, resolved today, per level
- GET  /api/admin/alerts/<id>            - single alert with notifications
- POST /api/admin/alerts/<id>/resolve    - manual resolution
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import BackofficeError, NotFoundError, error_response, internal_error_response
from ..decorators import require_admin
from ..extensions import db
from ..models import LowStockAlert
from ..services import alert_service
from ..validation import optional_int, parse_pagination, parse_bool_arg, optional_text, require_object


alerts_bp = Blueprint("alerts", __name__, url_prefix="/api/admin/alerts")


@alerts_bp.get("")
@require_admin
def active_alerts_route(actor):
    try:
        limit = optional_int(request.args, "limit", minimum=1) or 50
        alerts = alert_service.active_alerts(
            level=request.args.get("level") or None,
            category=request.args.get("category") or None,
            limit=min(limit, 100),
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to load active alerts")
        return internal_error_response(e)

    return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200


@alerts_bp.get("/all")
@require_admin
def list_alerts_route(actor):
    try:
        page, limit = parse_pagination(request.args)
        result = alert_service.list_alerts(
            level=request.args.get("level") or None,
            category=request.args.get("category") or None,
            resolved=parse_bool_arg(request.args, "resolved"),
            page=page,
            limit=limit,
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to list alerts")
        return internal_error_response(e)

    return jsonify({
        "alerts": [a.to_dict() for a in result["items"]],
        "total": result["total"],
        "page": result["page"],
        "limit": result["limit"],
    }), 200


@alerts_bp.get("/stats")
@require_admin
def alert_stats_route(actor):
    try:
        stats = alert_service.alert_stats()
    except Exception as e:
        current_app.logger.exception("Failed to compute alert stats")
        return internal_error_response(e)
    return jsonify(stats), 200


@alerts_bp.get("/<int:alert_id>")
@require_admin
def get_alert_route(alert_id: int, actor):
    alert = db.session.get(LowStockAlert, alert_id)
    if alert is None:
        return error_response(NotFoundError("Alert not found"))
    return jsonify({"alert": alert.to_dict()}), 200


@alerts_bp.post("/<int:alert_id>/resolve")
@require_admin
def resolve_alert_route(alert_id: int, actor):
    """
    Request body:
        {"action": "restocked|discontinued|threshold_updated|manual_resolve", "notes": "..."}
    `resolution` is accepted as an alias of `action`.
    """
    try:
        payload = require_object(request.get_json(silent=True))
        resolution = payload.get("action") or payload.get("resolution") or "manual_resolve"
        alert = alert_service.resolve_manually(
            alert_id,
            actor=actor,
            resolution=resolution,
            notes=optional_text(payload, "notes", max_length=2000),
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to resolve alert")
        return internal_error_response(e)

    return jsonify({"alert": alert.to_dict(), "message": "Alert resolved"}), 200
