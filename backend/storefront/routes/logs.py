# backend/storefront/routes/logs.py
"""
Admin action log routes (read-only).

The log is written by the services themselves; there is no write endpoint.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import BackofficeError, error_response, internal_error_response
from ..decorators import require_admin
from ..services import audit_service
from ..validation import optional_int, parse_pagination, parse_date_range


logs_bp = Blueprint("logs", __name__, url_prefix="/api/admin/logs")


@logs_bp.get("")
@require_admin
def list_logs_route(actor):
    """Query params: action, actor_id, target_type, severity, start_date, end_date, page, limit"""
    try:
        page, limit = parse_pagination(request.args)
        start, end = parse_date_range(request.args)
        result = audit_service.list_logs(
            action=request.args.get("action") or None,
            actor_id=optional_int(request.args, "actor_id", minimum=1),
            target_type=request.args.get("target_type") or None,
            severity=request.args.get("severity") or None,
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to list admin logs")
        return internal_error_response(e)

    return jsonify({
        "logs": [entry.to_dict() for entry in result["items"]],
        "total": result["total"],
        "page": result["page"],
        "limit": result["limit"],
        "pages": result["pages"],
    }), 200


@logs_bp.get("/recent")
@require_admin
def recent_logs_route(actor):
    try:
        limit = optional_int(request.args, "limit", minimum=1) or 20
    except BackofficeError as e:
        return error_response(e)
    entries = audit_service.recent(limit=min(limit, 100))
    return jsonify({"logs": [entry.to_dict() for entry in entries]}), 200


@logs_bp.get("/stats")
@require_admin
def log_stats_route(actor):
    try:
        days = optional_int(request.args, "days", minimum=1) or 30
        stats = audit_service.action_stats(days=min(days, 365))
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to compute admin log stats")
        return internal_error_response(e)
    return jsonify(stats), 200


@logs_bp.get("/actors/<int:actor_id>")
@require_admin
def logs_by_actor_route(actor_id: int, actor):
    entries = audit_service.by_actor(actor_id)
    return jsonify({"logs": [entry.to_dict() for entry in entries]}), 200


@logs_bp.get("/targets/<string:target_type>/<string:target_id>")
@require_admin
def logs_by_target_route(target_type: str, target_id: str, actor):
    entries = audit_service.by_target(target_type, target_id)
    return jsonify({"logs": [entry.to_dict() for entry in entries]}), 200
