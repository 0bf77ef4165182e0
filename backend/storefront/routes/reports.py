# backend/storefront/routes/reports.py
"""
Read-only dashboard reports (admin).

- GET /api/admin/reports/dashboard
- GET /api/admin/reports/orders/status?period=7d|30d|90d
- GET /api/admin/reports/orders/daily?days=30
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import BackofficeError, error_response, internal_error_response
from ..decorators import require_admin
from ..services import reporting_service
from ..validation import optional_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/admin/reports")


@reports_bp.get("/dashboard")
@require_admin
def dashboard_route(actor):
    try:
        summary = reporting_service.dashboard_summary()
    except Exception as e:
        current_app.logger.exception("Failed to build dashboard summary")
        return internal_error_response(e)
    return jsonify(summary), 200


@reports_bp.get("/orders/status")
@require_admin
def order_status_breakdown_route(actor):
    period = request.args.get("period", "30d")
    try:
        rows = reporting_service.status_breakdown(period)
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to build order status breakdown")
        return internal_error_response(e)
    return jsonify({"period": period, "statuses": rows}), 200


@reports_bp.get("/orders/daily")
@require_admin
def order_daily_trend_route(actor):
    try:
        days = optional_int(request.args, "days", minimum=1) or 30
        rows = reporting_service.daily_trend(days)
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to build daily order trend")
        return internal_error_response(e)
    return jsonify({"days": days, "trend": rows}), 200
