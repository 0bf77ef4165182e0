# backend/storefront/routes/stock.py
"""
Stock ledger and inventory routes (admin).

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start_date/end_date filtering is inclusive on both ends.
"""

from datetime import timedelta

from flask import Blueprint, request, jsonify, current_app

from ..errors import BackofficeError, ValidationError, error_response, internal_error_response
from ..decorators import require_admin
from ..services import ledger_service, inventory_service
from ..validation import (
    coerce_int,
    optional_int,
    parse_pagination,
    parse_date_range,
    optional_text,
    require_object,
)
from storefront.time_utils import utcnow, to_utc_z


stock_bp = Blueprint("stock", __name__, url_prefix="/api/admin")


@stock_bp.get("/stock/movements")
@require_admin
def list_movements_route(actor):
    """
    Query params: product_id, type, start_date, end_date, page, limit
    Response: {"movements": [...], "total", "page", "limit", "pages"}
    """
    try:
        page, limit = parse_pagination(request.args)
        start, end = parse_date_range(request.args)
        result = ledger_service.list_movements(
            product_id=optional_int(request.args, "product_id", minimum=1),
            movement_type=request.args.get("type") or None,
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to list stock movements")
        return internal_error_response(e)

    return jsonify({
        "movements": [m.to_dict() for m in result["items"]],
        "total": result["total"],
        "page": result["page"],
        "limit": result["limit"],
        "pages": result["pages"],
    }), 200


@stock_bp.get("/stock/movements/recent")
@require_admin
def recent_movements_route(actor):
    try:
        limit = optional_int(request.args, "limit", minimum=1) or 20
        movements = ledger_service.recent_movements(limit=min(limit, 100))
    except BackofficeError as e:
        return error_response(e)
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@stock_bp.get("/stock/products/<int:product_id>/summary")
@require_admin
def product_summary_route(product_id: int, actor):
    """
    In/out totals for a product. Defaults to the trailing `days` (30) when no
    explicit start_date/end_date is given.
    """
    try:
        start, end = parse_date_range(request.args)
        if start is None and end is None:
            days = optional_int(request.args, "days", minimum=1) or 30
            end = utcnow()
            start = end - timedelta(days=days)
        summary = ledger_service.summary(product_id, start, end)
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to summarize stock movements")
        return internal_error_response(e)

    summary["start"] = to_utc_z(start)
    summary["end"] = to_utc_z(end)
    return jsonify(summary), 200


@stock_bp.get("/stock/products/<int:product_id>/history")
@require_admin
def product_history_route(product_id: int, actor):
    try:
        limit = optional_int(request.args, "limit", minimum=1) or 50
        movements = ledger_service.product_history(product_id, limit=min(limit, 100))
    except BackofficeError as e:
        return error_response(e)
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@stock_bp.patch("/products/<int:product_id>/inventory")
@require_admin
def update_inventory_route(product_id: int, actor):
    """
    Request body:
        {
            "quantity": 25,                 // required, non-negative integer
            "operation": "set|add|subtract",// default "set"
            "reason": "Cycle count",        // optional
            "movement_type": "restock"      // optional: restock | adjustment | sale
        }
    """
    try:
        payload = require_object(request.get_json(silent=True))
        if "quantity" not in payload:
            raise ValidationError("quantity is required")
        result = inventory_service.update_inventory(
            product_id,
            quantity=coerce_int(payload["quantity"], "quantity", minimum=0),
            operation=payload.get("operation") or "set",
            actor=actor,
            reason=optional_text(payload, "reason", max_length=500),
            movement_type=payload.get("movement_type") or None,
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to update inventory")
        return internal_error_response(e)

    movement = result["movement"]
    return jsonify({
        "product": result["product"].to_dict(),
        "quantity_before": result["quantity_before"],
        "quantity_after": result["quantity_after"],
        "movement": movement.to_dict() if movement is not None else None,
    }), 200
