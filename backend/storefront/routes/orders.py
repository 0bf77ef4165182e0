# backend/storefront/routes/orders.py
"""
Order routes.

Admin (bearer token required):
- GET    /api/admin/orders                      - paginated, filtered listing
- GET    /api/admin/orders/<id>                 - order + stock movements + recent audit
- PUT    /api/admin/orders/<id>/status          - lifecycle transition
- DELETE /api/admin/orders/<id>                 - delete (restricted once processing)

Storefront (public):
- POST   /api/orders                            - order intake
- GET    /api/orders/<order_number>             - tracking view

SECURITY: The acting admin comes from the bearer token via @require_admin,
NOT from the request body. This prevents spoofing of the audit trail.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import BackofficeError, ValidationError, error_response, internal_error_response
from ..decorators import require_admin
from ..services import order_service
from ..validation import parse_pagination, optional_text, require_object
from storefront.time_utils import to_utc_z


admin_orders_bp = Blueprint("admin_orders", __name__, url_prefix="/api/admin/orders")
intake_bp = Blueprint("intake", __name__, url_prefix="/api/orders")


@admin_orders_bp.get("")
@require_admin
def list_orders_route(actor):
    try:
        page, limit = parse_pagination(request.args, default_limit=10)
        result = order_service.list_orders(
            page=page,
            limit=limit,
            status=request.args.get("status") or None,
            payment_status=request.args.get("payment_status") or None,
            search=request.args.get("search") or None,
            sort_by=request.args.get("sort_by", "created_at"),
            sort_order=request.args.get("sort_order", "desc"),
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to list orders")
        return internal_error_response(e)

    return jsonify({
        "orders": [o.to_dict(include_timeline=False) for o in result["items"]],
        "pagination": result["pagination"],
    }), 200


@admin_orders_bp.get("/<int:order_id>")
@require_admin
def get_order_route(order_id: int, actor):
    try:
        detail = order_service.get_order_detail(order_id)
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to load order")
        return internal_error_response(e)

    return jsonify({
        "order": detail["order"].to_dict(),
        "stock_movements": [m.to_dict() for m in detail["stock_movements"]],
        "admin_actions": [a.to_dict() for a in detail["admin_actions"]],
    }), 200


@admin_orders_bp.put("/<int:order_id>/status")
@require_admin
def update_order_status_route(order_id: int, actor):
    """
    Transition an order.

    Request body:
        {
            "status": "cancelled",          // required, one of the seven statuses
            "note": "Customer called",      // optional
            "tracking_number": "1Z..."      // optional, used when status=shipped
        }

    Response:
        {
            "order": {...},
            "stock_movements": [...],
            "previous_status": "confirmed",
            "new_status": "cancelled",
            "partial": false,               // true when some items were not restocked
            "failed_items": []
        }

    Error responses (body {"error": {"kind", "message"}}):
        400: InvalidStatus / IllegalTransition / StaleOrderModification
        404: NotFound
        500: InternalError
    """
    try:
        payload = require_object(request.get_json(silent=True))
        note = optional_text(payload, "note", max_length=2000)
        tracking_number = optional_text(payload, "tracking_number", max_length=128)

        result = order_service.transition_order(
            order_id,
            payload.get("status"),
            actor=actor,
            note=note,
            tracking_number=tracking_number,
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to update order status")
        return internal_error_response(e)

    body = result.to_dict()
    body["message"] = "Order status updated successfully"
    return jsonify(body), 200


@admin_orders_bp.delete("/<int:order_id>")
@require_admin
def delete_order_route(order_id: int, actor):
    try:
        result = order_service.delete_order(order_id, actor=actor)
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to delete order")
        return internal_error_response(e)

    body = result.to_dict()
    body["message"] = "Order deleted successfully"
    return jsonify(body), 200


@intake_bp.post("")
def create_order_route():
    """
    Storefront order intake.

    Request body:
        {
            "customer": {"name", "email", "phone", "address": {...}},
            "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 1999}],
            "summary": {"tax_cents": 0, "shipping_cents": 500, "discount_cents": 0},
            "payment": {"method": "cod"},
            "shipping_method": "standard",
            "customer_note": "..."
        }
    """
    try:
        payload = require_object(request.get_json(silent=True))
        summary = payload.get("summary") or {}
        payment = payload.get("payment") or {}
        if not isinstance(summary, dict) or not isinstance(payment, dict):
            raise ValidationError("summary and payment must be objects")

        order = order_service.create_order(
            customer=payload.get("customer"),
            items=payload.get("items"),
            summary=summary,
            payment=payment,
            shipping_method=payload.get("shipping_method") or "standard",
            customer_note=optional_text(payload, "customer_note", max_length=2000),
        )
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to create order")
        return internal_error_response(e)

    return jsonify({"order": order.to_dict()}), 201


@intake_bp.get("/<string:order_number>")
def track_order_route(order_number: str):
    """Public tracking view; no customer contact details or admin notes."""
    try:
        order = order_service.get_order_by_number(order_number)
    except BackofficeError as e:
        return error_response(e)
    except Exception as e:
        current_app.logger.exception("Failed to load order for tracking")
        return internal_error_response(e)

    return jsonify({
        "order_number": order.order_number,
        "status": order.status,
        "items": [item.to_dict() for item in order.items],
        "total_cents": order.total_cents,
        "payment_status": order.payment_status,
        "shipping": {
            "method": order.shipping_method,
            "tracking_number": order.tracking_number,
            "shipped_at": to_utc_z(order.shipped_at),
            "delivered_at": to_utc_z(order.delivered_at),
        },
        "timeline": [
            {"status": e.status, "note": e.note, "timestamp": to_utc_z(e.occurred_at)}
            for e in order.timeline
        ],
        "created_at": to_utc_z(order.created_at),
    }), 200
