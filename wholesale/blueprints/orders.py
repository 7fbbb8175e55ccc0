from __future__ import annotations

from flask import Blueprint, current_app, request

from wholesale.blueprints.common import backend_error, json_error, json_ok
from wholesale.extensions import get_api
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.orders import OrderFilterError, OrderFilters, filter_orders

bp = Blueprint("orders", __name__, url_prefix="/orders")


@bp.get("")
def list_orders():
    """Order history, filtered by ``status``, ``fundraiser`` and ``date_from``/``date_to``."""
    try:
        filters = OrderFilters.from_args(request.args)
    except OrderFilterError as e:
        return json_error(str(e), 400, code="bad_request")

    try:
        orders = get_api().get_orders()
    except WholesaleApiError as e:
        return backend_error(e)

    matched = filter_orders(orders, filters)
    if not orders:
        empty = "No orders yet"
    elif not matched:
        empty = "No orders match your filters"
    else:
        empty = None
    return json_ok(
        {
            "orders": [o.to_dict() for o in matched],
            "count": len(matched),
            "total": len(orders),
            "filtered": filters.active,
            "empty_message": empty,
        }
    )


@bp.get("/<int:order_id>")
def order_detail(order_id: int):
    try:
        order = get_api().get_order(order_id)
    except WholesaleApiError as e:
        return backend_error(e)
    return json_ok({"order": order.to_dict()})


@bp.post("/<int:order_id>/cancel")
def cancel_order(order_id: int):
    api = get_api()
    try:
        order = api.get_order(order_id)
        if not order.can_cancel:
            return json_error(
                f"Orders that are {order.status or 'in progress'} can no longer be cancelled",
                409,
                code="not_cancellable",
                status=order.status,
            )
        cancelled = api.cancel_order(order_id)
    except WholesaleApiError as e:
        return backend_error(e)

    current_app.logger.info("order %s cancelled", order_id)
    return json_ok({"order": cancelled.to_dict()})
