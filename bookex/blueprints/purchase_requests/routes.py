from flask import Blueprint, jsonify, request

from ...errors import Forbidden
from ...identity import current_actor_id, login_required
from ...schemas import CreatePurchaseRequestBody, DeliveryDateBody, load_body
from ...services import request_lifecycle
from ...services.request_audit import list_request_events

bp = Blueprint("purchase_requests", __name__, url_prefix="/purchase-requests")


# ---------- CREATE REQUEST ----------
@bp.post("/")
@login_required
def create_request():
    body = load_body(CreatePurchaseRequestBody)
    actor_id = current_actor_id()

    # el comprador siempre es quien está logueado
    if body.buyer_id != actor_id:
        raise Forbidden("You can only create requests as yourself.")

    pr = request_lifecycle.create_request(
        book_id=body.book_id,
        buyer_id=body.buyer_id,
        seller_id=body.seller_id,
        offered_price=body.offered_price,
        transfer_mode=body.transfer_mode,
        message=body.message,
    )
    return jsonify(result="created", **pr.to_dict()), 201


# ---------- MY REQUESTS ----------
@bp.get("/mine")
@login_required
def my_requests():
    role = (request.args.get("role") or "").strip().lower() or None
    if role not in (None, "buyer", "seller"):
        return jsonify(error="invalid_role", allowed=["buyer", "seller"]), 400

    items = request_lifecycle.list_for_user(current_actor_id(), role=role)
    return jsonify(
        items=[
            {
                **pr.to_dict(),
                "book": {
                    "id": pr.book.id,
                    "title": pr.book.title,
                    "author": pr.book.author,
                },
            }
            for pr in items
        ]
    ), 200


@bp.get("/<int:request_id>")
@login_required
def get_request(request_id):
    pr = request_lifecycle.get_request_for(request_id, current_actor_id())
    return jsonify(pr.to_dict()), 200


@bp.get("/<int:request_id>/history")
@login_required
def request_history(request_id):
    pr = request_lifecycle.get_request_for(request_id, current_actor_id())
    return jsonify(items=[e.to_dict() for e in list_request_events(pr.id)]), 200


# ---------- ACCEPT / REJECT (SELLER) ----------
@bp.patch("/<int:request_id>/accept")
@login_required
def seller_accept(request_id):
    pr = request_lifecycle.accept(request_id, current_actor_id())
    return jsonify(result="accepted", **pr.to_dict()), 200


@bp.patch("/<int:request_id>/reject")
@login_required
def seller_reject(request_id):
    pr = request_lifecycle.reject(request_id, current_actor_id())
    return jsonify(result="rejected", **pr.to_dict()), 200


# ---------- DELIVERY DATE (SELLER) ----------
@bp.patch("/<int:request_id>/delivery-date")
@login_required
def set_delivery_date(request_id):
    body = load_body(DeliveryDateBody)
    pr = request_lifecycle.set_expected_delivery_date(request_id, current_actor_id(), body.date)
    return jsonify(result="delivery_date_set", **pr.to_dict()), 200
