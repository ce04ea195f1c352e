from flask import Blueprint, jsonify

from ...errors import Forbidden
from ...identity import current_actor_id, login_required
from ...schemas import ConfirmDeliveryBody, ConfirmPaymentBody, VerifyOtpBody, load_body
from ...services import confirmations, delivery_otp, payout
from ...services.request_lifecycle import get_request_for

bp = Blueprint("delivery", __name__, url_prefix="/delivery")


# ---------- OTP ----------
@bp.post("/<int:request_id>/otp")
@login_required
def issue_otp(request_id):
    issued = delivery_otp.issue_otp(request_id, current_actor_id())
    return jsonify(message="otp_sent", **issued.to_dict()), 200


@bp.post("/<int:request_id>/otp/verify")
@login_required
def verify_otp(request_id):
    body = load_body(VerifyOtpBody)
    pr = get_request_for(request_id, current_actor_id())

    # el código lo recibe y lo introduce el comprador
    if current_actor_id() != pr.buyer_id:
        raise Forbidden("Only the buyer can enter the delivery OTP.")

    verified = delivery_otp.verify_otp(request_id, body.otp_code)
    return jsonify(message="otp_verified", **verified.to_dict()), 200


# ---------- CONFIRMATIONS ----------
@bp.post("/<int:request_id>/confirm-delivery")
@login_required
def confirm_delivery(request_id):
    body = load_body(ConfirmDeliveryBody)
    pr = get_request_for(request_id, current_actor_id())
    party = confirmations.party_for(pr, current_actor_id(), body.party)

    status = confirmations.confirm_delivery(pr.id, party)
    return jsonify(status.to_dict()), 200


@bp.post("/<int:request_id>/confirm-payment")
@login_required
def confirm_payment(request_id):
    body = load_body(ConfirmPaymentBody)
    pr = get_request_for(request_id, current_actor_id())
    party = confirmations.party_for(pr, current_actor_id(), body.party)

    outcome = confirmations.confirm_payment(pr.id, party, body.payment_method)
    return jsonify(outcome.to_dict()), 200


@bp.get("/<int:request_id>/status")
@login_required
def confirmation_status(request_id):
    pr = get_request_for(request_id, current_actor_id())
    status = confirmations.get_status(pr.id)
    released = payout.get_payout(pr.id)
    return jsonify(
        request_status=pr.status,
        payout=released.to_dict() if released else None,
        **status.to_dict(),
    ), 200
