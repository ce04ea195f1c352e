from ..clock import isoformat, utcnow
from ..extensions import db


class RequestEvent(db.Model):
    """Historial append-only de cambios sobre una solicitud de compra."""

    __tablename__ = "request_events"

    id = db.Column(db.Integer, primary_key=True)

    purchase_request_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_requests.id"),
        nullable=False,
        index=True
    )

    # quién (None = sistema, p.ej. el cierre tras el payout)
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    action = db.Column(db.String(80), nullable=False, index=True)
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=True)

    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_request_id": self.purchase_request_id,
            "actor_id": self.actor_id,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "details": self.details,
            "created_at": isoformat(self.created_at),
        }

    class Actions:
        CREATE = "request.create"
        ACCEPT = "request.accept"
        REJECT = "request.reject"
        SET_DELIVERY_DATE = "request.delivery_date"
        COMPLETE = "request.complete"

        OTP_ISSUE = "delivery.otp_issue"
        OTP_VERIFY = "delivery.otp_verify"
        CONFIRM_DELIVERY = "delivery.confirm"
        CONFIRM_PAYMENT = "payment.confirm"
        PAYOUT = "payment.payout"
