from ..clock import isoformat, utcnow
from ..extensions import db


class DeliveryConfirmation(db.Model):
    """
    Una fila por solicitud aceptada: OTP de entrega + las cuatro
    confirmaciones (comprador/vendedor x entrega/pago) + el payout.
    """

    __tablename__ = "delivery_confirmations"

    id = db.Column(db.Integer, primary_key=True)

    purchase_request_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_requests.id"),
        nullable=False,
        unique=True
    )
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    otp_code = db.Column(db.String(6), nullable=False)
    otp_sent_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    otp_verified_at = db.Column(db.DateTime, nullable=True)
    # intentos fallidos con el código vigente; se reinicia al reemitir
    otp_attempts = db.Column(db.Integer, nullable=False, default=0)

    buyer_confirmed_delivery = db.Column(db.Boolean, nullable=False, default=False)
    seller_confirmed_delivery = db.Column(db.Boolean, nullable=False, default=False)
    buyer_confirmed_payment = db.Column(db.Boolean, nullable=False, default=False)
    seller_confirmed_payment = db.Column(db.Boolean, nullable=False, default=False)

    payment_method = db.Column(db.String(40), nullable=True)

    # write-once
    final_payout_processed = db.Column(db.Boolean, nullable=False, default=False)
    seller_payout = db.Column(db.Integer, nullable=True)
    platform_fee = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    purchase_request = db.relationship(
        "PurchaseRequest",
        backref=db.backref("delivery_confirmation", uselist=False),
    )

    @property
    def delivery_confirmed(self) -> bool:
        return bool(self.buyer_confirmed_delivery and self.seller_confirmed_delivery)

    @property
    def payment_confirmed(self) -> bool:
        return bool(self.buyer_confirmed_payment and self.seller_confirmed_payment)

    def to_dict(self) -> dict:
        # nunca exponer otp_code
        return {
            "purchase_request_id": self.purchase_request_id,
            "otp_sent_at": isoformat(self.otp_sent_at),
            "otp_verified_at": isoformat(self.otp_verified_at),
            "buyer_confirmed_delivery": self.buyer_confirmed_delivery,
            "seller_confirmed_delivery": self.seller_confirmed_delivery,
            "buyer_confirmed_payment": self.buyer_confirmed_payment,
            "seller_confirmed_payment": self.seller_confirmed_payment,
            "payment_method": self.payment_method,
            "final_payout_processed": self.final_payout_processed,
        }
