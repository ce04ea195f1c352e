from ..clock import isoformat, utcnow
from ..extensions import db


class RequestStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"

    ALL = (PENDING, ACCEPTED, REJECTED, COMPLETED)
    TERMINAL = (REJECTED, COMPLETED)


class TransferMode:
    SELF_TRANSFER = "self-transfer"
    SHIPPING = "shipping"
    PICKUP = "pickup"

    ALL = (SELF_TRANSFER, SHIPPING, PICKUP)


class PurchaseRequest(db.Model):
    __tablename__ = "purchase_requests"

    id = db.Column(db.Integer, primary_key=True)

    book_id = db.Column(
        db.Integer,
        db.ForeignKey("books.id"),
        nullable=False,
        index=True
    )
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    offered_price = db.Column(db.Integer, nullable=False)
    transfer_mode = db.Column(db.String(20), nullable=False)
    message = db.Column(db.Text, nullable=True)
    expected_delivery_date = db.Column(db.Date, nullable=True)

    status = db.Column(
        db.String(20),
        nullable=False,
        default=RequestStatus.PENDING
    )
    # pending | accepted | rejected | completed

    created_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow
    )

    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    book = db.relationship("Book", backref="purchase_requests")
    buyer = db.relationship("User", foreign_keys=[buyer_id])
    seller = db.relationship("User", foreign_keys=[seller_id])

    __table_args__ = (
        db.CheckConstraint("buyer_id <> seller_id", name="ck_purchase_requests_distinct_parties"),
        db.CheckConstraint("offered_price > 0", name="ck_purchase_requests_positive_offer"),
        db.Index("ix_purchase_requests_status_created", "status", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "offered_price": self.offered_price,
            "transfer_mode": self.transfer_mode,
            "message": self.message,
            "expected_delivery_date": (
                self.expected_delivery_date.isoformat() if self.expected_delivery_date else None
            ),
            "status": self.status,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
