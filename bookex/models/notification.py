from ..clock import isoformat, utcnow
from ..extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # purchase_request | request_accepted | request_rejected | delivery_scheduled |
    # delivery_otp | otp_verified | payout_processed | transaction_complete | general
    type = db.Column(db.String(40), nullable=False)

    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)

    related_id = db.Column(db.String(64), nullable=True)
    priority = db.Column(db.String(10), nullable=False, default="normal")  # low | normal | high | urgent

    read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        db.Index("ix_notifications_user_read_created", "user_id", "read", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "related_id": self.related_id,
            "priority": self.priority,
            "read": self.read,
            "created_at": isoformat(self.created_at),
        }
