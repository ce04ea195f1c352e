from bookex.clock import utcnow
from bookex.extensions import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=True)

    is_blocked = db.Column(db.Boolean, nullable=False, default=False)

    # reputación (se recalcula con cada review)
    average_rating = db.Column(db.Float, nullable=False, default=0.0)
    review_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email.split("@")[0]
