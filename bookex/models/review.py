from ..clock import isoformat, utcnow
from ..extensions import db


class Review(db.Model):
    __tablename__ = "reviews"

    id = db.Column(db.Integer, primary_key=True)

    reviewer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    reviewed_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False)
    purchase_request_id = db.Column(db.Integer, db.ForeignKey("purchase_requests.id"), nullable=False)

    rating = db.Column(db.Integer, nullable=False)
    review_text = db.Column(db.Text, nullable=True)
    review_type = db.Column(db.String(20), nullable=False)  # buyer_to_seller | seller_to_buyer

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("reviewer_id", "purchase_request_id", name="uq_reviews_reviewer_request"),
        db.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    class Types:
        BUYER_TO_SELLER = "buyer_to_seller"
        SELLER_TO_BUYER = "seller_to_buyer"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reviewer_id": self.reviewer_id,
            "reviewed_user_id": self.reviewed_user_id,
            "book_id": self.book_id,
            "purchase_request_id": self.purchase_request_id,
            "rating": self.rating,
            "review_text": self.review_text,
            "review_type": self.review_type,
            "created_at": isoformat(self.created_at),
        }
