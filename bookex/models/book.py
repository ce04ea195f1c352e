from ..clock import isoformat, utcnow
from ..extensions import db


class Book(db.Model):
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(255), nullable=False, index=True)
    author = db.Column(db.String(255), nullable=False, index=True)

    # precio publicado, en unidades enteras de moneda
    price = db.Column(db.Integer, nullable=False)

    seller_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    is_available = db.Column(db.Boolean, nullable=False, default=True)
    sold_at = db.Column(db.DateTime, nullable=True)

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

    # relación ORM
    seller = db.relationship("User", backref="books")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "price": self.price,
            "seller_id": self.seller_id,
            "is_available": self.is_available,
            "sold_at": isoformat(self.sold_at),
        }
