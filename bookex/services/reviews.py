from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from bookex.errors import DuplicateReview, IllegalTransition
from bookex.extensions import db
from bookex.models import RequestStatus, Review, User
from bookex.services.request_lifecycle import get_request_for

logger = logging.getLogger(__name__)


def create_review(
    *,
    reviewer_id: int,
    purchase_request_id: int,
    rating: int,
    review_text: str | None = None,
) -> Review:
    req = get_request_for(purchase_request_id, reviewer_id)

    if req.status != RequestStatus.COMPLETED:
        raise IllegalTransition("Reviews open once the transaction is completed.", current=req.status)

    if reviewer_id == req.buyer_id:
        reviewed_user_id, review_type = req.seller_id, Review.Types.BUYER_TO_SELLER
    else:
        reviewed_user_id, review_type = req.buyer_id, Review.Types.SELLER_TO_BUYER

    existing = Review.query.filter_by(reviewer_id=reviewer_id, purchase_request_id=req.id).first()
    if existing:
        raise DuplicateReview(review_id=existing.id)

    review = Review(
        reviewer_id=reviewer_id,
        reviewed_user_id=reviewed_user_id,
        book_id=req.book_id,
        purchase_request_id=req.id,
        rating=rating,
        review_text=(review_text or None),
        review_type=review_type,
    )
    db.session.add(review)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateReview()

    _refresh_rating(reviewed_user_id)
    db.session.commit()

    logger.info(
        "Review created: request_id=%s reviewer_id=%s reviewed_user_id=%s rating=%s",
        req.id, reviewer_id, reviewed_user_id, rating,
    )
    return review


def _refresh_rating(user_id: int) -> None:
    avg, count = (
        db.session.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.reviewed_user_id == user_id)
        .one()
    )
    user = db.session.get(User, user_id)
    if user is None:
        return
    user.average_rating = round(float(avg or 0), 1)
    user.review_count = int(count or 0)


def list_for_user(user_id: int) -> list[Review]:
    return (
        Review.query
        .filter_by(reviewed_user_id=user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
