from flask import Blueprint, abort, jsonify

from ...extensions import db
from ...identity import current_actor_id, login_required
from ...models import User
from ...schemas import CreateReviewBody, load_body
from ...services import reviews

bp = Blueprint("reviews", __name__, url_prefix="/reviews")


@bp.post("/")
@login_required
def create_review():
    body = load_body(CreateReviewBody)
    review = reviews.create_review(
        reviewer_id=current_actor_id(),
        purchase_request_id=body.purchase_request_id,
        rating=body.rating,
        review_text=body.review_text,
    )
    return jsonify(message="created", **review.to_dict()), 201


@bp.get("/user/<int:user_id>")
@login_required
def user_reviews(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        abort(404)

    return jsonify(
        user_id=user.id,
        average_rating=user.average_rating,
        review_count=user.review_count,
        items=[r.to_dict() for r in reviews.list_for_user(user.id)],
    ), 200
