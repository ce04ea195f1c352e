from flask import Blueprint, abort, jsonify, request
from sqlalchemy import update

from ...extensions import db
from ...identity import current_actor_id, login_required
from ...models import Notification

bp = Blueprint("notifications", __name__, url_prefix="/notifications")


@bp.get("/")
@login_required
def my_notifications():
    user_id = current_actor_id()
    unread_only = (request.args.get("unread") or "").strip().lower() in {"1", "true", "yes"}

    try:
        limit = max(1, min(int(request.args.get("limit") or 50), 200))
    except ValueError:
        return jsonify(error="invalid_limit"), 400

    q = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))

    items = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    unread = Notification.query.filter_by(user_id=user_id, read=False).count()

    return jsonify(items=[n.to_dict() for n in items], unread=unread), 200


@bp.patch("/<int:notification_id>/read")
@login_required
def mark_read(notification_id):
    n = db.session.get(Notification, notification_id)
    # la de otro usuario cuenta como inexistente
    if n is None or n.user_id != current_actor_id():
        abort(404)

    n.read = True
    db.session.commit()
    return jsonify(n.to_dict()), 200


@bp.post("/read-all")
@login_required
def mark_all_read():
    result = db.session.execute(
        update(Notification)
        .where(Notification.user_id == current_actor_id(), Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return jsonify(message="ok", updated=result.rowcount), 200
