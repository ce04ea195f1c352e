"""
Buy-request state machine.

    pending --accept--> accepted --complete--> completed
    pending --reject--> rejected

Every transition is a conditional UPDATE on the expected current status;
``rowcount`` decides whether this caller won. Nothing is clamped: an edge
outside ``ALLOWED_TRANSITIONS`` raises ``IllegalTransition``.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import update

from bookex import clock
from bookex.errors import (
    BookUnavailable,
    DuplicateRequest,
    Forbidden,
    IllegalTransition,
    InvalidDate,
    InvalidOffer,
    NotFound,
    SelfPurchase,
    ValidationFailed,
)
from bookex.extensions import db
from bookex.models import Book, PurchaseRequest, RequestEvent, RequestStatus, TransferMode
from bookex.services.notifications import NotificationType, Priority, get_notifier
from bookex.services.request_audit import record_request_event

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.ACCEPTED, RequestStatus.REJECTED}),
    RequestStatus.ACCEPTED: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.COMPLETED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _ensure_edge(req: PurchaseRequest, target: str) -> None:
    if not can_transition(req.status, target):
        raise IllegalTransition(current=req.status, requested=target)


def get_request(request_id: int) -> PurchaseRequest:
    req = db.session.get(PurchaseRequest, request_id)
    if req is None:
        raise NotFound(request_id=request_id)
    return req


def get_request_for(request_id: int, actor_id: int) -> PurchaseRequest:
    """Solo comprador y vendedor pueden ver / operar la solicitud."""
    req = get_request(request_id)
    if actor_id not in (req.buyer_id, req.seller_id):
        raise Forbidden()
    return req


def list_for_user(actor_id: int, role: str | None = None) -> list[PurchaseRequest]:
    q = PurchaseRequest.query
    if role == "buyer":
        q = q.filter(PurchaseRequest.buyer_id == actor_id)
    elif role == "seller":
        q = q.filter(PurchaseRequest.seller_id == actor_id)
    else:
        q = q.filter((PurchaseRequest.buyer_id == actor_id) | (PurchaseRequest.seller_id == actor_id))
    return q.order_by(PurchaseRequest.created_at.desc(), PurchaseRequest.id.desc()).all()


def _guarded_update(request_id: int, *conditions, **values) -> bool:
    values.setdefault("updated_at", clock.utcnow())
    result = db.session.execute(
        update(PurchaseRequest)
        .where(PurchaseRequest.id == request_id, *conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _lost_race(req: PurchaseRequest, target: str) -> IllegalTransition:
    db.session.rollback()
    db.session.refresh(req)
    logger.info(
        "Transition lost to a concurrent update: request_id=%s status=%s requested=%s",
        req.id, req.status, target,
    )
    return IllegalTransition(current=req.status, requested=target)


# ---------- CREATE ----------
def create_request(
    *,
    book_id: int,
    buyer_id: int,
    seller_id: int,
    offered_price: int,
    transfer_mode: str,
    message: str | None = None,
) -> PurchaseRequest:
    if buyer_id == seller_id:
        raise SelfPurchase()

    if offered_price is None or offered_price <= 0:
        raise InvalidOffer("The offered price must be greater than zero.", offered_price=offered_price)

    if transfer_mode not in TransferMode.ALL:
        raise ValidationFailed(fields=["transfer_mode"], allowed=list(TransferMode.ALL))

    book = db.session.get(Book, book_id)
    if book is None or book.seller_id != seller_id:
        raise NotFound("Book not found for this seller.", book_id=book_id)

    if not book.is_available:
        raise BookUnavailable(book_id=book.id)

    if offered_price > book.price:
        raise InvalidOffer(
            "The offered price cannot exceed the listed price.",
            offered_price=offered_price,
            listed_price=book.price,
        )

    existing = (
        PurchaseRequest.query
        .filter_by(book_id=book.id, buyer_id=buyer_id, status=RequestStatus.PENDING)
        .first()
    )
    if existing:
        raise DuplicateRequest(request_id=existing.id)

    req = PurchaseRequest(
        book_id=book.id,
        buyer_id=buyer_id,
        seller_id=seller_id,
        offered_price=offered_price,
        transfer_mode=transfer_mode,
        message=(message or None),
        status=RequestStatus.PENDING,
    )
    db.session.add(req)
    db.session.flush()

    record_request_event(
        request_id=req.id,
        actor_id=buyer_id,
        action=RequestEvent.Actions.CREATE,
        to_status=RequestStatus.PENDING,
        details={"offered_price": offered_price, "transfer_mode": transfer_mode},
    )
    db.session.commit()

    logger.info("Purchase request created: id=%s book_id=%s buyer_id=%s", req.id, book.id, buyer_id)

    get_notifier().notify(
        seller_id,
        NotificationType.PURCHASE_REQUEST,
        "New Purchase Request",
        f'New purchase request for "{book.title}" - Offer: ₹{offered_price}.',
        related_id=req.id,
        priority=Priority.NORMAL,
    )
    return req


# ---------- ACCEPT / REJECT (SELLER) ----------
def _decide(request_id: int, actor_id: int, target: str, action: str) -> PurchaseRequest:
    req = get_request(request_id)

    if req.seller_id != actor_id:
        raise Forbidden()

    _ensure_edge(req, target)

    if not _guarded_update(req.id, PurchaseRequest.status == RequestStatus.PENDING, status=target):
        raise _lost_race(req, target)

    if target == RequestStatus.ACCEPTED:
        # el libro queda reservado para este comprador (solo una aceptación gana)
        claimed = db.session.execute(
            update(Book)
            .where(Book.id == req.book_id, Book.is_available.is_(True))
            .values(is_available=False, updated_at=clock.utcnow())
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            db.session.rollback()
            logger.info("Accept refused, book already reserved: request_id=%s book_id=%s", req.id, req.book_id)
            raise BookUnavailable(book_id=req.book_id)

    record_request_event(
        request_id=req.id,
        actor_id=actor_id,
        action=action,
        from_status=RequestStatus.PENDING,
        to_status=target,
    )
    db.session.commit()

    logger.info("Purchase request %s: id=%s seller_id=%s", target, req.id, actor_id)
    return req


def accept(request_id: int, actor_id: int) -> PurchaseRequest:
    req = _decide(request_id, actor_id, RequestStatus.ACCEPTED, RequestEvent.Actions.ACCEPT)
    get_notifier().notify(
        req.buyer_id,
        NotificationType.REQUEST_ACCEPTED,
        "Request Accepted",
        f'Your request for "{req.book.title}" was accepted by the seller.',
        related_id=req.id,
        priority=Priority.HIGH,
    )
    return req


def reject(request_id: int, actor_id: int) -> PurchaseRequest:
    req = _decide(request_id, actor_id, RequestStatus.REJECTED, RequestEvent.Actions.REJECT)
    get_notifier().notify(
        req.buyer_id,
        NotificationType.REQUEST_REJECTED,
        "Request Rejected",
        f'Your request for "{req.book.title}" was declined by the seller.',
        related_id=req.id,
        priority=Priority.NORMAL,
    )
    return req


# ---------- DELIVERY DATE (SELLER) ----------
def delivery_date_window(today: date | None = None) -> tuple[date, date]:
    """(first allowed date, last allowed date), both inclusive."""
    today = today or clock.today()
    horizon = current_app.config["DELIVERY_DATE_HORIZON_DAYS"]
    return today + timedelta(days=1), today + timedelta(days=horizon)


def set_expected_delivery_date(request_id: int, actor_id: int, delivery_date: date) -> PurchaseRequest:
    req = get_request(request_id)

    if req.seller_id != actor_id:
        raise Forbidden()

    if req.status != RequestStatus.ACCEPTED or req.expected_delivery_date is not None:
        raise IllegalTransition(
            "The delivery date can only be set once, after accepting the request.",
            current=req.status,
            expected_delivery_date=(
                req.expected_delivery_date.isoformat() if req.expected_delivery_date else None
            ),
        )

    earliest, latest = delivery_date_window()
    if not (earliest <= delivery_date <= latest):
        raise InvalidDate(earliest=earliest.isoformat(), latest=latest.isoformat())

    if not _guarded_update(
        req.id,
        PurchaseRequest.status == RequestStatus.ACCEPTED,
        PurchaseRequest.expected_delivery_date.is_(None),
        expected_delivery_date=delivery_date,
    ):
        db.session.rollback()
        db.session.refresh(req)
        raise IllegalTransition(
            "The delivery date was already set.",
            current=req.status,
        )

    record_request_event(
        request_id=req.id,
        actor_id=actor_id,
        action=RequestEvent.Actions.SET_DELIVERY_DATE,
        from_status=RequestStatus.ACCEPTED,
        to_status=RequestStatus.ACCEPTED,
        details={"expected_delivery_date": delivery_date.isoformat()},
    )
    db.session.commit()

    title = req.book.title
    when = delivery_date.isoformat()
    notifier = get_notifier()
    notifier.notify(
        req.buyer_id,
        NotificationType.DELIVERY_SCHEDULED,
        "Delivery Date Set",
        f'Your book "{title}" will be delivered by {when}.',
        related_id=req.id,
        priority=Priority.HIGH,
    )
    notifier.notify(
        req.seller_id,
        NotificationType.DELIVERY_SCHEDULED,
        "Delivery Scheduled",
        f'You\'ve scheduled delivery of "{title}" for {when}.',
        related_id=req.id,
        priority=Priority.NORMAL,
    )
    return req


# ---------- COMPLETE (INTERNAL) ----------
def complete(request_id: int, *, commit: bool = True) -> PurchaseRequest:
    """
    accepted -> completed. Only the payout step calls this, inside its own
    transaction (``commit=False``). Completing a completed request is a no-op.
    """
    req = get_request(request_id)
    if req.status == RequestStatus.COMPLETED:
        return req

    _ensure_edge(req, RequestStatus.COMPLETED)

    now = clock.utcnow()
    if not _guarded_update(
        req.id,
        PurchaseRequest.status == RequestStatus.ACCEPTED,
        status=RequestStatus.COMPLETED,
        updated_at=now,
    ):
        db.session.expire(req)
        if req.status == RequestStatus.COMPLETED:
            return req
        raise IllegalTransition(current=req.status, requested=RequestStatus.COMPLETED)

    db.session.execute(
        update(Book)
        .where(Book.id == req.book_id)
        .values(is_available=False, sold_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    record_request_event(
        request_id=req.id,
        action=RequestEvent.Actions.COMPLETE,
        from_status=RequestStatus.ACCEPTED,
        to_status=RequestStatus.COMPLETED,
    )

    if commit:
        db.session.commit()
    else:
        db.session.expire(req)

    logger.info("Purchase request completed: id=%s", req.id)
    return req
