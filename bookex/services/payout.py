"""
Seller payout, computed and released once both payment confirmations are in.

``try_finalize`` is safe to call any number of times, concurrently: the
write-once flag is flipped by a single conditional UPDATE that also checks
both payment flags, and only the caller whose UPDATE matched a row completes
the request and sends the notifications.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from flask import current_app
from sqlalchemy import update

from bookex import clock
from bookex.errors import NotFound
from bookex.extensions import db
from bookex.models import DeliveryConfirmation, PurchaseRequest, RequestEvent
from bookex.services import request_lifecycle
from bookex.services.notifications import NotificationType, Priority, get_notifier
from bookex.services.request_audit import record_request_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutResult:
    purchase_request_id: int
    offered_price: int
    seller_bonus: int
    seller_payout: int
    platform_fee: int

    def to_dict(self) -> dict:
        return asdict(self)


class _NotReady:
    """Sentinel: preconditions not met (or payout already released)."""

    def __bool__(self):
        return False

    def __repr__(self):
        return "NOT_READY"


NOT_READY = _NotReady()


def compute_payout(request_id: int, offered_price: int, seller_bonus: int, platform_fee: int) -> PayoutResult:
    # la comisión se cobra del depósito del comprador, no del payout
    return PayoutResult(
        purchase_request_id=request_id,
        offered_price=offered_price,
        seller_bonus=seller_bonus,
        seller_payout=offered_price + seller_bonus,
        platform_fee=platform_fee,
    )


def try_finalize(request_id: int) -> PayoutResult | _NotReady:
    req = db.session.get(PurchaseRequest, request_id)
    if req is None:
        raise NotFound(request_id=request_id)

    payout = compute_payout(
        req.id,
        req.offered_price,
        seller_bonus=int(current_app.config["SELLER_BONUS"]),
        platform_fee=int(current_app.config["PLATFORM_FEE"]),
    )

    now = clock.utcnow()
    result = db.session.execute(
        update(DeliveryConfirmation)
        .where(
            DeliveryConfirmation.purchase_request_id == req.id,
            DeliveryConfirmation.buyer_confirmed_payment.is_(True),
            DeliveryConfirmation.seller_confirmed_payment.is_(True),
            DeliveryConfirmation.final_payout_processed.is_(False),
        )
        .values(
            final_payout_processed=True,
            seller_payout=payout.seller_payout,
            platform_fee=payout.platform_fee,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return NOT_READY

    try:
        request_lifecycle.complete(req.id, commit=False)
        record_request_event(
            request_id=req.id,
            action=RequestEvent.Actions.PAYOUT,
            details=payout.to_dict(),
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Payout released: request_id=%s seller_payout=%s platform_fee=%s",
        req.id, payout.seller_payout, payout.platform_fee,
    )

    title = req.book.title
    notifier = get_notifier()
    notifier.notify(
        req.seller_id,
        NotificationType.PAYOUT_PROCESSED,
        "Payment Completed!",
        f'Transaction completed for "{title}". You\'ll receive ₹{payout.seller_payout} '
        f"(₹{payout.offered_price} + ₹{payout.seller_bonus} BookEx bonus).",
        related_id=req.id,
        priority=Priority.HIGH,
    )
    notifier.notify(
        req.buyer_id,
        NotificationType.TRANSACTION_COMPLETE,
        "Transaction Completed!",
        f'Your purchase of "{title}" is now complete. A platform fee of ₹{payout.platform_fee} '
        "was charged against your listing deposit. Thank you for using BookEx!",
        related_id=req.id,
        priority=Priority.HIGH,
    )
    return payout


def get_payout(request_id: int) -> PayoutResult | None:
    """Importes ya liberados (lectura), o None si aún no hay payout."""
    confirmation = DeliveryConfirmation.query.filter_by(purchase_request_id=request_id).first()
    if confirmation is None or not confirmation.final_payout_processed:
        return None
    req = confirmation.purchase_request
    return PayoutResult(
        purchase_request_id=request_id,
        offered_price=req.offered_price,
        seller_bonus=confirmation.seller_payout - req.offered_price,
        seller_payout=confirmation.seller_payout,
        platform_fee=confirmation.platform_fee,
    )
