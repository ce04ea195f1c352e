"""
Confirmation aggregate: the four independent buyer/seller x delivery/payment
flags of a purchase request.

Each setter is a single UPDATE keyed by ``purchase_request_id`` that writes
only its own column and carries its precondition in the WHERE clause, so a
buyer and a seller confirming at the same time never overwrite each other.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import update

from bookex import clock
from bookex.errors import (
    DeliveryNotConfirmed,
    Forbidden,
    NotFound,
    OtpNotVerified,
    PaymentMethodRequired,
    ValidationFailed,
)
from bookex.extensions import db
from bookex.models import DeliveryConfirmation, PurchaseRequest, RequestEvent
from bookex.services import payout as payout_service
from bookex.services.payout import PayoutResult
from bookex.services.request_audit import record_request_event

logger = logging.getLogger(__name__)


class Party:
    BUYER = "buyer"
    SELLER = "seller"

    ALL = (BUYER, SELLER)


_DELIVERY_FLAG = {
    Party.BUYER: DeliveryConfirmation.buyer_confirmed_delivery,
    Party.SELLER: DeliveryConfirmation.seller_confirmed_delivery,
}

_PAYMENT_FLAG = {
    Party.BUYER: DeliveryConfirmation.buyer_confirmed_payment,
    Party.SELLER: DeliveryConfirmation.seller_confirmed_payment,
}


@dataclass(frozen=True)
class ConfirmationStatus:
    purchase_request_id: int
    otp_verified: bool
    buyer_confirmed_delivery: bool
    seller_confirmed_delivery: bool
    buyer_confirmed_payment: bool
    seller_confirmed_payment: bool
    payment_method: str | None
    final_payout_processed: bool

    @property
    def delivery_confirmed(self) -> bool:
        return self.buyer_confirmed_delivery and self.seller_confirmed_delivery

    @property
    def payment_confirmed(self) -> bool:
        return self.buyer_confirmed_payment and self.seller_confirmed_payment

    def to_dict(self) -> dict:
        return {
            "purchase_request_id": self.purchase_request_id,
            "otp_verified": self.otp_verified,
            "buyer_confirmed_delivery": self.buyer_confirmed_delivery,
            "seller_confirmed_delivery": self.seller_confirmed_delivery,
            "buyer_confirmed_payment": self.buyer_confirmed_payment,
            "seller_confirmed_payment": self.seller_confirmed_payment,
            "delivery_confirmed": self.delivery_confirmed,
            "payment_confirmed": self.payment_confirmed,
            "payment_method": self.payment_method,
            "final_payout_processed": self.final_payout_processed,
        }


@dataclass(frozen=True)
class PaymentConfirmed:
    status: ConfirmationStatus
    payout: PayoutResult | None

    def to_dict(self) -> dict:
        return {
            **self.status.to_dict(),
            "payout": self.payout.to_dict() if self.payout else None,
        }


def party_for(req: PurchaseRequest, actor_id: int, claimed: str | None = None) -> str:
    """Deriva el rol del actor; si el cliente manda ``party``, tiene que coincidir."""
    if actor_id == req.buyer_id:
        party = Party.BUYER
    elif actor_id == req.seller_id:
        party = Party.SELLER
    else:
        raise Forbidden()

    if claimed is not None and claimed != party:
        raise Forbidden("You can only confirm on your own behalf.", party=party)
    return party


def _check_party(party: str) -> None:
    if party not in Party.ALL:
        raise ValidationFailed(fields=["party"], allowed=list(Party.ALL))


def _get_confirmation(request_id: int) -> DeliveryConfirmation:
    confirmation = DeliveryConfirmation.query.filter_by(purchase_request_id=request_id).first()
    if confirmation is None:
        raise NotFound("Delivery confirmation has not started for this request.", request_id=request_id)
    return confirmation


def _apply(request_id: int, *conditions, **values) -> bool:
    values["updated_at"] = clock.utcnow()
    result = db.session.execute(
        update(DeliveryConfirmation)
        .where(DeliveryConfirmation.purchase_request_id == request_id, *conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ---------- READ ----------
def get_status(request_id: int) -> ConfirmationStatus:
    c = _get_confirmation(request_id)
    return ConfirmationStatus(
        purchase_request_id=request_id,
        otp_verified=c.otp_verified_at is not None,
        buyer_confirmed_delivery=bool(c.buyer_confirmed_delivery),
        seller_confirmed_delivery=bool(c.seller_confirmed_delivery),
        buyer_confirmed_payment=bool(c.buyer_confirmed_payment),
        seller_confirmed_payment=bool(c.seller_confirmed_payment),
        payment_method=c.payment_method,
        final_payout_processed=bool(c.final_payout_processed),
    )


# ---------- DELIVERY ----------
def confirm_delivery(request_id: int, party: str) -> ConfirmationStatus:
    _check_party(party)
    c = _get_confirmation(request_id)

    if c.otp_verified_at is None:
        raise OtpNotVerified()

    flag = _DELIVERY_FLAG[party]
    if getattr(c, flag.key):
        return get_status(request_id)

    if not _apply(request_id, DeliveryConfirmation.otp_verified_at.isnot(None), **{flag.key: True}):
        db.session.rollback()
        raise OtpNotVerified()

    record_request_event(
        request_id=request_id,
        action=RequestEvent.Actions.CONFIRM_DELIVERY,
        details={"party": party},
    )
    db.session.commit()

    logger.info("Delivery confirmed: request_id=%s party=%s", request_id, party)
    return get_status(request_id)


# ---------- PAYMENT ----------
def confirm_payment(request_id: int, party: str, payment_method: str | None = None) -> PaymentConfirmed:
    _check_party(party)
    c = _get_confirmation(request_id)

    if not c.delivery_confirmed:
        missing = [p for p in Party.ALL if not getattr(c, _DELIVERY_FLAG[p].key)]
        raise DeliveryNotConfirmed(missing=missing)

    method = (payment_method or "").strip() or None
    if party == Party.BUYER and method is None:
        raise PaymentMethodRequired()

    flag = _PAYMENT_FLAG[party]
    values = {flag.key: True}
    if party == Party.BUYER:
        values["payment_method"] = method

    already = bool(getattr(c, flag.key)) and all(getattr(c, k) == v for k, v in values.items())
    if not already:
        if not _apply(
            request_id,
            DeliveryConfirmation.buyer_confirmed_delivery.is_(True),
            DeliveryConfirmation.seller_confirmed_delivery.is_(True),
            DeliveryConfirmation.final_payout_processed.is_(False),
            **values,
        ):
            db.session.rollback()
            # ya se liberó el payout: el flag quedó fijado antes
            return PaymentConfirmed(status=get_status(request_id), payout=None)

        record_request_event(
            request_id=request_id,
            action=RequestEvent.Actions.CONFIRM_PAYMENT,
            details={"party": party, "payment_method": values.get("payment_method")},
        )
        db.session.commit()
        logger.info("Payment confirmed: request_id=%s party=%s", request_id, party)

    outcome = payout_service.try_finalize(request_id)
    payout = outcome if isinstance(outcome, PayoutResult) else None
    return PaymentConfirmed(status=get_status(request_id), payout=payout)
