"""
Delivery OTP: a 6-digit code bound to an accepted purchase request.

The buyer receives the code when the book is handed over; entering it
proves delivery. A code is valid for ``OTP_TTL_MINUTES`` after it was
sent and can be verified once, by the buyer. After ``OTP_MAX_ATTEMPTS``
wrong codes it is locked. Re-issuing before verification replaces the
pending code and resets the attempt count.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from bookex import clock
from bookex.errors import AlreadyVerified, Forbidden, InvalidOtp, NotFound, OtpExpired, OtpLocked
from bookex.extensions import db
from bookex.models import DeliveryConfirmation, PurchaseRequest, RequestEvent, RequestStatus
from bookex.services.notifications import NotificationType, Priority, get_notifier
from bookex.services.request_audit import record_request_event

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999


@dataclass(frozen=True)
class OtpIssued:
    purchase_request_id: int
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "purchase_request_id": self.purchase_request_id,
            "expires_at": clock.isoformat(self.expires_at),
        }


@dataclass(frozen=True)
class OtpVerified:
    purchase_request_id: int
    verified_at: datetime

    def to_dict(self) -> dict:
        return {
            "purchase_request_id": self.purchase_request_id,
            "verified_at": clock.isoformat(self.verified_at),
        }


def generate_otp() -> str:
    """Uniform over [100000, 999999]."""
    return str(secrets.randbelow(OTP_MAX - OTP_MIN + 1) + OTP_MIN)


def otp_ttl_minutes() -> int:
    return int(current_app.config["OTP_TTL_MINUTES"])


def otp_ttl() -> timedelta:
    return timedelta(minutes=otp_ttl_minutes())


def otp_max_attempts() -> int:
    return int(current_app.config["OTP_MAX_ATTEMPTS"])


def _find_confirmation(request_id: int) -> DeliveryConfirmation | None:
    return DeliveryConfirmation.query.filter_by(purchase_request_id=request_id).first()


def _insert_confirmation(req: PurchaseRequest, code: str, now: datetime) -> bool:
    """False when another session created the row first (unique purchase_request_id)."""
    db.session.add(
        DeliveryConfirmation(
            purchase_request_id=req.id,
            buyer_id=req.buyer_id,
            seller_id=req.seller_id,
            otp_code=code,
            otp_sent_at=now,
        )
    )
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return False
    return True


def _replace_pending_code(request_id: int, code: str, now: datetime) -> bool:
    result = db.session.execute(
        update(DeliveryConfirmation)
        .where(
            DeliveryConfirmation.purchase_request_id == request_id,
            DeliveryConfirmation.otp_verified_at.is_(None),
        )
        .values(otp_code=code, otp_sent_at=now, otp_attempts=0, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ---------- ISSUE ----------
def issue_otp(request_id: int, actor_id: int) -> OtpIssued:
    req = db.session.get(PurchaseRequest, request_id)
    if req is None or req.status != RequestStatus.ACCEPTED:
        raise NotFound("No accepted purchase request found.", request_id=request_id)

    if actor_id not in (req.buyer_id, req.seller_id):
        raise Forbidden()

    existing = _find_confirmation(req.id)
    if existing is not None and existing.otp_verified_at is not None:
        raise AlreadyVerified()

    code = generate_otp()
    now = clock.utcnow()

    created = existing is None and _insert_confirmation(req, code, now)
    if not created and not _replace_pending_code(req.id, code, now):
        db.session.rollback()
        raise AlreadyVerified()

    record_request_event(
        request_id=req.id,
        actor_id=actor_id,
        action=RequestEvent.Actions.OTP_ISSUE,
        from_status=req.status,
        to_status=req.status,
        details={"reissued": not created},
    )
    db.session.commit()

    logger.info("Delivery OTP issued: request_id=%s reissued=%s", req.id, not created)

    _dispatch_code(req, code)
    return OtpIssued(purchase_request_id=req.id, expires_at=now + otp_ttl())


def _dispatch_code(req: PurchaseRequest, code: str) -> None:
    # dos canales independientes: si uno falla, el otro sigue
    notifier = get_notifier()
    title = req.book.title
    minutes = otp_ttl_minutes()

    notifier.send_direct(
        req.buyer_id,
        f"BookEx Delivery OTP - {title}",
        f'BookEx Delivery OTP: {code} for "{title}". Valid for {minutes} minutes.\n'
        "Enter this OTP in the BookEx app to confirm delivery and proceed with payment.",
    )
    notifier.notify(
        req.buyer_id,
        NotificationType.DELIVERY_OTP,
        "Delivery OTP Code",
        f'Your delivery OTP for "{title}" is: {code}. '
        f"Please confirm delivery to proceed with payment. Valid for {minutes} minutes.",
        related_id=req.id,
        priority=Priority.HIGH,
    )


# ---------- VERIFY ----------
def _count_wrong_attempt(confirmation: DeliveryConfirmation, max_attempts: int) -> int:
    db.session.execute(
        update(DeliveryConfirmation)
        .where(
            DeliveryConfirmation.id == confirmation.id,
            DeliveryConfirmation.otp_verified_at.is_(None),
        )
        .values(otp_attempts=DeliveryConfirmation.otp_attempts + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()

    attempts = confirmation.otp_attempts
    logger.info("Wrong delivery OTP: request_id=%s attempts=%s", confirmation.purchase_request_id, attempts)
    return max(max_attempts - attempts, 0)


def verify_otp(request_id: int, submitted_code: str) -> OtpVerified:
    confirmation = _find_confirmation(request_id)
    if confirmation is None:
        raise InvalidOtp()

    if confirmation.otp_verified_at is not None:
        raise AlreadyVerified()

    max_attempts = otp_max_attempts()
    if confirmation.otp_attempts >= max_attempts:
        raise OtpLocked(max_attempts=max_attempts)

    submitted = (submitted_code or "").strip()
    if not secrets.compare_digest(submitted.encode(), confirmation.otp_code.encode()):
        raise InvalidOtp(attempts_left=_count_wrong_attempt(confirmation, max_attempts))

    now = clock.utcnow()
    if now - confirmation.otp_sent_at > otp_ttl():
        raise OtpExpired(ttl_minutes=otp_ttl_minutes())

    result = db.session.execute(
        update(DeliveryConfirmation)
        .where(
            DeliveryConfirmation.purchase_request_id == request_id,
            DeliveryConfirmation.otp_verified_at.is_(None),
            DeliveryConfirmation.otp_code == submitted,
            DeliveryConfirmation.otp_sent_at == confirmation.otp_sent_at,
            DeliveryConfirmation.otp_attempts < max_attempts,
        )
        .values(otp_verified_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        db.session.refresh(confirmation)
        if confirmation.otp_verified_at is not None:
            raise AlreadyVerified()
        # se reemitió el código entre la lectura y la escritura
        raise InvalidOtp()

    record_request_event(
        request_id=request_id,
        action=RequestEvent.Actions.OTP_VERIFY,
        details={"verified_at": clock.isoformat(now)},
    )
    db.session.commit()

    logger.info("Delivery OTP verified: request_id=%s", request_id)

    req = confirmation.purchase_request
    title = req.book.title
    notifier = get_notifier()
    notifier.notify(
        req.buyer_id,
        NotificationType.OTP_VERIFIED,
        "Delivery Confirmed",
        f'Delivery OTP verified for "{title}". Please confirm delivery and payment.',
        related_id=req.id,
        priority=Priority.HIGH,
    )
    notifier.notify(
        req.seller_id,
        NotificationType.OTP_VERIFIED,
        "Buyer Confirmed Delivery",
        f'Buyer has confirmed delivery for "{title}". Please confirm payment receipt.',
        related_id=req.id,
        priority=Priority.HIGH,
    )
    return OtpVerified(purchase_request_id=request_id, verified_at=now)
