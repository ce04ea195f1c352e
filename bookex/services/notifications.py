"""
Outbound notifications for the purchase workflow.

``NotificationPort`` is fire-and-forget: every channel failure is logged and
swallowed so a broken channel never blocks a state transition. Callers
notify only after their own transaction has committed.
"""
from __future__ import annotations

import logging

import requests
from flask import current_app

from bookex.extensions import db
from bookex.models import Notification, User

logger = logging.getLogger(__name__)

EXTENSION_KEY = "bookex.notifier"


class NotificationType:
    PURCHASE_REQUEST = "purchase_request"
    REQUEST_ACCEPTED = "request_accepted"
    REQUEST_REJECTED = "request_rejected"
    DELIVERY_SCHEDULED = "delivery_scheduled"
    DELIVERY_OTP = "delivery_otp"
    OTP_VERIFIED = "otp_verified"
    PAYOUT_PROCESSED = "payout_processed"
    TRANSACTION_COMPLETE = "transaction_complete"
    GENERAL = "general"


class Priority:
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class InAppChannel:
    """Persists a row in ``notifications``; the app's feed reads from there."""

    def deliver(self, *, user_id, type, title, message, related_id=None, priority=Priority.NORMAL):
        row = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=str(related_id) if related_id is not None else None,
            priority=priority,
        )
        try:
            db.session.add(row)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return row


class EmailChannel:
    """Transactional email over an HTTP mail API (Brevo-compatible payload)."""

    def __init__(self, api_url: str, api_key: str, sender: str, sender_name: str = "BookEx", timeout: int = 10):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.sender_name = sender_name
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "EmailChannel":
        return cls(
            api_url=config["MAIL_API_URL"],
            api_key=config["MAIL_API_KEY"],
            sender=config["MAIL_FROM"],
            sender_name=config.get("MAIL_SENDER_NAME", "BookEx"),
            timeout=config.get("MAIL_TIMEOUT", 10),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def send(self, *, to: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.info("Email channel disabled, skipping mail to %s (%s)", to, subject)
            return False

        payload = {
            "sender": {"email": self.sender, "name": self.sender_name},
            "to": [{"email": to}],
            "subject": subject,
            "textContent": body,
        }
        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json",
        }

        response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        if response.status_code >= 400:
            logger.error("Mail API failed (%s): %s", response.status_code, response.text)
            return False

        logger.info("Mail sent to %s (%s)", to, subject)
        return True


class NotificationPort:
    def __init__(self, in_app: InAppChannel, email: EmailChannel):
        self.in_app = in_app
        self.email = email

    def notify(self, user_id, type, title, message, related_id=None, priority=Priority.NORMAL) -> None:
        try:
            self.in_app.deliver(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                related_id=related_id,
                priority=priority,
            )
        except Exception:
            logger.exception(
                "In-app notification failed: user_id=%s type=%s related_id=%s",
                user_id, type, related_id,
            )

    def send_direct(self, user_id, subject, body) -> None:
        try:
            user = db.session.get(User, user_id)
            if user is None or not user.email:
                logger.warning("No email address for user_id=%s, direct message dropped", user_id)
                return
            self.email.send(to=user.email, subject=subject, body=body)
        except Exception:
            logger.exception("Direct message failed: user_id=%s subject=%s", user_id, subject)


def init_notifier(app) -> NotificationPort:
    notifier = NotificationPort(InAppChannel(), EmailChannel.from_config(app.config))
    app.extensions[EXTENSION_KEY] = notifier
    return notifier


def get_notifier() -> NotificationPort:
    return current_app.extensions[EXTENSION_KEY]
