"""
Expected, user-facing outcomes of the purchase workflow.

Services raise them; the app error handler turns them into
``{"error": code, "message": ..., **context}`` with ``status_code``.
"""
from __future__ import annotations


class WorkflowError(Exception):
    code = "workflow_error"
    status_code = 400
    default_message = "The operation could not be completed."

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.context}


class ValidationFailed(WorkflowError):
    code = "invalid_payload"
    default_message = "The request body is invalid."


class NotFound(WorkflowError):
    code = "not_found"
    status_code = 404
    default_message = "Purchase request not found."


class Forbidden(WorkflowError):
    code = "forbidden"
    status_code = 403
    default_message = "You are not allowed to perform this action."


class IllegalTransition(WorkflowError):
    code = "illegal_transition"
    status_code = 409
    default_message = "This request cannot move to the requested status."


class InvalidOffer(WorkflowError):
    code = "invalid_offer"
    default_message = "The offered price is not valid for this book."


class SelfPurchase(WorkflowError):
    code = "self_purchase"
    default_message = "You cannot buy your own book."


class BookUnavailable(WorkflowError):
    code = "book_unavailable"
    status_code = 409
    default_message = "This book is no longer available."


class DuplicateRequest(WorkflowError):
    code = "duplicate_request"
    status_code = 409
    default_message = "You already have a pending request for this book."


class InvalidDate(WorkflowError):
    code = "invalid_date"
    default_message = "The delivery date is out of range."


class InvalidOtp(WorkflowError):
    code = "invalid_otp"
    default_message = "Invalid OTP code."


class OtpExpired(WorkflowError):
    code = "otp_expired"
    status_code = 410
    default_message = "The OTP has expired. Please request a new one."


class AlreadyVerified(WorkflowError):
    code = "already_verified"
    status_code = 409
    default_message = "Delivery has already been verified for this request."


class OtpNotVerified(WorkflowError):
    code = "otp_not_verified"
    status_code = 409
    default_message = "Verify the delivery OTP first."


class DeliveryNotConfirmed(WorkflowError):
    code = "delivery_not_confirmed"
    status_code = 409
    default_message = "Both buyer and seller must confirm delivery before payment."


class PaymentMethodRequired(WorkflowError):
    code = "payment_method_required"
    default_message = "Choose a payment method to confirm payment."


class DuplicateReview(WorkflowError):
    code = "duplicate_review"
    status_code = 409
    default_message = "You have already reviewed this transaction."


class OtpLocked(WorkflowError):
    code = "otp_locked"
    status_code = 429
    default_message = "Too many wrong codes. Ask the seller to send a new OTP."
