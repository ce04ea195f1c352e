"""
Typed request bodies, one per endpoint.

Bodies are accepted in snake_case or camelCase (``offered_price`` or
``offeredPrice``). Business rules (offer range, date horizon, OTP match)
are checked by the services so they keep their own error codes.
"""
from __future__ import annotations

import datetime as dt
from typing import Literal, Optional, Type, TypeVar

from flask import request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationFailed

Party = Literal["buyer", "seller"]

M = TypeVar("M", bound=BaseModel)


class _Body(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CreatePurchaseRequestBody(_Body):
    book_id: int
    buyer_id: int
    seller_id: int
    offered_price: int
    transfer_mode: Literal["self-transfer", "shipping", "pickup"]
    message: Optional[str] = None


class DeliveryDateBody(_Body):
    date: dt.date


class VerifyOtpBody(_Body):
    otp_code: str

    @field_validator("otp_code", mode="before")
    @classmethod
    def _digits_as_text(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class ConfirmDeliveryBody(_Body):
    party: Optional[Party] = None


class ConfirmPaymentBody(_Body):
    party: Optional[Party] = None
    payment_method: Optional[str] = Field(default=None, max_length=40)


class CreateReviewBody(_Body):
    purchase_request_id: int
    rating: int = Field(ge=1, le=5)
    review_text: Optional[str] = Field(default=None, max_length=2000)


def load_body(model: Type[M]) -> M:
    data = request.get_json(silent=True) or {}
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise ValidationFailed(fields=fields) from exc
