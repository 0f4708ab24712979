"""
Pydantic models for the PayFast payment and subscription routes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Form values may arrive as JSON strings, numbers or booleans
FieldValue = Union[str, bool, int, float]


# ──────────────────────────────────────────────────────────────────────
#  Initiate – POST /initiate
# ──────────────────────────────────────────────────────────────────────


class InitiateRequest(BaseModel):
    """
    Request body for building a signed PayFast payment form.

    Only ``amount``, ``item_name`` and ``m_payment_id`` are required; the
    route reports their absence itself so the error body stays PayFast-style.
    """

    amount: Optional[FieldValue] = None
    item_name: Optional[FieldValue] = None
    item_description: Optional[FieldValue] = None
    name_first: Optional[FieldValue] = None
    name_last: Optional[FieldValue] = None
    email_address: Optional[FieldValue] = None
    m_payment_id: Optional[FieldValue] = None

    # Subscription fields
    subscription_type: Optional[int] = None
    billing_date: Optional[FieldValue] = None
    recurring_amount: Optional[FieldValue] = None
    frequency: Optional[int] = None
    cycles: Optional[int] = None
    subscription_notify_email: Optional[bool] = None
    subscription_notify_webhook: Optional[bool] = None
    subscription_notify_buyer: Optional[bool] = None


class InitiateResponse(BaseModel):
    """Signed form fields plus the PayFast page the browser should post them to."""

    model_config = ConfigDict(populate_by_name=True)

    payment_data: Dict[str, Any] = Field(..., alias="paymentData")
    payfast_url: str = Field(..., alias="payfastUrl")


# ──────────────────────────────────────────────────────────────────────
#  ITN – POST /notify
# ──────────────────────────────────────────────────────────────────────


class ITNPayload(BaseModel):
    """
    Normalised Instant Transaction Notification.

    Closed field set; every field is always present and defaults to ``""``.
    This is what ``on_payment_update`` receives and what is re-posted to
    PayFast for validation.
    """

    model_config = ConfigDict(extra="forbid")

    m_payment_id: str = ""
    pf_payment_id: str = ""
    payment_status: str = ""
    item_name: str = ""
    item_description: str = ""
    amount_gross: str = ""
    amount_fee: str = ""
    amount_net: str = ""
    custom_str1: str = ""
    custom_str2: str = ""
    custom_str3: str = ""
    custom_str4: str = ""
    custom_str5: str = ""
    custom_int1: str = ""
    custom_int2: str = ""
    custom_int3: str = ""
    custom_int4: str = ""
    custom_int5: str = ""
    name_first: str = ""
    name_last: str = ""
    email_address: str = ""
    merchant_id: str = ""
    token: str = ""
    billing_date: str = ""
    signature: str = ""


# ──────────────────────────────────────────────────────────────────────
#  Subscriptions – cancel / pause / unpause / fetch
# ──────────────────────────────────────────────────────────────────────


class SubscriptionActionResult(BaseModel):
    """Payload handed to the subscription callbacks after a successful call."""

    token: str
    subscription_id: Optional[str] = None
    status: int
    payload: Any = None


class SubscriptionOutcome(BaseModel):
    """HTTP status and JSON body relayed back to the caller."""

    status_code: int
    payload: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """JSON error body used by every route except /notify."""

    error: str
    details: Optional[Any] = None
