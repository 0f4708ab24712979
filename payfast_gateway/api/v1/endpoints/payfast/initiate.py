"""
PayFast Initiate Route.

Endpoint:
  POST /initiate — Build and sign the PayFast payment form

The browser posts the returned ``paymentData`` to ``payfastUrl``.
Subscription fields fall back to PayFast's defaults: monthly
(frequency 3), indefinite (cycles 0), all notifications on.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from payfast_gateway.core.config import Settings
from payfast_gateway.core.exceptions import AppException, InvalidRequestError, MissingParameterError
from payfast_gateway.schemas.payfast import ErrorResponse, InitiateRequest, InitiateResponse
from payfast_gateway.services.signature import generate_signature

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def format_amount(amount: Any) -> str:
    """Two-decimal string PayFast expects, e.g. ``100`` -> ``"100.00"``."""
    if isinstance(amount, bool):
        raise MissingParameterError("Invalid amount", details={"amount": str(amount)})
    try:
        return f"{float(amount):.2f}"
    except (TypeError, ValueError):
        raise MissingParameterError(
            "Invalid amount", details={"amount": str(amount)}
        )


def build_payment_data(body: InitiateRequest, settings: Settings) -> Dict[str, Any]:
    if _is_blank(body.amount) or _is_blank(body.item_name) or _is_blank(body.m_payment_id):
        raise MissingParameterError("Missing required fields")

    amount = format_amount(body.amount)
    billing_date = body.billing_date or datetime.now(timezone.utc).date().isoformat()

    payment_data: Dict[str, Any] = {
        "merchant_id": settings.PAYFAST_MERCHANT_ID,
        "merchant_key": settings.PAYFAST_MERCHANT_KEY,
        "return_url": settings.RETURN_URL,
        "cancel_url": settings.CANCEL_URL,
        "notify_url": settings.NOTIFY_URL,
        "name_first": body.name_first or "",
        "name_last": body.name_last or "",
        "email_address": body.email_address or "",
        "m_payment_id": body.m_payment_id,
        "amount": amount,
        "item_name": body.item_name,
        "item_description": body.item_description,
        "subscription_type": body.subscription_type or 1,
        "billing_date": billing_date,
        "recurring_amount": body.recurring_amount or amount,
        "frequency": body.frequency or 3,
        "cycles": body.cycles or 0,
        "subscription_notify_email": (
            True if body.subscription_notify_email is None else body.subscription_notify_email
        ),
        "subscription_notify_webhook": (
            True if body.subscription_notify_webhook is None else body.subscription_notify_webhook
        ),
        "subscription_notify_buyer": (
            True if body.subscription_notify_buyer is None else body.subscription_notify_buyer
        ),
    }
    return {k: v for k, v in payment_data.items() if v is not None}


async def parse_initiate_body(request: Request) -> InitiateRequest:
    try:
        data = await request.json()
    except ValueError:
        raise InvalidRequestError("Invalid JSON body")

    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    try:
        return InitiateRequest.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestError(
            "Invalid request body",
            details={"errors": e.errors(include_url=False, include_context=False)},
        )


def build_initiate_router(settings: Settings) -> APIRouter:
    router = APIRouter()

    @router.post(
        "/initiate",
        response_model=InitiateResponse,
        summary="Build a signed PayFast payment request",
        description=(
            "Returns the signed form fields and the PayFast process URL "
            "(sandbox or live) the browser should post them to. "
        ),
        responses={400: {"description": "Missing or invalid fields", "model": ErrorResponse}},
        tags=["payfast", "payments"],
    )
    async def initiate_payment(request: Request):
        try:
            body = await parse_initiate_body(request)
            payment_data = build_payment_data(body, settings)
        except AppException as e:
            return JSONResponse(status_code=e.status_code, content=e.to_response_body())

        payment_data["signature"] = generate_signature(
            payment_data, settings.PAYFAST_PASSPHRASE
        )

        logger.info(
            f"[payfast] initiate — m_payment_id={payment_data['m_payment_id']}, "
            f"amount={payment_data['amount']}, sandbox={settings.sandbox}"
        )

        return InitiateResponse(
            payment_data=payment_data,
            payfast_url=settings.process_url,
        )

    return router
