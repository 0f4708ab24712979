"""
PayFast ITN Route.

Endpoint:
  POST /notify — Receive Instant Transaction Notifications from PayFast

PayFast posts application/x-www-form-urlencoded and expects plain-text
replies. A non-200 reply makes PayFast resend the notification, so a
failing ``on_payment_update`` callback is reported as 500.

Checks, in order:
  1. signature over the raw form (arrival order)  -> 400 "Invalid signature"
  2. server-to-server validation with PayFast     -> 400 "Validation with PayFast failed"
  3. caller's on_payment_update callback          -> 500 "Callback failed"
"""

import logging
from typing import Awaitable, Callable
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from payfast_gateway.core.exceptions import InvalidSignatureError
from payfast_gateway.schemas.payfast import ITNPayload
from payfast_gateway.services.itn import create_itn_payload
from payfast_gateway.services.payfast_service import PayFastService

logger = logging.getLogger(__name__)

PaymentUpdateCallback = Callable[[ITNPayload], Awaitable[None]]


def build_notify_router(
    service: PayFastService, on_payment_update: PaymentUpdateCallback
) -> APIRouter:
    router = APIRouter()

    @router.post(
        "/notify",
        response_class=PlainTextResponse,
        summary="Receive PayFast ITN callbacks",
        description=(
            "Verifies the ITN signature, re-validates it with PayFast and hands "
            "the normalised payload to the payment update callback. "
        ),
        tags=["payfast", "webhooks"],
    )
    async def handle_itn(request: Request):
        raw_body = await request.body()
        raw_pairs = parse_qsl(raw_body.decode("utf-8", errors="replace"), keep_blank_values=True)
        fields = dict(raw_pairs)

        itn_payload = create_itn_payload(fields)

        logger.info(
            f"[payfast] ITN received — m_payment_id={itn_payload.m_payment_id}, "
            f"payment_status={itn_payload.payment_status}"
        )

        try:
            service.check_itn_signature(raw_pairs, fields)
        except InvalidSignatureError as e:
            return PlainTextResponse(e.message, status_code=e.status_code)

        if not await service.validate_itn(itn_payload):
            return PlainTextResponse("Validation with PayFast failed", status_code=400)

        try:
            await on_payment_update(itn_payload)
        except Exception:
            logger.exception(
                f"[payfast] on_payment_update failed for m_payment_id={itn_payload.m_payment_id}"
            )
            return PlainTextResponse("Callback failed", status_code=500)

        return PlainTextResponse("OK", status_code=200)

    return router
