"""
PayFast Subscription Routes.

Endpoints:
  POST /cancel/{token}/{subscription_id} — Cancel (subscription id required)
  POST /cancel/{token}                   — Cancel by token only
  POST /pause/{token}                    — Pause a subscription
  POST /unpause/{token}                  — Resume a paused subscription
  GET  /fetch/{token}                    — Fetch subscription details

Each route signs the API headers, attaches a freshly scraped CSRF session
and relays PayFast's status and JSON body unchanged.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from payfast_gateway.core.exceptions import MissingParameterError
from payfast_gateway.services.payfast_service import PayFastService, SubscriptionCallback

logger = logging.getLogger(__name__)


def _require_params(
    token: str, subscription_id: Optional[str], require_subscription_id: bool
) -> None:
    if not token.strip() or (
        require_subscription_id and not (subscription_id or "").strip()
    ):
        raise MissingParameterError(
            "Token"
            + (" and Subscription ID" if require_subscription_id else "")
            + " are required"
        )


async def _run_action(
    service: PayFastService,
    action: str,
    method: str,
    token: str,
    subscription_id: Optional[str],
    callback: Optional[SubscriptionCallback],
    require_subscription_id: bool = False,
) -> JSONResponse:
    try:
        _require_params(token, subscription_id, require_subscription_id)
    except MissingParameterError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_response_body())

    try:
        outcome = await service.run_subscription_action(
            action=action,
            method=method,
            token=token,
            subscription_id=subscription_id,
            callback=callback,
        )
    except Exception as e:
        logger.exception(f"[payfast] {action} failed for token={token}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(e)},
        )

    return JSONResponse(status_code=outcome.status_code, content=outcome.payload)


def build_subscription_router(
    service: PayFastService,
    on_cancel: Optional[SubscriptionCallback] = None,
    on_pause: Optional[SubscriptionCallback] = None,
    on_unpause: Optional[SubscriptionCallback] = None,
    on_fetch: Optional[SubscriptionCallback] = None,
) -> APIRouter:
    router = APIRouter(tags=["payfast", "subscriptions"])

    # ``path`` lets an empty trailing segment reach the handler as ""
    @router.post(
        "/cancel/{token}/{subscription_id:path}",
        summary="Cancel a PayFast subscription (subscription id required)",
    )
    async def cancel_subscription_with_id(token: str, subscription_id: str):
        return await _run_action(
            service, "cancel", "PUT", token, subscription_id, on_cancel,
            require_subscription_id=True,
        )

    @router.post("/cancel/{token}", summary="Cancel a PayFast subscription")
    async def cancel_subscription(token: str):
        return await _run_action(service, "cancel", "PUT", token, None, on_cancel)

    @router.post("/pause/{token}", summary="Pause a PayFast subscription")
    async def pause_subscription(token: str):
        return await _run_action(service, "pause", "PUT", token, None, on_pause)

    @router.post("/unpause/{token}", summary="Unpause a PayFast subscription")
    async def unpause_subscription(token: str):
        return await _run_action(service, "unpause", "PUT", token, None, on_unpause)

    @router.get("/fetch/{token}", summary="Fetch a PayFast subscription")
    async def fetch_subscription(token: str):
        return await _run_action(service, "fetch", "GET", token, None, on_fetch)

    return router
