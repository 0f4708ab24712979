"""
PayFast Router Aggregator.

Combines the PayFast sub-routers into one router the host application
mounts under any prefix:

  POST /initiate                          — signed payment form
  POST /notify                            — ITN receiver
  POST /cancel/{token}/{subscription_id}  — cancel (id required)
  POST /cancel/{token}                    — cancel
  POST /pause/{token}                     — pause
  POST /unpause/{token}                   — unpause
  GET  /fetch/{token}                     — fetch

Persistence stays with the host: it supplies the callbacks below.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter

from payfast_gateway.api.v1.endpoints.payfast.initiate import build_initiate_router
from payfast_gateway.api.v1.endpoints.payfast.notify import (
    PaymentUpdateCallback,
    build_notify_router,
)
from payfast_gateway.api.v1.endpoints.payfast.subscriptions import build_subscription_router
from payfast_gateway.core.config import Settings
from payfast_gateway.services.payfast_service import PayFastService, SubscriptionCallback


@dataclass(frozen=True)
class PayFastCallbacks:
    on_payment_update: PaymentUpdateCallback
    on_cancel: Optional[SubscriptionCallback] = None
    on_pause: Optional[SubscriptionCallback] = None
    on_unpause: Optional[SubscriptionCallback] = None
    on_fetch: Optional[SubscriptionCallback] = None


def build_payfast_router(
    settings: Settings,
    callbacks: PayFastCallbacks,
    service: Optional[PayFastService] = None,
) -> APIRouter:
    service = service or PayFastService(settings)

    payfast_router = APIRouter()
    payfast_router.include_router(build_initiate_router(settings))
    payfast_router.include_router(
        build_notify_router(service, callbacks.on_payment_update)
    )
    payfast_router.include_router(
        build_subscription_router(
            service,
            on_cancel=callbacks.on_cancel,
            on_pause=callbacks.on_pause,
            on_unpause=callbacks.on_unpause,
            on_fetch=callbacks.on_fetch,
        )
    )
    return payfast_router
