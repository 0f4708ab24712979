from typing import Optional

from fastapi import APIRouter

from payfast_gateway.api.v1.endpoints.payfast.router import (
    PayFastCallbacks,
    build_payfast_router,
)
from payfast_gateway.core.config import Settings
from payfast_gateway.services.payfast_service import PayFastService


def build_api_router(
    settings: Settings,
    callbacks: PayFastCallbacks,
    service: Optional[PayFastService] = None,
) -> APIRouter:
    api_router = APIRouter()

    # PayFast routes — prefix /payfast
    # Full paths: /api/v1/payfast/initiate, /api/v1/payfast/notify, etc.
    api_router.include_router(
        build_payfast_router(settings, callbacks, service),
        prefix="/payfast",
        tags=["payfast"],
    )
    return api_router
