from payfast_gateway.api.v1.endpoints.payfast.router import (
    PayFastCallbacks,
    build_payfast_router,
)
from payfast_gateway.core.config import Settings, get_settings
from payfast_gateway.services.payfast_service import PayFastService

__all__ = [
    "PayFastCallbacks",
    "PayFastService",
    "Settings",
    "build_payfast_router",
    "get_settings",
]
