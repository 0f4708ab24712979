"""
Standalone FastAPI app serving the PayFast routes under /api/v1/payfast.

Host applications normally mount ``build_payfast_router`` themselves and
pass their own callbacks; the defaults here only log what they receive.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payfast_gateway.api.v1.api import build_api_router
from payfast_gateway.api.v1.endpoints.payfast.router import PayFastCallbacks
from payfast_gateway.core.config import Settings, get_settings
from payfast_gateway.core.exceptions import AppException
from payfast_gateway.core.logging_config import configure_logging
from payfast_gateway.schemas.payfast import ITNPayload, SubscriptionActionResult
from payfast_gateway.services.payfast_service import PayFastService

logger = logging.getLogger(__name__)


async def log_payment_update(payload: ITNPayload) -> None:
    logger.info(
        f"[payfast] payment update — m_payment_id={payload.m_payment_id}, "
        f"status={payload.payment_status}"
    )


async def log_subscription_result(result: SubscriptionActionResult) -> None:
    logger.info(
        f"[payfast] subscription result — token={result.token}, status={result.status}"
    )


DEFAULT_CALLBACKS = PayFastCallbacks(
    on_payment_update=log_payment_update,
    on_cancel=log_subscription_result,
    on_pause=log_subscription_result,
    on_unpause=log_subscription_result,
    on_fetch=log_subscription_result,
)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


def create_app(
    settings: Optional[Settings] = None,
    callbacks: Optional[PayFastCallbacks] = None,
    service: Optional[PayFastService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(
        build_api_router(settings, callbacks or DEFAULT_CALLBACKS, service),
        prefix="/api/v1",
    )

    @app.get("/health", tags=["health"])
    async def health():
        return {
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "sandbox": settings.sandbox,
        }

    logger.info(
        f"{settings.APP_NAME} v{settings.APP_VERSION} started "
        f"(environment={settings.ENVIRONMENT}, sandbox={settings.sandbox})"
    )
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
