"""
PayFast Gateway Service.

Handles all outbound calls to PayFast: ITN validation, CSRF/session
scraping for the subscription API, signed header construction and the
subscription action executor (cancel / pause / unpause / fetch) with its
419-triggered session refresh.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from payfast_gateway.core.config import Settings
from payfast_gateway.core.exceptions import InvalidSignatureError
from payfast_gateway.schemas.payfast import (
    ITNPayload,
    SubscriptionActionResult,
    SubscriptionOutcome,
)
from payfast_gateway.services.signature import (
    build_param_string,
    generate_api_signature,
    verify_signature,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
# Constants
# ══════════════════════════════════════════════════════════════════════

MAX_ATTEMPTS = 2
SESSION_TIMEOUT = 5.0
SUBSCRIPTION_TIMEOUT = 10.0
VALIDATION_TIMEOUT = 10.0

CSRF_SESSION_EXPIRED = 419

CSRF_META_RE = re.compile(r'<meta name="csrf-token" content="(.+?)"')

SubscriptionCallback = Callable[[SubscriptionActionResult], Awaitable[None]]


@dataclass(frozen=True)
class CsrfSession:
    csrf_token: Optional[str] = None
    session_cookie: Optional[str] = None


class AttemptResult(str, Enum):
    SUCCESS = "success"
    RETRY = "retry"
    TERMINAL = "terminal"
    EXHAUSTED = "exhausted"


# ══════════════════════════════════════════════════════════════════════
# Pure helper functions
# ══════════════════════════════════════════════════════════════════════


def current_iso_timestamp(now: Optional[datetime] = None) -> str:
    """Local time as ``YYYY-MM-DDTHH:MM:SS±HH:MM``."""
    moment = (now or datetime.now()).astimezone()
    return moment.replace(microsecond=0).isoformat()


def classify_attempt(
    status_code: int, attempt: int, max_attempts: int = MAX_ATTEMPTS
) -> AttemptResult:
    """
    Transition table for one subscription API attempt (``attempt`` is 0-based).

      2xx                              -> SUCCESS
      419 with attempts remaining      -> RETRY
      419 on the last attempt          -> EXHAUSTED
      anything else                    -> TERMINAL
    """
    if 200 <= status_code < 300:
        return AttemptResult.SUCCESS
    if status_code == CSRF_SESSION_EXPIRED:
        if attempt < max_attempts - 1:
            return AttemptResult.RETRY
        return AttemptResult.EXHAUSTED
    return AttemptResult.TERMINAL


def api_origin(url: str) -> str:
    """``https://api.payfast.co.za/subscriptions/...`` -> ``https://api.payfast.co.za``."""
    return url.split("/subscriptions")[0]


def with_session(headers: Dict[str, str], session: CsrfSession) -> Dict[str, str]:
    """Return a copy of ``headers`` carrying whatever the session probe recovered."""
    merged = dict(headers)
    if session.csrf_token:
        merged["X-CSRF-TOKEN"] = session.csrf_token
    if session.session_cookie:
        merged["Cookie"] = session.session_cookie
    return merged


def _parse_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


# ══════════════════════════════════════════════════════════════════════
# PayFastService class
# ══════════════════════════════════════════════════════════════════════


class PayFastService:
    """
    Service class that encapsulates all PayFast gateway operations.

    ``transport`` is handed to every ``httpx.AsyncClient`` the service opens;
    leave it unset in production.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    # ──────────────────────────────────────────────────────────────
    # ITN verification
    # ──────────────────────────────────────────────────────────────

    def check_itn_signature(
        self, raw_pairs: List[Tuple[str, str]], fields: Dict[str, str]
    ) -> None:
        """
        Rebuild the canonical string from the raw form (arrival order) and
        compare it against the posted signature.

        Raises InvalidSignatureError on mismatch.
        """
        param_string = build_param_string(raw_pairs)
        if not verify_signature(fields, param_string, self.settings.PAYFAST_PASSPHRASE):
            logger.warning(
                f"[payfast] ITN rejected — signature mismatch for "
                f"m_payment_id={fields.get('m_payment_id', '')!r}, "
                f"pf_payment_id={fields.get('pf_payment_id', '')!r}"
            )
            raise InvalidSignatureError()

    async def validate_itn(self, payload: ITNPayload) -> bool:
        """
        Post the normalised ITN back to PayFast's validate endpoint.
        Only a literal ``VALID`` body counts; every failure is ``False``.
        """
        url = self.settings.validate_url
        try:
            async with self._client(VALIDATION_TIMEOUT) as client:
                resp = await client.post(
                    url,
                    data=payload.model_dump(),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"[payfast] ITN validation request failed: {e}")
            return False

        body = resp.text.strip()
        if body != "VALID":
            logger.warning(
                f"[payfast] ITN validation rejected — HTTP {resp.status_code}, body={body[:100]!r}"
            )
            return False
        return True

    # ──────────────────────────────────────────────────────────────
    # CSRF / session acquisition
    # ──────────────────────────────────────────────────────────────

    async def fetch_csrf_and_session(self, base_url: str) -> CsrfSession:
        """
        GET the PayFast origin and scrape the CSRF meta tag and session cookies.
        Best-effort: any failure yields an empty session.
        """
        try:
            async with self._client(SESSION_TIMEOUT) as client:
                resp = await client.get(
                    base_url, headers={"Accept": "text/html"}, follow_redirects=True
                )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"[payfast] CSRF/session fetch failed for {base_url}: {e}")
            return CsrfSession()

        match = CSRF_META_RE.search(resp.text)
        cookies = resp.headers.get_list("set-cookie")

        return CsrfSession(
            csrf_token=match.group(1) if match else None,
            session_cookie="; ".join(cookies) or None,
        )

    # ──────────────────────────────────────────────────────────────
    # Signed headers
    # ──────────────────────────────────────────────────────────────

    def build_signed_headers(self, passphrase: Optional[str]) -> Dict[str, str]:
        headers = {
            "merchant-id": self.settings.PAYFAST_MERCHANT_ID,
            "version": self.settings.PAYFAST_API_VERSION,
            "timestamp": current_iso_timestamp(),
        }
        headers["signature"] = generate_api_signature(headers, passphrase)
        return headers

    def subscription_url(self, token: str, action: str) -> str:
        base_url = self.settings.PAYFAST_API_BASE_URL.rstrip("/")
        return (
            f"{base_url}/subscriptions/{token}/{action}"
            f"?testing={self.settings.testing_flag}"
        )

    # ──────────────────────────────────────────────────────────────
    # Subscription executor
    # ──────────────────────────────────────────────────────────────

    async def execute_subscription_request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        token: str,
        subscription_id: Optional[str] = None,
        callback: Optional[SubscriptionCallback] = None,
    ) -> SubscriptionOutcome:
        """
        Call the subscription API, refreshing the CSRF session once on 419.

        ``headers`` is never mutated; each retry works on a fresh copy.
        ``callback`` runs at most once, after a successful attempt, and any
        exception it raises propagates to the caller.
        """
        attempt_headers = dict(headers)

        for attempt in range(MAX_ATTEMPTS):
            try:
                async with self._client(SUBSCRIPTION_TIMEOUT) as client:
                    resp = await client.request(method, url, headers=attempt_headers)
            except httpx.HTTPError as e:
                logger.error(f"[payfast] {method} {url} error: {e}")
                return SubscriptionOutcome(
                    status_code=500,
                    payload={"error": str(e) or "Request failed", "details": {}},
                )

            data = _parse_body(resp)
            result = classify_attempt(resp.status_code, attempt)
            logger.info(
                f"[payfast] {method} {url} — attempt {attempt + 1}/{MAX_ATTEMPTS}, "
                f"HTTP {resp.status_code} -> {result.value}"
            )

            if result is AttemptResult.SUCCESS:
                if callback is not None:
                    await callback(
                        SubscriptionActionResult(
                            token=token,
                            subscription_id=subscription_id,
                            status=resp.status_code,
                            payload=data,
                        )
                    )
                message = data.get("message") if isinstance(data, dict) else None
                return SubscriptionOutcome(
                    status_code=resp.status_code,
                    payload={"message": message, "data": data},
                )

            if result is AttemptResult.RETRY:
                session = await self.fetch_csrf_and_session(api_origin(url))
                attempt_headers = with_session(attempt_headers, session)
                continue

            if result is AttemptResult.EXHAUSTED:
                break

            message = data.get("message") if isinstance(data, dict) else None
            return SubscriptionOutcome(
                status_code=resp.status_code or 500,
                payload={
                    "error": message or f"Request failed with status code {resp.status_code}",
                    "details": data or {},
                },
            )

        logger.error(f"[payfast] {method} {url} — max retry attempts exceeded")
        return SubscriptionOutcome(
            status_code=500,
            payload={"error": "Max retry attempts exceeded"},
        )

    async def run_subscription_action(
        self,
        action: str,
        method: str,
        token: str,
        subscription_id: Optional[str] = None,
        callback: Optional[SubscriptionCallback] = None,
    ) -> SubscriptionOutcome:
        """Sign, attach a fresh session and execute one subscription action."""
        url = self.subscription_url(token, action)
        headers = self.build_signed_headers(self.settings.PAYFAST_PASSPHRASE or None)
        session = await self.fetch_csrf_and_session(api_origin(url))

        return await self.execute_subscription_request(
            method=method,
            url=url,
            headers=with_session(headers, session),
            token=token,
            subscription_id=subscription_id,
            callback=callback,
        )
