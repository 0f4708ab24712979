import httpx
import pytest

from payfast_gateway.core.config import Settings
from payfast_gateway.services.payfast_service import PayFastService


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        PAYFAST_MERCHANT_ID="10000100",
        PAYFAST_MERCHANT_KEY="46f0cd694581a",
        PAYFAST_PASSPHRASE="jt7NOE43FZPn",
        RETURN_URL="https://shop.example/return",
        CANCEL_URL="https://shop.example/cancel",
        NOTIFY_URL="https://shop.example/api/v1/payfast/notify",
    )


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def to(self, path_fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if path_fragment in str(r.url)]


@pytest.fixture
def make_service(settings):
    def _make(handler):
        transport = RecordingTransport(handler)
        return PayFastService(settings, transport=transport), transport

    return _make
