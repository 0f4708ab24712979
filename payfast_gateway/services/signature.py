"""
PayFast signature engine.

Two canonicalisation modes share one MD5 digest:

  * fixed-order mode for payment initiation and ITN verification, where
    values are form-encoded (spaces become ``+``) and a ``passphrase`` pair
    is appended last;
  * alphabetical mode for subscription API headers, where keys and values
    are percent-encoded independently and the passphrase is sorted in with
    the other keys.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Iterable, Mapping, Optional, Tuple
from urllib.parse import quote

# Order is defined by PayFast; changing it breaks every signature.
INITIATE_SIGNATURE_FIELDS: Tuple[str, ...] = (
    "merchant_id",
    "merchant_key",
    "return_url",
    "cancel_url",
    "notify_url",
    "name_first",
    "name_last",
    "email_address",
    "m_payment_id",
    "amount",
    "item_name",
    "item_description",
    "subscription_type",
    "billing_date",
    "recurring_amount",
    "frequency",
    "cycles",
    "subscription_notify_email",
    "subscription_notify_webhook",
    "subscription_notify_buyer",
)

API_SIGNATURE_EXCLUDED = frozenset({"signature", "testing"})

# Characters left untouched by a browser's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def encode_component(value: Any) -> str:
    """Percent-encode a value the way encodeURIComponent does."""
    return quote(_to_text(value), safe=_URI_COMPONENT_SAFE)


def pf_encode(value: Any) -> str:
    """Form-encode a trimmed value: encodeURIComponent with ``%20`` -> ``+``."""
    return encode_component(_to_text(value).strip()).replace("%20", "+")


def md5_hex(param_string: str) -> str:
    return hashlib.md5(param_string.encode("utf-8")).hexdigest()


def _with_passphrase(param_string: str, passphrase: Optional[str]) -> str:
    if passphrase:
        return f"{param_string}&passphrase={pf_encode(passphrase)}"
    return param_string


def generate_signature(
    fields: Mapping[str, Any], passphrase: Optional[str] = None
) -> str:
    """Sign payment-initiation fields in PayFast's fixed order.

    Missing, ``None`` and empty-string values are skipped entirely;
    ``0`` and ``False`` are real values and are signed.
    """
    pairs = [
        f"{key}={pf_encode(fields[key])}"
        for key in INITIATE_SIGNATURE_FIELDS
        if key in fields and _is_present(fields[key])
    ]
    return md5_hex(_with_passphrase("&".join(pairs), passphrase))


def generate_api_signature(
    fields: Mapping[str, Any], passphrase: Optional[str] = None
) -> str:
    """Sign subscription API headers (alphabetical key order)."""
    data = {k: v for k, v in fields.items() if k not in API_SIGNATURE_EXCLUDED}
    if passphrase is not None:
        data["passphrase"] = passphrase

    param_string = "&".join(
        f"{encode_component(key)}={encode_component(data[key])}"
        for key in sorted(data)
    )
    return md5_hex(param_string)


def build_param_string(raw_pairs: Iterable[Tuple[str, str]]) -> str:
    """Canonical ITN string: inbound pairs in arrival order, minus ``signature``."""
    return "&".join(
        f"{key}={pf_encode(value)}" for key, value in raw_pairs if key != "signature"
    )


def verify_signature(
    fields: Mapping[str, Any],
    param_string: str,
    passphrase: Optional[str] = None,
) -> bool:
    """Recompute the digest over ``param_string`` and compare to ``fields['signature']``."""
    expected = md5_hex(_with_passphrase(param_string, passphrase))
    received = fields.get("signature")
    if not isinstance(received, str):
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))
