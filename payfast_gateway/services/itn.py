"""
ITN normaliser: maps an inbound PayFast notification onto the closed
``ITNPayload`` field set.
"""

from typing import Mapping

from payfast_gateway.schemas.payfast import ITNPayload

ITN_FIELDS = tuple(ITNPayload.model_fields)


def create_itn_payload(raw: Mapping[str, str]) -> ITNPayload:
    """Pick the known ITN fields out of an inbound form; absent or empty -> ''."""
    return ITNPayload(**{field: raw.get(field) or "" for field in ITN_FIELDS})
