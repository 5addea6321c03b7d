"""
Carrier id prefixes

Every rate id and order id an adapter hands out starts with its carrier's
tag, so a follow-up call (create order from a rate, cancel an order) can be
routed back to the right carrier without any stored state. Matching is a
literal, case-sensitive prefix test.
"""
from typing import Dict

FREIGHTCOM = "freightcom"
CANADAPOST = "canadapost"
PUROLATOR = "purolator"
UNKNOWN_CARRIER = "unknown"

CARRIER_PREFIXES: Dict[str, str] = {
    FREIGHTCOM: "fc-",
    CANADAPOST: "cp-",
    PUROLATOR: "puro-",
}


def _carrier_from_id(value: str) -> str:
    for carrier, prefix in CARRIER_PREFIXES.items():
        if value and value.startswith(prefix):
            return carrier
    return UNKNOWN_CARRIER


def carrier_from_rate_id(rate_id: str) -> str:
    """'fc-101-abc' -> 'freightcom'; anything unrecognised -> 'unknown'."""
    return _carrier_from_id(rate_id)


def carrier_from_order_id(order_id: str) -> str:
    return _carrier_from_id(order_id)


def with_prefix(carrier: str, raw_id: str) -> str:
    """Tag ``raw_id`` with ``carrier``'s prefix unless it already has it."""
    prefix = CARRIER_PREFIXES[carrier]
    if raw_id.startswith(prefix):
        return raw_id
    return f"{prefix}{raw_id}"


def strip_prefix(carrier: str, tagged_id: str) -> str:
    """Inverse of ``with_prefix``; ids without the prefix pass through."""
    prefix = CARRIER_PREFIXES[carrier]
    if tagged_id.startswith(prefix):
        return tagged_id[len(prefix):]
    return tagged_id
