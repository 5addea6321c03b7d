"""
Shared harness for the mock carrier transports.

Each carrier ships a mock API client with canned, internally consistent
responses. They all behave the same way around the canned data:

1. ``simulate_latency`` seconds are awaited first
2. ``simulate_errors`` turns every call into a MOCK_ERROR
3. an ``on_<operation>`` override, if set, replaces the canned response
"""
import asyncio
import inspect
import logging
import secrets
from typing import Any, Callable, Optional

from delivro_logistic.core.exceptions import CarrierError, MOCK_ERROR

logger = logging.getLogger(__name__)


def random_hex(n_bytes: int = 4) -> str:
    return secrets.token_hex(n_bytes)


def random_digits(length: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


class MockTransportBase:
    """Latency, error injection and per-operation overrides."""

    carrier_name = "mock"

    def __init__(self, simulate_errors: bool = False, simulate_latency: float = 0.0):
        self.simulate_errors = simulate_errors
        self.simulate_latency = simulate_latency
        self.calls: list = []

    async def _run(self, operation: str, override: Optional[Callable[..., Any]], default: Callable[..., Any], *args: Any) -> Any:
        self.calls.append(operation)

        if self.simulate_latency > 0:
            await asyncio.sleep(self.simulate_latency)

        if self.simulate_errors:
            logger.debug(f"[{self.carrier_name} mock] simulated error for {operation}")
            raise CarrierError(self.carrier_name, code=MOCK_ERROR, message="Simulated API error")

        handler = override or default
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
