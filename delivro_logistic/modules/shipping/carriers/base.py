"""
Base Carrier Interface v1.0.0

- All carriers implement this interface
- Each carrier provides its own:
  - Rate quoting
  - Order (shipment) creation
  - Label retrieval
  - Cancellation
  - Tracking
  - Status mapping
- Live and mock transports are chosen at construction time; callers
  only ever see BaseCarrier.

Cancellation: every operation is a coroutine, so cancelling the awaiting
task aborts the in-flight carrier call. Deadlines are set by the caller
(``asyncio.timeout`` / ``asyncio.wait_for``).
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Union

from delivro_logistic.core.exceptions import CarrierError, NOT_SUPPORTED, PARSE_ERROR
from delivro_logistic.modules.shipping.models import (
    DEFAULT_CURRENCY,
    CancelOrderRequest,
    CancelOrderResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    GetLabelRequest,
    GetLabelResponse,
    Money,
    QuoteRequest,
    QuoteResponse,
    TrackingRequest,
    TrackingResponse,
)


def wire_money(carrier: str, amount: Union[Decimal, float, str], currency: str = DEFAULT_CURRENCY) -> Money:
    """Money from a carrier-reported amount. Negative or non-numeric amounts are PARSE_ERROR."""
    try:
        return Money(amount, currency)
    except (ValueError, TypeError, ArithmeticError) as e:
        raise CarrierError(
            carrier, code=PARSE_ERROR, message=f"invalid amount from carrier: {amount!r}", cause=e,
        )


class BaseCarrier(ABC):
    """
    Abstract base class for all carrier implementations.

    Every adapter must:
    1. Expose a stable ``name`` (its registry key)
    2. Implement the four capability operations
    3. Prefix the rate ids and order ids it returns with its carrier tag
    4. Raise CarrierError (never a transport exception) on failure
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key, e.g. 'freightcom'."""
        pass

    @abstractmethod
    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        """Get shipping rates for the given route and packages."""
        pass

    @abstractmethod
    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        """Book a shipment for a previously quoted rate."""
        pass

    @abstractmethod
    async def get_label(self, request: GetLabelRequest) -> GetLabelResponse:
        """Fetch the shipping label for an order."""
        pass

    @abstractmethod
    async def cancel_order(self, request: CancelOrderRequest) -> CancelOrderResponse:
        """Cancel (void) an order."""
        pass

    async def get_tracking(self, request: TrackingRequest) -> TrackingResponse:
        """Tracking history for an order. Optional capability."""
        raise CarrierError(self.name, code=NOT_SUPPORTED, message="tracking not supported")

    async def close(self) -> None:
        """Release transport resources."""
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
