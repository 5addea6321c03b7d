"""
Multi-Carrier Shipping Service v1.0.0

- Aggregates quotes from every registered carrier (or a chosen subset)
- Returns one combined rate list sorted by price, plus per-carrier errors
- Routes order, label, cancel and tracking calls to the carrier that
  issued the rate / order id, using the id prefix

Usage:
    service = MultiCarrierService(build_registry())
    quote = await service.get_quotes(request)
    order = await service.create_order(CreateOrderRequest(rate_id=quote.rates[0].rate_id, ...))
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from delivro_logistic.core.exceptions import CarrierNotFoundError
from delivro_logistic.modules.shipping.carriers.base import BaseCarrier
from delivro_logistic.modules.shipping.carriers.ids import (
    UNKNOWN_CARRIER,
    carrier_from_order_id,
    carrier_from_rate_id,
)
from delivro_logistic.modules.shipping.carriers.registry import CarrierRegistry
from delivro_logistic.modules.shipping.models import (
    CancelOrderRequest,
    CancelOrderResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    GetLabelRequest,
    GetLabelResponse,
    QuoteRequest,
    RateOption,
    TrackingRequest,
    TrackingResponse,
)

logger = logging.getLogger(__name__)


@dataclass
class MultiCarrierQuote:
    """Rates merged across carriers, cheapest first."""
    quote_id: str
    rates: List[RateOption] = field(default_factory=list)
    expires_at: Optional[datetime] = None
    errors: List[Exception] = field(default_factory=list)

    @property
    def carriers(self) -> List[str]:
        return list(dict.fromkeys(rate.carrier for rate in self.rates))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote_id": self.quote_id,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "rates": [
                {
                    "rate_id": rate.rate_id,
                    "carrier": rate.carrier,
                    "service_code": rate.service_code,
                    "service_name": rate.service_name,
                    "service_type": rate.service_type.value,
                    "total_price": str(rate.total_price.amount),
                    "currency": rate.total_price.currency,
                    "transit_days": rate.transit_days,
                    "guaranteed": rate.guaranteed,
                }
                for rate in self.rates
            ],
            "errors": [str(error) for error in self.errors],
        }


class MultiCarrierService:
    """
    Service for multi-carrier shipping operations.

    Quotes fan out through the registry; everything after a quote is sent
    to exactly one carrier, picked from the id the caller hands back.
    """

    def __init__(self, registry: CarrierRegistry):
        self.registry = registry

    def _carrier_for(self, carrier_name: str, tagged_id: str) -> BaseCarrier:
        if carrier_name == UNKNOWN_CARRIER:
            raise CarrierNotFoundError(message=f"no carrier owns id {tagged_id!r}")
        return self.registry.get(carrier_name)

    async def get_quotes(self, request: QuoteRequest) -> MultiCarrierQuote:
        """
        Quote every requested carrier and merge the results.

        Carrier failures never raise; they come back in ``errors``.
        """
        responses, errors = await self.registry.get_quotes_from_carriers(request, request.options.carriers)

        wanted = set(request.options.service_types)
        rates = [
            rate
            for response in responses
            for rate in response.rates
            if not wanted or rate.service_type in wanted
        ]
        rates.sort(key=lambda r: r.total_price.amount)

        expiries = [r.expires_at for r in responses if r.expires_at is not None]
        quote = MultiCarrierQuote(
            quote_id=f"mq-{uuid.uuid4().hex}",
            rates=rates,
            expires_at=min(expiries) if expiries else None,
            errors=errors,
        )
        logger.info(
            f"Multi-carrier quote {quote.quote_id}: {len(rates)} rates from "
            f"{len(responses)} carrier(s), {len(errors)} error(s)"
        )
        return quote

    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        carrier = self._carrier_for(carrier_from_rate_id(request.rate_id), request.rate_id)
        logger.info(f"Creating order with {carrier.name} for rate {request.rate_id}")
        return await carrier.create_order(request)

    async def get_label(self, request: GetLabelRequest) -> GetLabelResponse:
        carrier = self._carrier_for(carrier_from_order_id(request.order_id), request.order_id)
        return await carrier.get_label(request)

    async def cancel_order(self, request: CancelOrderRequest) -> CancelOrderResponse:
        carrier = self._carrier_for(carrier_from_order_id(request.order_id), request.order_id)
        logger.info(f"Cancelling order {request.order_id} with {carrier.name}")
        return await carrier.cancel_order(request)

    async def get_tracking(self, request: TrackingRequest) -> TrackingResponse:
        carrier = self._carrier_for(carrier_from_order_id(request.order_id), request.order_id)
        return await carrier.get_tracking(request)
