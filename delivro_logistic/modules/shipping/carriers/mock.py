"""
Generic mock carrier.

Deterministic stand-in used for non-production deployments and registry
tests. Any name works; ids are tagged with ``"{name}-"``.
"""
import time
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from delivro_logistic.modules.shipping.carriers.base import BaseCarrier
from delivro_logistic.modules.shipping.models import (
    CancelOrderRequest,
    CancelOrderResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    GetLabelRequest,
    GetLabelResponse,
    Label,
    LabelFormat,
    Money,
    QuoteRequest,
    QuoteResponse,
    RateOption,
    ServiceType,
    ShipmentStatus,
    utcnow,
)

QUOTE_TTL = timedelta(minutes=30)


class MockCarrier(BaseCarrier):
    """
    A carrier that always answers from canned data.

    Set ``on_get_quote`` (etc.) to an async callable to replace an
    operation's behaviour, e.g. to make one carrier fail in a fan-out test.
    """

    def __init__(self, name: str):
        self._name = name
        self.on_get_quote: Optional[Callable[[QuoteRequest], Awaitable[QuoteResponse]]] = None
        self.on_create_order: Optional[Callable[[CreateOrderRequest], Awaitable[CreateOrderResponse]]] = None
        self.on_get_label: Optional[Callable[[GetLabelRequest], Awaitable[GetLabelResponse]]] = None
        self.on_cancel_order: Optional[Callable[[CancelOrderRequest], Awaitable[CancelOrderResponse]]] = None

    @property
    def name(self) -> str:
        return self._name

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        if self.on_get_quote:
            return await self.on_get_quote(request)

        now = utcnow()
        stamp = time.time_ns()
        expires_at = now + QUOTE_TTL
        return QuoteResponse(
            quote_id=f"{self._name}-quote-{stamp}",
            expires_at=expires_at,
            rates=[
                RateOption(
                    rate_id=f"{self._name}-rate-standard-{stamp}",
                    carrier=self._name,
                    service_code="STANDARD",
                    service_name=f"{self._name} Standard",
                    service_type=ServiceType.STANDARD,
                    base_rate=Money("12.50"),
                    fuel_surcharge=Money("1.50"),
                    taxes=Money("1.82"),
                    total_price=Money("15.82"),
                    transit_days=5,
                    estimated_delivery=now + timedelta(days=5),
                    expires_at=expires_at,
                ),
                RateOption(
                    rate_id=f"{self._name}-rate-express-{stamp}",
                    carrier=self._name,
                    service_code="EXPRESS",
                    service_name=f"{self._name} Express",
                    service_type=ServiceType.EXPRESS,
                    base_rate=Money("24.00"),
                    fuel_surcharge=Money("2.50"),
                    taxes=Money("3.45"),
                    total_price=Money("29.95"),
                    transit_days=2,
                    estimated_delivery=now + timedelta(days=2),
                    expires_at=expires_at,
                    guaranteed=True,
                ),
            ],
        )

    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        if self.on_create_order:
            return await self.on_create_order(request)

        stamp = time.time_ns()
        order_id = f"{self._name}-order-{stamp}"
        tracking_number = f"1Z{self._name[:3].upper()}{stamp % 1_000_000_000}"
        return CreateOrderResponse(
            order_id=order_id,
            tracking_number=tracking_number,
            tracking_url=f"https://track.{self._name}.mock/track/{tracking_number}",
            status=ShipmentStatus.CONFIRMED,
            carrier=self._name,
            service_name=f"{self._name} Standard",
            total_charged=Money("15.82"),
            estimated_delivery=utcnow() + timedelta(days=5),
            label_url=f"https://labels.{self._name}.mock/{order_id}.pdf",
        )

    async def get_label(self, request: GetLabelRequest) -> GetLabelResponse:
        if self.on_get_label:
            return await self.on_get_label(request)

        label_format = LabelFormat(request.format or LabelFormat.PDF)
        return GetLabelResponse(
            order_id=request.order_id,
            label=Label(
                format=label_format,
                url=f"https://labels.{self._name}.mock/{request.order_id}.{label_format.value}",
            ),
        )

    async def cancel_order(self, request: CancelOrderRequest) -> CancelOrderResponse:
        if self.on_cancel_order:
            return await self.on_cancel_order(request)

        return CancelOrderResponse(
            order_id=request.order_id,
            status=ShipmentStatus.CANCELLED,
            refund_amount=Money("15.82"),
            confirmation_number=f"CANCEL-{time.time_ns()}",
        )
