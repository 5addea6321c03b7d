"""
Mock Purolator API client with canned estimating / shipping data.
"""
import time
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from delivro_logistic.modules.shipping.carriers.mock_transport import MockTransportBase, random_hex
from delivro_logistic.modules.shipping.carriers.purolator.api import (
    CARRIER_NAME,
    DocumentLink,
    LabelResponse,
    PurolatorAPIClient,
    RatesRequest,
    RatesResponse,
    ShipmentRate,
    ShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
    VoidResponse,
    WireTrackingEvent,
)
from delivro_logistic.modules.shipping.models import utcnow

MOCK_LABEL_DATA = b"%PDF-1.4 mock purolator label data"

# (service_code, service_name, base, fuel, tax, total, days, guaranteed)
MOCK_RATES = [
    ("PurolatorGround", "Purolator Ground", 16.75, 2.01, 2.44, 21.20, 5, False),
    ("PurolatorExpress", "Purolator Express", 28.50, 3.42, 4.15, 36.07, 2, True),
    ("PurolatorExpress9AM", "Purolator Express 9AM", 45.00, 5.40, 6.55, 56.95, 1, True),
]


class MockPurolatorAPIClient(MockTransportBase, PurolatorAPIClient):
    carrier_name = CARRIER_NAME

    def __init__(self, simulate_errors: bool = False, simulate_latency: float = 0.0):
        super().__init__(simulate_errors=simulate_errors, simulate_latency=simulate_latency)
        self.on_get_rates: Optional[Callable[[RatesRequest], Awaitable[RatesResponse]]] = None
        self.on_create_shipment: Optional[Callable[[ShipmentRequest], Awaitable[ShipmentResponse]]] = None
        self.on_get_label: Optional[Callable[[str, str], Awaitable[LabelResponse]]] = None
        self.on_void_shipment: Optional[Callable[[str], Awaitable[VoidResponse]]] = None
        self.on_get_tracking: Optional[Callable[[str], Awaitable[TrackingResponse]]] = None

    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        return await self._run("get_rates", self.on_get_rates, self._default_rates, request)

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        return await self._run("create_shipment", self.on_create_shipment, self._default_shipment, request)

    async def get_label(self, shipment_pin: str, label_format: str) -> LabelResponse:
        return await self._run("get_label", self.on_get_label, self._default_label, shipment_pin, label_format)

    async def void_shipment(self, shipment_pin: str) -> VoidResponse:
        return await self._run("void_shipment", self.on_void_shipment, self._default_void, shipment_pin)

    async def get_tracking(self, tracking_pin: str) -> TrackingResponse:
        return await self._run("get_tracking", self.on_get_tracking, self._default_tracking, tracking_pin)

    # ==================== Canned responses ====================

    def _default_rates(self, request: RatesRequest) -> RatesResponse:
        now = utcnow()
        rates = [
            ShipmentRate(
                service_code=code,
                service_name=name,
                base_price=base,
                fuel_surcharge=fuel,
                taxes=tax,
                total_price=total,
                expected_delivery_date=(now + timedelta(days=days)).strftime("%Y-%m-%d"),
                estimated_transit_days=days,
                guaranteed_delivery=guaranteed,
            )
            for (code, name, base, fuel, tax, total, days, guaranteed) in MOCK_RATES
        ]
        return RatesResponse(quote_id=f"quote-{random_hex()}", shipment_rates=rates)

    def _default_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        shipment_pin = f"ship-{random_hex()}"
        tracking_number = f"329{time.time_ns() % 1_000_000_000_000:012d}"
        return ShipmentResponse(
            shipment_pin=shipment_pin,
            tracking_number=tracking_number,
            total_price=21.20,
            expected_delivery_date=(utcnow() + timedelta(days=5)).strftime("%Y-%m-%d"),
            piece_pins=[tracking_number],
            document_links=[
                DocumentLink(type="Label", url=f"https://eship.purolator.com/shipment/{shipment_pin}/label.pdf"),
            ],
        )

    def _default_label(self, shipment_pin: str, label_format: str) -> LabelResponse:
        return LabelResponse(
            shipment_pin=shipment_pin,
            format=label_format or "application/pdf",
            data=MOCK_LABEL_DATA,
        )

    def _default_void(self, shipment_pin: str) -> VoidResponse:
        return VoidResponse(shipment_pin=shipment_pin, status="voided", message="Shipment successfully voided")

    def _default_tracking(self, tracking_pin: str) -> TrackingResponse:
        now = utcnow()
        return TrackingResponse(
            tracking_pin=tracking_pin,
            status="InTransit",
            delivery_status="On Schedule",
            events=[
                WireTrackingEvent(
                    timestamp=(now - timedelta(hours=24)).isoformat(),
                    description="In transit to destination",
                    location="Mississauga, ON",
                    type="InTransit",
                ),
                WireTrackingEvent(
                    timestamp=(now - timedelta(hours=48)).isoformat(),
                    description="Picked up by Purolator",
                    location="Toronto, ON",
                    type="PickedUp",
                ),
            ],
        )
