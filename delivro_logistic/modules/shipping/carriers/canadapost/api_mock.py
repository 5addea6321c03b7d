"""
Mock Canada Post API client with canned rate-v4 / shipment-v8 style data.
"""
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from delivro_logistic.modules.shipping.carriers.canadapost.api import (
    CARRIER_NAME,
    CanadaPostAPIClient,
    LabelResponse,
    Link,
    Rate,
    RatesRequest,
    RatesResponse,
    ShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
    VoidResponse,
    WireTrackingEvent,
)
from delivro_logistic.modules.shipping.carriers.mock_transport import (
    MockTransportBase,
    random_digits,
)
from delivro_logistic.modules.shipping.models import utcnow

MOCK_LABEL_DATA = b"%PDF-1.4 mock label data"

# (service_code, service_name, base, fuel, tax, total, days, guaranteed)
MOCK_RATES = [
    ("DOM.RP", "Regular Parcel", 9.99, 1.20, 1.46, 12.65, 5, False),
    ("DOM.XP", "Xpresspost", 19.99, 2.40, 2.91, 25.30, 2, True),
    ("DOM.PC", "Priority", 34.99, 4.20, 5.10, 44.29, 1, True),
]


class MockCanadaPostAPIClient(MockTransportBase, CanadaPostAPIClient):
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

    async def get_label(self, shipment_id: str, media_type: str) -> LabelResponse:
        return await self._run("get_label", self.on_get_label, self._default_label, shipment_id, media_type)

    async def void_shipment(self, shipment_id: str) -> VoidResponse:
        return await self._run("void_shipment", self.on_void_shipment, self._default_void, shipment_id)

    async def get_tracking(self, tracking_pin: str) -> TrackingResponse:
        return await self._run("get_tracking", self.on_get_tracking, self._default_tracking, tracking_pin)

    # ==================== Canned responses ====================

    def _default_rates(self, request: RatesRequest) -> RatesResponse:
        now = utcnow()
        rates = [
            Rate(
                service_code=code,
                service_name=name,
                base_rate=base,
                fuel_surcharge=fuel,
                taxes=tax,
                total_price=total,
                expected_transit=days,
                expected_delivery=(now + timedelta(days=days)).strftime("%Y-%m-%d"),
                guaranteed_delivery=guaranteed,
            )
            for (code, name, base, fuel, tax, total, days, guaranteed) in MOCK_RATES
        ]
        return RatesResponse(quote_id=f"cp-quote-{random_digits(10)}", rates=rates)

    def _default_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        shipment_id = random_digits(16)
        tracking_pin = random_digits(16)
        return ShipmentResponse(
            shipment_id=shipment_id,
            tracking_pin=tracking_pin,
            shipment_status="created",
            service_name="Regular Parcel",
            total_charged=12.65,
            expected_delivery=(utcnow() + timedelta(days=5)).strftime("%Y-%m-%d"),
            links=[
                Link(
                    rel="label",
                    href=f"https://api.canadapost.ca/rs/artifact/{shipment_id}/label",
                    media_type="application/pdf",
                ),
                Link(
                    rel="tracking",
                    href=f"https://www.canadapost-postescanada.ca/track-reperage/en#/search?searchFor={tracking_pin}",
                ),
            ],
        )

    def _default_label(self, shipment_id: str, media_type: str) -> LabelResponse:
        return LabelResponse(
            shipment_id=shipment_id,
            media_type=media_type or "application/pdf",
            data=MOCK_LABEL_DATA,
        )

    def _default_void(self, shipment_id: str) -> VoidResponse:
        return VoidResponse(shipment_id=shipment_id, status="voided")

    def _default_tracking(self, tracking_pin: str) -> TrackingResponse:
        now = utcnow()
        return TrackingResponse(
            tracking_pin=tracking_pin,
            status="in_transit",
            events=[
                WireTrackingEvent(
                    timestamp=(now - timedelta(hours=48)).isoformat(),
                    description="Item accepted at post office",
                    location="Toronto, ON",
                    type="accepted",
                ),
                WireTrackingEvent(
                    timestamp=(now - timedelta(hours=24)).isoformat(),
                    description="Item in transit",
                    location="Mississauga, ON",
                    type="in_transit",
                ),
            ],
        )
