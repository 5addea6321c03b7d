"""
Mock Freightcom API client.

Returns completed responses immediately (no polling). Rate totals equal
base + fuel + tax.
"""
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from delivro_logistic.modules.shipping.carriers.freightcom.api import (
    CARRIER_NAME,
    CancelResponse,
    FreightcomAPIClient,
    LabelResponse,
    Rate,
    RatesRequest,
    RatesResponse,
    ShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
    WireLabel,
    WireTrackingEvent,
)
from delivro_logistic.modules.shipping.carriers.mock_transport import (
    MockTransportBase,
    random_digits,
    random_hex,
)
from delivro_logistic.modules.shipping.models import utcnow

# (service_id, carrier_code, carrier_name, service_code, service_name, base, fuel, tax, total, days, guaranteed)
MOCK_RATES = [
    (101, "fedex", "FedEx", "FEDEX_GROUND", "FedEx Ground", 15.99, 1.92, 2.33, 20.24, 3, False),
    (102, "fedex", "FedEx", "FEDEX_EXPRESS_SAVER", "FedEx Express Saver", 28.99, 3.48, 4.22, 36.69, 2, True),
    (201, "ups", "UPS", "UPS_GROUND", "UPS Ground", 14.50, 1.74, 2.11, 18.35, 4, False),
]


class MockFreightcomAPIClient(MockTransportBase, FreightcomAPIClient):
    carrier_name = CARRIER_NAME

    def __init__(self, simulate_errors: bool = False, simulate_latency: float = 0.0):
        super().__init__(simulate_errors=simulate_errors, simulate_latency=simulate_latency)
        self.on_get_rates: Optional[Callable[[RatesRequest], Awaitable[RatesResponse]]] = None
        self.on_create_shipment: Optional[Callable[[ShipmentRequest], Awaitable[ShipmentResponse]]] = None
        self.on_get_label: Optional[Callable[[str, str], Awaitable[LabelResponse]]] = None
        self.on_cancel_shipment: Optional[Callable[[str, str], Awaitable[CancelResponse]]] = None
        self.on_get_tracking: Optional[Callable[[str], Awaitable[TrackingResponse]]] = None

    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        return await self._run("get_rates", self.on_get_rates, self._default_rates, request)

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        return await self._run("create_shipment", self.on_create_shipment, self._default_shipment, request)

    async def get_label(self, shipment_id: str, label_format: str) -> LabelResponse:
        return await self._run("get_label", self.on_get_label, self._default_label, shipment_id, label_format)

    async def cancel_shipment(self, shipment_id: str, reason: str = "") -> CancelResponse:
        return await self._run("cancel_shipment", self.on_cancel_shipment, self._default_cancel, shipment_id, reason)

    async def get_tracking(self, shipment_id: str) -> TrackingResponse:
        return await self._run("get_tracking", self.on_get_tracking, self._default_tracking, shipment_id)

    # ==================== Canned responses ====================

    def _default_rates(self, request: RatesRequest) -> RatesResponse:
        now = utcnow()
        expires_at = (now + timedelta(minutes=30)).isoformat()
        rates = [
            Rate(
                id=f"rate-{random_hex()}",
                service_id=service_id,
                carrier_code=carrier_code,
                carrier_name=carrier_name,
                service_code=service_code,
                service_name=service_name,
                base_rate=base,
                fuel_surcharge=fuel,
                total_tax=tax,
                total_price=total,
                currency="CAD",
                transit_days=days,
                estimated_delivery=(now + timedelta(days=days)).strftime("%Y-%m-%d"),
                guaranteed=guaranteed,
                expires_at=expires_at,
            )
            for (service_id, carrier_code, carrier_name, service_code, service_name,
                 base, fuel, tax, total, days, guaranteed) in MOCK_RATES
        ]
        return RatesResponse(request_id=f"req-{random_hex()}", status="complete", rates=rates)

    def _default_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        shipment_id = f"ship-{random_hex()}"
        tracking_number = random_digits(12)
        return ShipmentResponse(
            id=shipment_id,
            unique_id=request.unique_id,
            status="booked",
            tracking_numbers=[tracking_number],
            tracking_url=f"https://www.fedex.com/fedextrack/?trknbr={tracking_number}",
            carrier_code="fedex",
            service_name="FedEx Ground",
            total_charged=20.24,
            currency="CAD",
            estimated_delivery=(utcnow() + timedelta(days=3)).strftime("%Y-%m-%d"),
            labels=[
                WireLabel(
                    size="4x6",
                    format="pdf",
                    url=f"https://api.freightcom.com/shipment/{shipment_id}/label.pdf",
                )
            ],
        )

    def _default_label(self, shipment_id: str, label_format: str) -> LabelResponse:
        label_format = label_format or "pdf"
        return LabelResponse(
            shipment_id=shipment_id,
            labels=[
                WireLabel(
                    size="4x6",
                    format=label_format,
                    url=f"https://api.freightcom.com/shipment/{shipment_id}/label.{label_format}",
                )
            ],
        )

    def _default_cancel(self, shipment_id: str, reason: str) -> CancelResponse:
        return CancelResponse(
            shipment_id=shipment_id,
            status="cancelled",
            refund_amount=20.24,
            currency="CAD",
            confirmation_number=f"CANCEL-{random_digits(6)}",
        )

    def _default_tracking(self, shipment_id: str) -> TrackingResponse:
        now = utcnow()
        return TrackingResponse(
            shipment_id=shipment_id,
            tracking_number="123456789012",
            status="in_transit",
            events=[
                WireTrackingEvent(
                    timestamp=(now - timedelta(hours=48)).isoformat(),
                    description="Shipment picked up",
                    location="Toronto, ON",
                    status="picked_up",
                    code="PU",
                ),
                WireTrackingEvent(
                    timestamp=(now - timedelta(hours=24)).isoformat(),
                    description="In transit to destination",
                    location="Mississauga, ON",
                    status="in_transit",
                    code="IT",
                ),
            ],
        )
