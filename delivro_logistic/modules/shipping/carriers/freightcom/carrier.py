"""
Freightcom Carrier Implementation v1.0.0

- Implements BaseCarrier over the Freightcom rate aggregator
- Registered via @register_carrier decorator
- Live (HTTP, submit-then-poll) or mock transport chosen by config.use_mock
- Rate ids embed Freightcom's numeric service id: fc-{service_id}-{rate id}
"""
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from delivro_logistic.core.exceptions import CarrierError, LabelNotAvailableError
from delivro_logistic.core.utils import parse_date, parse_timestamp
from delivro_logistic.modules.shipping.carriers import register_carrier
from delivro_logistic.modules.shipping.carriers.base import BaseCarrier, wire_money
from delivro_logistic.modules.shipping.carriers.freightcom.api import (
    CARRIER_NAME,
    CancelResponse,
    FreightcomAPIClient,
    LabelResponse,
    Location,
    PackagingInfo,
    RatesRequest,
    RatesResponse,
    ShipmentRequest,
    ShipmentResponse,
    ShippingDetails,
    TrackingResponse as WireTrackingResponse,
    WireContact,
    WirePackage,
)
from delivro_logistic.modules.shipping.carriers.freightcom.api_http import HTTPFreightcomAPIClient
from delivro_logistic.modules.shipping.carriers.freightcom.api_mock import MockFreightcomAPIClient
from delivro_logistic.modules.shipping.carriers.ids import FREIGHTCOM, strip_prefix, with_prefix
from delivro_logistic.modules.shipping.models import (
    Address,
    CancelOrderRequest,
    CancelOrderResponse,
    Contact,
    CreateOrderRequest,
    CreateOrderResponse,
    GetLabelRequest,
    GetLabelResponse,
    Label,
    LabelFormat,
    Package,
    QuoteRequest,
    QuoteResponse,
    RateOption,
    ServiceType,
    ShipmentStatus,
    TrackingEvent,
    TrackingRequest,
    TrackingResponse,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.freightcom.com/v1"
DEFAULT_SERVICE_ID = 101
QUOTE_TTL = timedelta(minutes=30)

RATE_ID_PATTERN = re.compile(r"^fc-(\d+)-")

FREIGHTCOM_SERVICE_TYPE_MAP = {
    "GROUND": ServiceType.STANDARD,
    "STANDARD": ServiceType.STANDARD,
    "FEDEX_GROUND": ServiceType.STANDARD,
    "UPS_GROUND": ServiceType.STANDARD,
    "EXPRESS": ServiceType.EXPRESS,
    "FEDEX_EXPRESS_SAVER": ServiceType.EXPRESS,
    "UPS_EXPRESS_SAVER": ServiceType.EXPRESS,
    "PRIORITY": ServiceType.PRIORITY,
    "FEDEX_PRIORITY_OVERNIGHT": ServiceType.PRIORITY,
    "UPS_NEXT_DAY_AIR": ServiceType.PRIORITY,
    "OVERNIGHT": ServiceType.OVERNIGHT,
    "FEDEX_STANDARD_OVERNIGHT": ServiceType.OVERNIGHT,
    "ECONOMY": ServiceType.ECONOMY,
    "FEDEX_ECONOMY": ServiceType.ECONOMY,
    "FREIGHT": ServiceType.FREIGHT,
    "LTL": ServiceType.FREIGHT,
}

FREIGHTCOM_STATUS_MAP = {
    "pending": ShipmentStatus.PENDING,
    "processing": ShipmentStatus.PENDING,
    "quoted": ShipmentStatus.QUOTED,
    "confirmed": ShipmentStatus.CONFIRMED,
    "booked": ShipmentStatus.CONFIRMED,
    "complete": ShipmentStatus.CONFIRMED,
    "assigned": ShipmentStatus.ASSIGNED,
    "picked_up": ShipmentStatus.PICKED_UP,
    "in_transit": ShipmentStatus.IN_TRANSIT,
    "out_for_delivery": ShipmentStatus.OUT_FOR_DELIVERY,
    "delivered": ShipmentStatus.DELIVERED,
    "cancelled": ShipmentStatus.CANCELLED,
    "exception": ShipmentStatus.EXCEPTION,
    "error": ShipmentStatus.EXCEPTION,
    "failed": ShipmentStatus.EXCEPTION,
}


def map_service_type(service_code: str) -> ServiceType:
    return FREIGHTCOM_SERVICE_TYPE_MAP.get((service_code or "").upper(), ServiceType.STANDARD)


def map_status(status: str) -> ShipmentStatus:
    return FREIGHTCOM_STATUS_MAP.get((status or "").lower(), ShipmentStatus.PENDING)


def map_label_format(label_format: str) -> LabelFormat:
    try:
        return LabelFormat((label_format or "").lower())
    except ValueError:
        return LabelFormat.PDF


def build_rate_id(service_id: int, rate_id: str) -> str:
    return with_prefix(FREIGHTCOM, f"{service_id}-{rate_id}")


def extract_service_id(rate_id: str) -> int:
    """Service id embedded in a rate id; 101 (FedEx Ground) when absent."""
    match = RATE_ID_PATTERN.match(rate_id or "")
    if match:
        return int(match.group(1))
    return DEFAULT_SERVICE_ID


@dataclass
class FreightcomConfig:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    payment_method_id: Optional[str] = None
    use_mock: bool = False
    timeout: float = 30.0
    poll_interval: float = 0.5
    poll_timeout: float = 30.0


@register_carrier(FREIGHTCOM)
class FreightcomCarrier(BaseCarrier):
    """
    Freightcom shipping carrier.

    Quotes come back for several underlying carriers (FedEx, UPS, ...);
    they are all reported under the freightcom registry name.
    """

    def __init__(self, config: FreightcomConfig, api_client: Optional[FreightcomAPIClient] = None):
        self.config = config
        if api_client is None:
            if config.use_mock:
                logger.info("[Freightcom] Using mock API client")
                api_client = MockFreightcomAPIClient()
            else:
                api_client = HTTPFreightcomAPIClient(
                    base_url=config.base_url,
                    api_key=config.api_key,
                    timeout=config.timeout,
                    poll_interval=config.poll_interval,
                    poll_timeout=config.poll_timeout,
                )
        self.api_client = api_client

    @classmethod
    def with_api_client(cls, config: FreightcomConfig, api_client: FreightcomAPIClient) -> "FreightcomCarrier":
        return cls(config, api_client=api_client)

    @classmethod
    def from_settings(cls, settings) -> "FreightcomCarrier":
        return cls(FreightcomConfig(
            api_key=settings.FREIGHTCOM_API_KEY or "",
            base_url=settings.FREIGHTCOM_BASE_URL,
            payment_method_id=settings.FREIGHTCOM_PAYMENT_METHOD_ID,
            use_mock=settings.FREIGHTCOM_USE_MOCK,
            timeout=settings.CARRIER_HTTP_TIMEOUT_SECONDS,
            poll_interval=settings.FREIGHTCOM_POLL_INTERVAL_SECONDS,
            poll_timeout=settings.FREIGHTCOM_POLL_TIMEOUT_SECONDS,
        ))

    @property
    def name(self) -> str:
        return CARRIER_NAME

    async def close(self) -> None:
        await self.api_client.close()

    # ==================== Conversions ====================

    @staticmethod
    def _to_location(address: Address) -> Location:
        return Location(
            name=address.name,
            company=address.company,
            address_1=address.line1,
            address_2=address.line2,
            city=address.city,
            province=address.province_code,
            postal_code=address.postal_code,
            country=address.country_code,
            phone=address.phone,
            email=address.email,
            residential=address.is_residential,
        )

    @staticmethod
    def _to_packages(packages: List[Package]) -> List[WirePackage]:
        wire = []
        for package in packages:
            length, width, height = package.dimensions_in_cm()
            wire.append(WirePackage(
                length=float(length),
                width=float(width),
                height=float(height),
                weight=float(package.weight_in_kg()),
                description=package.description,
                quantity=1,
            ))
        return wire

    @staticmethod
    def _to_contact(contact: Contact) -> WireContact:
        return WireContact(
            name=contact.name,
            company=contact.company,
            phone=contact.phone,
            email=contact.email,
        )

    def _details(self, origin: Address, destination: Address, packages: List[Package]) -> ShippingDetails:
        return ShippingDetails(
            origin=self._to_location(origin),
            destination=self._to_location(destination),
            packaging=PackagingInfo(type="package", packages=self._to_packages(packages)),
        )

    def _to_quote(self, response: RatesResponse) -> QuoteResponse:
        now = utcnow()
        rates = []
        for rate in response.rates:
            currency = rate.currency or "CAD"
            rates.append(RateOption(
                rate_id=build_rate_id(rate.service_id, rate.id),
                carrier=CARRIER_NAME,
                service_code=rate.service_code,
                service_name=rate.service_name,
                service_type=map_service_type(rate.service_code),
                base_rate=wire_money(CARRIER_NAME, rate.base_rate, currency),
                fuel_surcharge=wire_money(CARRIER_NAME, rate.fuel_surcharge, currency),
                taxes=wire_money(CARRIER_NAME, rate.total_tax, currency),
                total_price=wire_money(CARRIER_NAME, rate.total_price, currency),
                transit_days=rate.transit_days,
                estimated_delivery=parse_date(rate.estimated_delivery),
                expires_at=parse_timestamp(rate.expires_at) or now + QUOTE_TTL,
                guaranteed=rate.guaranteed,
            ))

        expires_at = min((r.expires_at for r in rates), default=now + QUOTE_TTL)
        return QuoteResponse(
            quote_id=with_prefix(FREIGHTCOM, response.request_id or uuid.uuid4().hex[:12]),
            rates=rates,
            expires_at=expires_at,
        )

    def _to_order(self, response: ShipmentResponse) -> CreateOrderResponse:
        return CreateOrderResponse(
            order_id=with_prefix(FREIGHTCOM, response.id),
            tracking_number=response.tracking_numbers[0] if response.tracking_numbers else "",
            tracking_url=response.tracking_url,
            status=map_status(response.status),
            carrier=CARRIER_NAME,
            service_name=response.service_name,
            total_charged=wire_money(CARRIER_NAME, response.total_charged, response.currency),
            estimated_delivery=parse_date(response.estimated_delivery),
            label_url=response.labels[0].url if response.labels else "",
        )

    # ==================== Capability operations ====================

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        logger.info(
            f"[Freightcom] Getting quotes {request.origin.city} -> {request.destination.city} "
            f"({len(request.packages)} package(s))"
        )
        rates_request = RatesRequest(
            details=self._details(request.origin, request.destination, request.packages),
        )
        try:
            response = await self.api_client.get_rates(rates_request)
        except CarrierError as e:
            logger.error(f"[Freightcom] Rate error: {e}")
            raise

        return self._to_quote(response)

    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        logger.info(f"[Freightcom] Creating order for rate {request.rate_id}")

        shipment_request = ShipmentRequest(
            # TODO: persist unique_id per rate so a client-side retry reuses it
            unique_id=request.reference or str(uuid.uuid4()),
            payment_method_id=self.config.payment_method_id,
            service_id=extract_service_id(request.rate_id),
            details=self._details(request.sender_address, request.recipient_address, request.packages),
            sender=self._to_contact(request.sender),
            recipient=self._to_contact(request.recipient),
            reference=request.reference,
            po_number=request.po_number,
            instructions=request.instructions,
        )
        try:
            response = await self.api_client.create_shipment(shipment_request)
        except CarrierError as e:
            logger.error(f"[Freightcom] Shipment error: {e}")
            raise

        order = self._to_order(response)
        logger.info(f"[Freightcom] Created order {order.order_id} ({order.status.value})")
        return order

    async def get_label(self, request: GetLabelRequest) -> GetLabelResponse:
        label_format = LabelFormat(request.format or LabelFormat.PDF)
        shipment_id = strip_prefix(FREIGHTCOM, request.order_id)
        logger.info(f"[Freightcom] Getting {label_format.value} label for {request.order_id}")

        try:
            response: LabelResponse = await self.api_client.get_label(shipment_id, label_format.value)
        except CarrierError as e:
            logger.error(f"[Freightcom] Label error: {e}")
            raise

        labels = [Label(format=map_label_format(wire.format), url=wire.url) for wire in response.labels]
        if not labels:
            logger.warning(f"[Freightcom] No {label_format.value} label for {request.order_id}")
            raise LabelNotAvailableError(
                CARRIER_NAME, message=f"no {label_format.value} label for shipment {shipment_id}",
            )
        return GetLabelResponse(
            order_id=request.order_id,
            label=labels[0],
            additional_labels=labels[1:],
        )

    async def cancel_order(self, request: CancelOrderRequest) -> CancelOrderResponse:
        shipment_id = strip_prefix(FREIGHTCOM, request.order_id)
        logger.info(f"[Freightcom] Cancelling order {request.order_id}")

        try:
            response: CancelResponse = await self.api_client.cancel_shipment(shipment_id, request.reason)
        except CarrierError as e:
            logger.error(f"[Freightcom] Cancel error: {e}")
            raise

        refund = None
        if response.refund_amount > 0:
            refund = wire_money(CARRIER_NAME, response.refund_amount, response.currency)
        return CancelOrderResponse(
            order_id=request.order_id,
            status=map_status(response.status),
            refund_amount=refund,
            confirmation_number=response.confirmation_number,
        )

    async def get_tracking(self, request: TrackingRequest) -> TrackingResponse:
        shipment_id = strip_prefix(FREIGHTCOM, request.order_id)
        try:
            response: WireTrackingResponse = await self.api_client.get_tracking(shipment_id)
        except CarrierError as e:
            logger.error(f"[Freightcom] Tracking error: {e}")
            raise

        events = [
            TrackingEvent(
                timestamp=parse_timestamp(event.timestamp) or utcnow(),
                description=event.description,
                location=event.location,
                status=map_status(event.status),
                carrier_code=event.code,
            )
            for event in response.events
        ]
        return TrackingResponse(
            order_id=request.order_id,
            tracking_number=response.tracking_number,
            status=map_status(response.status),
            events=events,
        )
