"""
Canada Post Carrier Implementation v1.0.0

- Implements BaseCarrier over Canada Post's XML REST API
- Registered via @register_carrier decorator
- Canada Post rates a single parcel: the first package supplies the
  weight and dimensions
- Rate ids: cp-{service code}-{YYYYmmddHHMMSS}; order ids: cp-{shipment id}
"""
import base64
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Tuple

from delivro_logistic.core.exceptions import CarrierError, InvalidPackageError
from delivro_logistic.core.utils import parse_date, parse_timestamp
from delivro_logistic.modules.shipping.carriers import register_carrier
from delivro_logistic.modules.shipping.carriers.base import BaseCarrier, wire_money
from delivro_logistic.modules.shipping.carriers.canadapost.api import (
    CARRIER_NAME,
    CanadaPostAPIClient,
    Destination,
    Dimensions,
    RatesRequest,
    RatesResponse,
    ShipmentRequest,
    ShipmentResponse,
    WireAddress,
)
from delivro_logistic.modules.shipping.carriers.canadapost.api_http import (
    HTTPCanadaPostAPIClient,
    PDF_MEDIA_TYPE,
    ZPL_MEDIA_TYPE,
)
from delivro_logistic.modules.shipping.carriers.canadapost.api_mock import MockCanadaPostAPIClient
from delivro_logistic.modules.shipping.carriers.ids import CANADAPOST, strip_prefix, with_prefix
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

DEFAULT_BASE_URL = "https://soa-gw.canadapost.ca"
DEFAULT_GROUP_ID = "default"
DEFAULT_SERVICE_CODE = "DOM.RP"
QUOTE_TTL = timedelta(minutes=30)

RATE_ID_PATTERN = re.compile(r"^cp-(.+)-\d{14}$")
CANADAPOST_SERVICE_TYPE_MAP = {
    "DOM.RP": ServiceType.STANDARD,
    "DOM.XP": ServiceType.EXPRESS,
    "DOM.PC": ServiceType.PRIORITY,
    "DOM.EP": ServiceType.EXPRESS,
    "USA.EP": ServiceType.STANDARD,
    "USA.SP.AIR": ServiceType.ECONOMY,
    "USA.TP": ServiceType.STANDARD,
    "USA.XP": ServiceType.EXPRESS,
    "USA.PW.PARCEL": ServiceType.PRIORITY,
    "INT.IP.AIR": ServiceType.STANDARD,
    "INT.IP.SURF": ServiceType.ECONOMY,
    "INT.SP.AIR": ServiceType.ECONOMY,
    "INT.TP": ServiceType.STANDARD,
    "INT.XP": ServiceType.EXPRESS,
    "INT.PW.PARCEL": ServiceType.PRIORITY,
}
KNOWN_SERVICE_CODES = sorted(CANADAPOST_SERVICE_TYPE_MAP, key=len, reverse=True)

CANADAPOST_STATUS_MAP = {
    "created": ShipmentStatus.CONFIRMED,
    "transmitted": ShipmentStatus.CONFIRMED,
    "voided": ShipmentStatus.CANCELLED,
    "in_transit": ShipmentStatus.IN_TRANSIT,
    "delivered": ShipmentStatus.DELIVERED,
}


def map_service_type(service_code: str) -> ServiceType:
    return CANADAPOST_SERVICE_TYPE_MAP.get(service_code, ServiceType.STANDARD)


def map_status(status: str) -> ShipmentStatus:
    return CANADAPOST_STATUS_MAP.get((status or "").lower(), ShipmentStatus.PENDING)


def generate_rate_id(service_code: str) -> str:
    return with_prefix(CANADAPOST, f"{service_code}-{utcnow().strftime('%Y%m%d%H%M%S')}")


def extract_service_code(rate_id: str) -> str:
    """Service code embedded in a rate id; DOM.RP when it cannot be recovered."""
    match = RATE_ID_PATTERN.match(rate_id or "")
    if match:
        return match.group(1)
    for code in KNOWN_SERVICE_CODES:
        if code in (rate_id or ""):
            return code
    return DEFAULT_SERVICE_CODE


@dataclass
class CanadaPostConfig:
    api_key: str = ""
    api_secret: str = ""
    account_id: str = ""
    base_url: str = DEFAULT_BASE_URL
    group_id: str = DEFAULT_GROUP_ID
    use_mock: bool = False
    timeout: float = 30.0


@register_carrier(CANADAPOST)
class CanadaPostCarrier(BaseCarrier):
    """Canada Post shipping carrier."""

    def __init__(self, config: CanadaPostConfig, api_client: Optional[CanadaPostAPIClient] = None):
        self.config = config
        if api_client is None:
            if config.use_mock:
                logger.info("[CanadaPost] Using mock API client")
                api_client = MockCanadaPostAPIClient()
            else:
                api_client = HTTPCanadaPostAPIClient(
                    base_url=config.base_url,
                    api_key=config.api_key,
                    api_secret=config.api_secret,
                    account_id=config.account_id,
                    timeout=config.timeout,
                )
        self.api_client = api_client

    @classmethod
    def with_api_client(cls, config: CanadaPostConfig, api_client: CanadaPostAPIClient) -> "CanadaPostCarrier":
        return cls(config, api_client=api_client)

    @classmethod
    def from_settings(cls, settings) -> "CanadaPostCarrier":
        return cls(CanadaPostConfig(
            api_key=settings.CANADAPOST_API_KEY or "",
            api_secret=settings.CANADAPOST_API_SECRET or "",
            account_id=settings.CANADAPOST_ACCOUNT_ID or "",
            base_url=settings.CANADAPOST_BASE_URL,
            use_mock=settings.CANADAPOST_USE_MOCK,
            timeout=settings.CARRIER_HTTP_TIMEOUT_SECONDS,
        ))

    @property
    def name(self) -> str:
        return CARRIER_NAME

    async def close(self) -> None:
        await self.api_client.close()

    # ==================== Conversions ====================

    @staticmethod
    def _parcel(packages: List[Package]) -> Tuple[float, Optional[Dimensions]]:
        if not packages:
            raise InvalidPackageError(CARRIER_NAME, message="at least one package is required")
        package = packages[0]
        length, width, height = package.dimensions_in_cm()
        dimensions = None
        if length > 0:
            dimensions = Dimensions(length=float(length), width=float(width), height=float(height))
        return float(package.weight_in_kg()), dimensions

    @staticmethod
    def _to_address(contact: Contact, address: Address) -> WireAddress:
        return WireAddress(
            name=contact.name or address.name,
            company=contact.company or address.company,
            address_line_1=address.line1,
            address_line_2=address.line2,
            city=address.city,
            province=address.province_code,
            postal_code=address.postal_code,
            country_code=address.country_code,
            phone=contact.phone or address.phone,
            email=contact.email or address.email,
        )

    def _to_quote(self, response: RatesResponse) -> QuoteResponse:
        expires_at = utcnow() + QUOTE_TTL
        rates = [
            RateOption(
                rate_id=generate_rate_id(rate.service_code),
                carrier=CARRIER_NAME,
                service_code=rate.service_code,
                service_name=rate.service_name,
                service_type=map_service_type(rate.service_code),
                base_rate=wire_money(CARRIER_NAME, rate.base_rate),
                fuel_surcharge=wire_money(CARRIER_NAME, rate.fuel_surcharge),
                taxes=wire_money(CARRIER_NAME, rate.taxes),
                total_price=wire_money(CARRIER_NAME, rate.total_price),
                transit_days=rate.expected_transit,
                estimated_delivery=parse_date(rate.expected_delivery),
                expires_at=expires_at,
                guaranteed=rate.guaranteed_delivery,
            )
            for rate in response.rates
        ]
        return QuoteResponse(
            quote_id=with_prefix(CANADAPOST, response.quote_id),
            rates=rates,
            expires_at=expires_at,
        )

    def _to_order(self, response: ShipmentResponse) -> CreateOrderResponse:
        label_link = response.link("label")
        tracking_link = response.link("tracking")
        return CreateOrderResponse(
            order_id=with_prefix(CANADAPOST, response.shipment_id),
            tracking_number=response.tracking_pin,
            tracking_url=tracking_link.href if tracking_link else "",
            status=map_status(response.shipment_status),
            carrier=CARRIER_NAME,
            service_name=response.service_name,
            total_charged=wire_money(CARRIER_NAME, response.total_charged),
            estimated_delivery=parse_date(response.expected_delivery),
            label_url=label_link.href if label_link else "",
        )

    # ==================== Capability operations ====================

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        logger.info(
            f"[CanadaPost] Getting quotes {request.origin.postal_code} -> "
            f"{request.destination.postal_code} ({request.destination.country_code})"
        )
        weight, dimensions = self._parcel(request.packages)
        rates_request = RatesRequest(
            customer_number=self.config.account_id,
            origin_postal_code=request.origin.postal_code,
            destination=Destination(
                country_code=request.destination.country_code,
                postal_code=request.destination.postal_code,
            ),
            weight=weight,
            dimensions=dimensions,
        )
        try:
            response = await self.api_client.get_rates(rates_request)
        except CarrierError as e:
            logger.error(f"[CanadaPost] Rate error: {e}")
            raise

        return self._to_quote(response)

    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        service_code = extract_service_code(request.rate_id)
        logger.info(f"[CanadaPost] Creating {service_code} shipment for rate {request.rate_id}")

        weight, dimensions = self._parcel(request.packages)
        shipment_request = ShipmentRequest(
            customer_number=self.config.account_id,
            group_id=self.config.group_id,
            service_code=service_code,
            sender=self._to_address(request.sender, request.sender_address),
            destination=self._to_address(request.recipient, request.recipient_address),
            parcel_weight=weight,
            parcel_dimensions=dimensions,
        )
        try:
            response = await self.api_client.create_shipment(shipment_request)
        except CarrierError as e:
            logger.error(f"[CanadaPost] Shipment error: {e}")
            raise

        order = self._to_order(response)
        logger.info(f"[CanadaPost] Created order {order.order_id} ({order.status.value})")
        return order

    async def get_label(self, request: GetLabelRequest) -> GetLabelResponse:
        media_type = ZPL_MEDIA_TYPE if request.format == LabelFormat.ZPL else PDF_MEDIA_TYPE
        shipment_id = strip_prefix(CANADAPOST, request.order_id)

        try:
            response = await self.api_client.get_label(shipment_id, media_type)
        except CarrierError as e:
            logger.error(f"[CanadaPost] Label error: {e}")
            raise

        label_format = LabelFormat.ZPL if response.media_type == ZPL_MEDIA_TYPE else LabelFormat.PDF
        data = base64.b64encode(response.data).decode("ascii") if response.data else ""
        return GetLabelResponse(
            order_id=request.order_id,
            label=Label(format=label_format, data=data),
        )

    async def cancel_order(self, request: CancelOrderRequest) -> CancelOrderResponse:
        shipment_id = strip_prefix(CANADAPOST, request.order_id)
        logger.info(f"[CanadaPost] Voiding shipment {shipment_id}")

        try:
            response = await self.api_client.void_shipment(shipment_id)
        except CarrierError as e:
            logger.error(f"[CanadaPost] Void error: {e}")
            raise

        return CancelOrderResponse(
            order_id=request.order_id,
            status=map_status(response.status),
            confirmation_number=f"{response.shipment_id}-VOID",
        )

    async def get_tracking(self, request: TrackingRequest) -> TrackingResponse:
        pin = request.tracking_number or strip_prefix(CANADAPOST, request.order_id)

        try:
            response = await self.api_client.get_tracking(pin)
        except CarrierError as e:
            logger.error(f"[CanadaPost] Tracking error: {e}")
            raise

        events = [
            TrackingEvent(
                timestamp=parse_timestamp(event.timestamp) or utcnow(),
                description=event.description,
                location=event.location,
                status=map_status(event.type),
                carrier_code=event.type,
            )
            for event in response.events
        ]
        return TrackingResponse(
            order_id=request.order_id,
            tracking_number=response.tracking_pin,
            status=map_status(response.status),
            events=events,
        )
