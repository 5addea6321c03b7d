"""
Purolator Carrier Implementation v1.0.0

- Implements BaseCarrier over Purolator's SOAP web services
- Registered via @register_carrier decorator
- Packages are rated as one consignment: summed kg weight, piece count
- Rate ids: puro-{service id}-{YYYYmmddHHMMSS}; order ids: puro-{shipment PIN}
"""
import base64
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional

from delivro_logistic.core.exceptions import (
    CancellationNotAllowedError,
    CarrierError,
    InvalidPackageError,
)
from delivro_logistic.core.utils import parse_date, parse_timestamp
from delivro_logistic.modules.shipping.carriers import register_carrier
from delivro_logistic.modules.shipping.carriers.base import BaseCarrier, wire_money
from delivro_logistic.modules.shipping.carriers.ids import PUROLATOR, strip_prefix, with_prefix
from delivro_logistic.modules.shipping.carriers.purolator.api import (
    CARRIER_NAME,
    PackageInformation,
    PhoneNumber,
    PurolatorAPIClient,
    RatesRequest,
    RatesResponse,
    ShipmentRequest,
    ShipmentResponse,
    Weight,
    WireAddress,
)
from delivro_logistic.modules.shipping.carriers.purolator.api_mock import MockPurolatorAPIClient
from delivro_logistic.modules.shipping.carriers.purolator.api_soap import (
    SERVICE_NAMES,
    SOAPPurolatorAPIClient,
)
from delivro_logistic.modules.shipping.models import (
    Address,
    CancelOrderRequest,
    CancelOrderResponse,
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

DEFAULT_BASE_URL = "https://webservices.purolator.com"
DEFAULT_SERVICE_CODE = "PurolatorGround"
QUOTE_TTL = timedelta(minutes=30)
TRACKING_URL = "https://www.purolator.com/en/shipping/tracker?pin={pin}"

PDF_FORMAT = "application/pdf"
ZPL_FORMAT = "application/zpl"

RATE_ID_PATTERN = re.compile(r"^puro-(.+)-\d{14}$")
# PurolatorExpress must not shadow PurolatorExpress9AM
KNOWN_SERVICE_CODES = sorted(SERVICE_NAMES, key=len, reverse=True)

PUROLATOR_SERVICE_TYPE_MAP = {
    "PurolatorGround": ServiceType.STANDARD,
    "PurolatorGround9AM": ServiceType.STANDARD,
    "PurolatorGround10:30AM": ServiceType.STANDARD,
    "PurolatorGroundUS": ServiceType.STANDARD,
    "PurolatorExpress": ServiceType.EXPRESS,
    "PurolatorExpress12PM": ServiceType.EXPRESS,
    "PurolatorExpressEvening": ServiceType.EXPRESS,
    "PurolatorExpressUS": ServiceType.EXPRESS,
    "PurolatorExpressUSPack": ServiceType.EXPRESS,
    "PurolatorExpress9AM": ServiceType.OVERNIGHT,
    "PurolatorExpress10:30AM": ServiceType.OVERNIGHT,
}

PUROLATOR_STATUS_MAP = {
    "pickedup": ShipmentStatus.PICKED_UP,
    "intransit": ShipmentStatus.IN_TRANSIT,
    "outfordelivery": ShipmentStatus.OUT_FOR_DELIVERY,
    "delivered": ShipmentStatus.DELIVERED,
    "exception": ShipmentStatus.EXCEPTION,
    "returntosender": ShipmentStatus.EXCEPTION,
    "voided": ShipmentStatus.CANCELLED,
}


def map_service_type(service_code: str) -> ServiceType:
    return PUROLATOR_SERVICE_TYPE_MAP.get(service_code, ServiceType.STANDARD)


def map_status(status: str) -> ShipmentStatus:
    return PUROLATOR_STATUS_MAP.get((status or "").lower(), ShipmentStatus.PENDING)


def generate_rate_id(service_code: str) -> str:
    return with_prefix(PUROLATOR, f"{service_code}-{utcnow().strftime('%Y%m%d%H%M%S')}")


def extract_service_code(rate_id: str) -> str:
    """Service id embedded in a rate id; PurolatorGround when it cannot be recovered."""
    rate_id = rate_id or ""
    match = RATE_ID_PATTERN.match(rate_id)
    if match:
        return match.group(1)
    for code in KNOWN_SERVICE_CODES:
        if code in rate_id:
            return code
    return DEFAULT_SERVICE_CODE


def split_street(line: str):
    """'123 Main St' -> ('123', 'Main St')"""
    parts = (line or "").strip().split(" ", 1)
    if len(parts) == 2 and parts[0].isdigit():
        return parts[0], parts[1]
    return "", (line or "").strip()


@dataclass
class PurolatorConfig:
    username: str = ""
    password: str = ""
    base_url: str = DEFAULT_BASE_URL
    account_number: str = ""
    use_mock: bool = False
    timeout: float = 30.0


@register_carrier(PUROLATOR)
class PurolatorCarrier(BaseCarrier):
    """Purolator shipping carrier."""

    def __init__(self, config: PurolatorConfig, api_client: Optional[PurolatorAPIClient] = None):
        self.config = config
        if api_client is None:
            if config.use_mock:
                logger.info("[Purolator] Using mock API client")
                api_client = MockPurolatorAPIClient()
            else:
                api_client = SOAPPurolatorAPIClient(
                    base_url=config.base_url,
                    username=config.username,
                    password=config.password,
                    timeout=config.timeout,
                )
        self.api_client = api_client

    @classmethod
    def with_api_client(cls, config: PurolatorConfig, api_client: PurolatorAPIClient) -> "PurolatorCarrier":
        return cls(config, api_client=api_client)

    @classmethod
    def from_settings(cls, settings) -> "PurolatorCarrier":
        return cls(PurolatorConfig(
            username=settings.PUROLATOR_USERNAME or "",
            password=settings.PUROLATOR_PASSWORD or "",
            base_url=settings.PUROLATOR_BASE_URL,
            account_number=settings.PUROLATOR_ACCOUNT_NUMBER or "",
            use_mock=settings.PUROLATOR_USE_MOCK,
            timeout=settings.CARRIER_HTTP_TIMEOUT_SECONDS,
        ))

    @property
    def name(self) -> str:
        return CARRIER_NAME

    async def close(self) -> None:
        await self.api_client.close()

    # ==================== Conversions ====================

    @staticmethod
    def _package_information(packages: List[Package]) -> PackageInformation:
        if not packages:
            raise InvalidPackageError(CARRIER_NAME, message="at least one package is required")
        total = sum((p.weight_in_kg() for p in packages), Decimal("0"))
        return PackageInformation(total_weight=Weight(value=float(total), unit="kg"), total_pieces=len(packages))

    @staticmethod
    def _to_address(address: Address, name: str = "", company: str = "", phone: str = "") -> WireAddress:
        street_number, street_name = split_street(address.line1)
        return WireAddress(
            name=name or address.name,
            company=company or address.company,
            street_number=street_number,
            street_name=street_name,
            city=address.city,
            province=address.province_code,
            postal_code=address.postal_code,
            country=address.country_code,
            phone_number=PhoneNumber.parse(phone or address.phone),
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
                base_rate=wire_money(CARRIER_NAME, rate.base_price),
                fuel_surcharge=wire_money(CARRIER_NAME, rate.fuel_surcharge),
                taxes=wire_money(CARRIER_NAME, rate.taxes),
                total_price=wire_money(CARRIER_NAME, rate.total_price),
                transit_days=rate.estimated_transit_days,
                estimated_delivery=parse_date(rate.expected_delivery_date),
                expires_at=expires_at,
                guaranteed=rate.guaranteed_delivery,
            )
            for rate in response.shipment_rates
        ]
        return QuoteResponse(
            quote_id=with_prefix(PUROLATOR, response.quote_id),
            rates=rates,
            expires_at=expires_at,
        )

    def _to_order(self, response: ShipmentResponse, service_code: str) -> CreateOrderResponse:
        return CreateOrderResponse(
            order_id=with_prefix(PUROLATOR, response.shipment_pin),
            tracking_number=response.tracking_number,
            tracking_url=TRACKING_URL.format(pin=response.tracking_number),
            status=ShipmentStatus.CONFIRMED,
            carrier=CARRIER_NAME,
            service_name=SERVICE_NAMES.get(service_code, "Purolator"),
            total_charged=wire_money(CARRIER_NAME, response.total_price),
            estimated_delivery=parse_date(response.expected_delivery_date),
            label_url=response.label_url(),
        )

    # ==================== Capability operations ====================

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        logger.info(
            f"[Purolator] Getting quotes {request.origin.postal_code} -> "
            f"{request.destination.postal_code} ({len(request.packages)} packages)"
        )
        rates_request = RatesRequest(
            billing_account_number=self.config.account_number,
            sender_postal_code=request.origin.postal_code,
            receiver_address=self._to_address(request.destination),
            package_information=self._package_information(request.packages),
        )
        try:
            response = await self.api_client.get_rates(rates_request)
        except CarrierError as e:
            logger.error(f"[Purolator] Estimate error: {e}")
            raise

        return self._to_quote(response)

    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        service_code = extract_service_code(request.rate_id)
        logger.info(f"[Purolator] Creating {service_code} shipment for {request.recipient.name}")

        shipment_request = ShipmentRequest(
            billing_account_number=self.config.account_number,
            service_code=service_code,
            sender=self._to_address(
                request.sender_address, request.sender.name, request.sender.company, request.sender.phone,
            ),
            receiver=self._to_address(
                request.recipient_address, request.recipient.name, request.recipient.company, request.recipient.phone,
            ),
            package_information=self._package_information(request.packages),
        )
        try:
            response = await self.api_client.create_shipment(shipment_request)
        except CarrierError as e:
            logger.error(f"[Purolator] Shipment error: {e}")
            raise

        order = self._to_order(response, service_code)
        logger.info(f"[Purolator] Created order {order.order_id}")
        return order

    async def get_label(self, request: GetLabelRequest) -> GetLabelResponse:
        label_format = ZPL_FORMAT if request.format == LabelFormat.ZPL else PDF_FORMAT
        shipment_pin = strip_prefix(PUROLATOR, request.order_id)

        try:
            response = await self.api_client.get_label(shipment_pin, label_format)
        except CarrierError as e:
            logger.error(f"[Purolator] Documents error: {e}")
            raise

        return GetLabelResponse(
            order_id=request.order_id,
            label=Label(
                format=LabelFormat.ZPL if response.format == ZPL_FORMAT else LabelFormat.PDF,
                data=base64.b64encode(response.data).decode("ascii") if response.data else "",
            ),
        )

    async def cancel_order(self, request: CancelOrderRequest) -> CancelOrderResponse:
        shipment_pin = strip_prefix(PUROLATOR, request.order_id)
        logger.info(f"[Purolator] Voiding shipment {shipment_pin}: {request.reason}")

        try:
            response = await self.api_client.void_shipment(shipment_pin)
        except CarrierError as e:
            logger.error(f"[Purolator] Void error: {e}")
            raise

        if response.status != "voided":
            logger.warning(f"[Purolator] Void refused for {shipment_pin}: {response.message}")
            raise CancellationNotAllowedError(
                CARRIER_NAME, message=response.message or "shipment could not be voided",
            )

        return CancelOrderResponse(
            order_id=request.order_id,
            status=ShipmentStatus.CANCELLED,
            confirmation_number=f"{response.shipment_pin}-VOID",
        )

    async def get_tracking(self, request: TrackingRequest) -> TrackingResponse:
        pin = request.tracking_number or strip_prefix(PUROLATOR, request.order_id)

        try:
            response = await self.api_client.get_tracking(pin)
        except CarrierError as e:
            logger.error(f"[Purolator] Tracking error: {e}")
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
