"""
Canada Post HTTP client.

XML over REST with HTTP Basic auth:
- POST   /rs/ship/price                      rate-v4 mailing-scenario -> price-quotes
- POST   /rs/{account}/{group}/shipment      shipment-v8 shipment -> shipment-info
- GET    /rs/{account}/artifact/{shipment}   label bytes (PDF / ZPL)
- DELETE /rs/{account}/shipment/{shipment}   void
- GET    /vis/track/pin/{pin}/summary        track-v2 tracking-summary

Error bodies are <messages><message><code/><description/></message></messages>.
"""
import base64
import logging
import time
from typing import Optional
from xml.etree import ElementTree as ET

import httpx

from delivro_logistic.core.exceptions import (
    CarrierError,
    NETWORK_ERROR,
    PARSE_ERROR,
    TIMEOUT,
    error_from_status,
)
from delivro_logistic.core.logging_config import sanitize_for_logging
from delivro_logistic.modules.shipping.carriers.canadapost.api import (
    CARRIER_NAME,
    DESTINATION_DOMESTIC,
    DESTINATION_UNITED_STATES,
    CanadaPostAPIClient,
    Dimensions,
    LabelResponse,
    Link,
    Rate,
    RatesRequest,
    RatesResponse,
    ShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
    VoidResponse,
    WireAddress,
    WireTrackingEvent,
    normalize_postal_code,
)
from delivro_logistic.modules.shipping.carriers.xml_utils import (
    find_bool,
    find_float,
    find_int,
    find_text,
    parse_xml,
    sub_text,
    to_bytes,
)

logger = logging.getLogger(__name__)

RATE_NAMESPACE = "http://www.canadapost.ca/ws/ship/rate-v4"
SHIPMENT_NAMESPACE = "http://www.canadapost.ca/ws/shipment-v8"

RATE_MEDIA_TYPE = "application/vnd.cpc.ship.rate-v4+xml"
SHIPMENT_MEDIA_TYPE = "application/vnd.cpc.shipment-v8+xml"
TRACK_MEDIA_TYPE = "application/vnd.cpc.track-v2+xml"
PDF_MEDIA_TYPE = "application/pdf"
ZPL_MEDIA_TYPE = "application/zpl"

FUEL_SURCHARGE_CODE = "FUELSC"
DEFAULT_TIMEOUT = 30.0


class HTTPCanadaPostAPIClient(CanadaPostAPIClient):
    """Live Canada Post client on httpx + ElementTree."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_secret: str = "",
        account_id: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.api_secret = api_secret
        self.account_id = account_id
        self.timeout = timeout or DEFAULT_TIMEOUT
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": self._basic_auth_header(),
                    "Accept-Language": "en-CA",
                },
            )
        return self._http_client

    def _basic_auth_header(self) -> str:
        # Key alone when there is no secret
        credentials = self.api_key or ""
        if self.api_secret:
            credentials = f"{credentials}:{self.api_secret}"
        return f"Basic {base64.b64encode(credentials.encode()).decode()}"

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== Transport ====================

    async def _request(
        self,
        method: str,
        path: str,
        accept: str = "",
        body: Optional[bytes] = None,
    ) -> httpx.Response:
        client = await self._get_http_client()
        headers = {}
        if accept:
            headers["Accept"] = accept
            if body is not None:
                headers["Content-Type"] = accept

        try:
            response = await client.request(method, f"{self.base_url}{path}", content=body, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"Canada Post API {method} {path} timed out: {e}")
            raise CarrierError(
                CARRIER_NAME, code=TIMEOUT, message=f"Request timed out: {method} {path}",
                retryable=True, cause=e,
            )
        except httpx.RequestError as e:
            logger.error(f"Canada Post API request failed: {e}")
            raise CarrierError(
                CARRIER_NAME, code=NETWORK_ERROR, message=f"Network error: {e}",
                retryable=True, cause=e,
            )

        logger.debug(f"Canada Post API {method} {path} -> {response.status_code}")
        return response

    def _parse_error(self, response: httpx.Response) -> CarrierError:
        code = None
        message = response.text
        try:
            root = parse_xml(response.content)
            first = root.find("message") if root.tag == "messages" else None
            if first is not None:
                code = find_text(first, "code") or None
                message = find_text(first, "description") or message
        except ET.ParseError:
            # not XML; keep the raw body
            code = None

        logger.error(
            f"Canada Post API error: {response.status_code} {code or ''} - "
            f"{sanitize_for_logging(message)}"
        )
        return error_from_status(CARRIER_NAME, response.status_code, message, code=code)

    @staticmethod
    def _parse_body(response: httpx.Response, what: str) -> ET.Element:
        try:
            return parse_xml(response.content)
        except ET.ParseError as e:
            raise CarrierError(
                CARRIER_NAME, code=PARSE_ERROR, message=f"failed to decode {what} response", cause=e,
            )

    # ==================== XML builders ====================

    @staticmethod
    def _add_parcel(parent: ET.Element, weight: float, dimensions: Optional[Dimensions]) -> None:
        parcel = ET.SubElement(parent, "parcel-characteristics")
        sub_text(parcel, "weight", f"{weight:.3f}")
        if dimensions and dimensions.length > 0:
            dims = ET.SubElement(parcel, "dimensions")
            sub_text(dims, "length", f"{dimensions.length:.1f}")
            sub_text(dims, "width", f"{dimensions.width:.1f}")
            sub_text(dims, "height", f"{dimensions.height:.1f}")

    @staticmethod
    def _add_address_details(parent: ET.Element, address: WireAddress) -> None:
        details = ET.SubElement(parent, "address-details")
        sub_text(details, "address-line-1", address.address_line_1)
        sub_text(details, "address-line-2", address.address_line_2, omit_empty=True)
        sub_text(details, "city", address.city)
        sub_text(details, "prov-state", address.province)
        sub_text(details, "postal-zip-code", normalize_postal_code(address.postal_code))
        sub_text(details, "country-code", address.country_code or "CA")

    def build_rates_xml(self, request: RatesRequest) -> bytes:
        scenario = ET.Element("mailing-scenario", xmlns=RATE_NAMESPACE)
        sub_text(scenario, "customer-number", request.customer_number, omit_empty=True)
        self._add_parcel(scenario, request.weight, request.dimensions)
        sub_text(scenario, "origin-postal-code", normalize_postal_code(request.origin_postal_code))

        destination = ET.SubElement(scenario, "destination")
        variant = request.destination.variant
        if variant == DESTINATION_DOMESTIC:
            domestic = ET.SubElement(destination, "domestic")
            sub_text(domestic, "postal-code", normalize_postal_code(request.destination.postal_code))
        elif variant == DESTINATION_UNITED_STATES:
            united_states = ET.SubElement(destination, "united-states")
            sub_text(united_states, "zip-code", normalize_postal_code(request.destination.postal_code))
        else:
            international = ET.SubElement(destination, "international")
            sub_text(international, "country-code", request.destination.country_code.upper())

        return to_bytes(scenario)

    def build_shipment_xml(self, request: ShipmentRequest) -> bytes:
        shipment = ET.Element("shipment", xmlns=SHIPMENT_NAMESPACE)
        sub_text(shipment, "group-id", request.group_id, omit_empty=True)
        sub_text(shipment, "cpc-pickup-indicator", True)

        spec = ET.SubElement(shipment, "delivery-spec")
        sub_text(spec, "service-code", request.service_code)

        sender = ET.SubElement(spec, "sender")
        sub_text(sender, "name", request.sender.name)
        sub_text(sender, "company", request.sender.company, omit_empty=True)
        sub_text(sender, "contact-phone", request.sender.phone)
        self._add_address_details(sender, request.sender)

        destination = ET.SubElement(spec, "destination")
        sub_text(destination, "name", request.destination.name)
        sub_text(destination, "company", request.destination.company, omit_empty=True)
        self._add_address_details(destination, request.destination)

        self._add_parcel(spec, request.parcel_weight, request.parcel_dimensions)

        preferences = ET.SubElement(spec, "print-preferences")
        sub_text(preferences, "output-format", request.output_format)
        sub_text(preferences, "encoding", request.encoding)

        return to_bytes(shipment)

    # ==================== Operations ====================

    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        response = await self._request("POST", "/rs/ship/price", RATE_MEDIA_TYPE, self.build_rates_xml(request))
        if response.status_code != 200:
            raise self._parse_error(response)

        root = self._parse_body(response, "rates")
        rates = []
        for quote in root.iter("price-quote"):
            details = quote.find("price-details")

            fuel_surcharge = 0.0
            for adjustment in quote.iterfind("price-details/adjustments/adjustment"):
                if find_text(adjustment, "adjustment-code") == FUEL_SURCHARGE_CODE:
                    fuel_surcharge = find_float(adjustment, "adjustment-cost")
                    break

            taxes = sum(find_float(details, f"taxes/{tax}") for tax in ("gst", "pst", "hst"))

            rates.append(Rate(
                service_code=find_text(quote, "service-code"),
                service_name=find_text(quote, "service-name") or find_text(quote, "service-link/service-name"),
                base_rate=find_float(details, "base"),
                fuel_surcharge=fuel_surcharge,
                taxes=round(taxes, 2),
                total_price=find_float(details, "due"),
                expected_transit=find_int(quote, "service-standard/expected-transit-time"),
                expected_delivery=find_text(quote, "service-standard/expected-delivery-date"),
                guaranteed_delivery=find_bool(quote, "service-standard/guaranteed-delivery"),
            ))

        return RatesResponse(quote_id=f"cp-quote-{time.time_ns()}", rates=rates)

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        path = f"/rs/{self.account_id}/{request.group_id}/shipment"
        response = await self._request("POST", path, SHIPMENT_MEDIA_TYPE, self.build_shipment_xml(request))
        if response.status_code not in (200, 201):
            raise self._parse_error(response)

        root = self._parse_body(response, "shipment")
        links = [
            Link(rel=link.get("rel", ""), href=link.get("href", ""), media_type=link.get("media-type", ""))
            for link in root.iterfind("links/link")
        ]
        return ShipmentResponse(
            shipment_id=find_text(root, "shipment-id"),
            tracking_pin=find_text(root, "tracking-pin"),
            shipment_status=find_text(root, "shipment-status"),
            links=links,
        )

    async def get_label(self, shipment_id: str, media_type: str) -> LabelResponse:
        media_type = media_type or PDF_MEDIA_TYPE
        path = f"/rs/{self.account_id}/artifact/{shipment_id}"
        response = await self._request("GET", path, media_type)
        if response.status_code != 200:
            raise self._parse_error(response)

        return LabelResponse(shipment_id=shipment_id, media_type=media_type, data=response.content)

    async def void_shipment(self, shipment_id: str) -> VoidResponse:
        path = f"/rs/{self.account_id}/shipment/{shipment_id}"
        response = await self._request("DELETE", path)
        if response.status_code not in (200, 204):
            raise self._parse_error(response)

        return VoidResponse(shipment_id=shipment_id, status="voided")

    async def get_tracking(self, tracking_pin: str) -> TrackingResponse:
        path = f"/vis/track/pin/{tracking_pin}/summary"
        response = await self._request("GET", path, TRACK_MEDIA_TYPE)
        if response.status_code != 200:
            raise self._parse_error(response)

        root = self._parse_body(response, "tracking")
        summary = root.find("pin-summary")
        event_type = find_text(summary, "event-type")
        return TrackingResponse(
            tracking_pin=find_text(summary, "pin") or tracking_pin,
            status=event_type,
            events=[
                WireTrackingEvent(
                    timestamp=find_text(summary, "event-date-time"),
                    description=find_text(summary, "event-description"),
                    location=find_text(summary, "event-location"),
                    type=event_type,
                )
            ] if summary is not None else [],
        )
