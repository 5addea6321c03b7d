"""
Purolator SOAP client.

SOAP 1.1 over httpx with HTTP Basic auth. Every request is a
RequestContext header plus one operation body:

    GetFullEstimate     /EWS/V2/Estimating/EstimatingService.asmx
    CreateShipment      /EWS/V2/Shipping/ShippingService.asmx
    VoidShipment        /EWS/V2/Shipping/ShippingService.asmx
    GetDocuments        /EWS/V2/ShippingDocuments/ShippingDocumentsService.asmx
    TrackPackagesByPin  /PWS/V1/Tracking/TrackingService.asmx

Response handling is the same for every operation: a soap:Fault wins over
anything else in the body, a missing <Operation>Response is a parse error,
and the first ResponseInformation error is raised as-is.
"""
import base64
import binascii
import logging
import time
import uuid
from typing import Optional
from xml.etree import ElementTree as ET
from xml.sax.saxutils import escape

import httpx

from delivro_logistic.core.exceptions import (
    CarrierError,
    LABEL_NOT_FOUND,
    NETWORK_ERROR,
    PARSE_ERROR,
    TIMEOUT,
    TRACKING_NOT_FOUND,
    error_from_status,
)
from delivro_logistic.core.logging_config import sanitize_for_logging
from delivro_logistic.modules.shipping.carriers.purolator.api import (
    CARRIER_NAME,
    LabelResponse,
    PackageInformation,
    PurolatorAPIClient,
    RatesRequest,
    RatesResponse,
    ShipmentRate,
    ShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
    VoidResponse,
    WireAddress,
    WireTrackingEvent,
)
from delivro_logistic.modules.shipping.carriers.xml_utils import find_float, find_int, find_text, parse_xml

logger = logging.getLogger(__name__)

SOAP_ACTION_BASE = "http://purolator.com/pws/service/v2"
API_VERSION = "2.2"
DEFAULT_GROUP_ID = "xxx"
DEFAULT_TIMEOUT = 30.0

ESTIMATING_PATH = "/EWS/V2/Estimating/EstimatingService.asmx"
SHIPPING_PATH = "/EWS/V2/Shipping/ShippingService.asmx"
DOCUMENTS_PATH = "/EWS/V2/ShippingDocuments/ShippingDocumentsService.asmx"
TRACKING_PATH = "/PWS/V1/Tracking/TrackingService.asmx"

FUEL_SURCHARGE_TYPES = ("Fuel", "FuelSurcharge")
DOCUMENT_COMPLETED = "Completed"

SERVICE_NAMES = {
    "PurolatorExpress": "Purolator Express",
    "PurolatorExpress9AM": "Purolator Express 9AM",
    "PurolatorExpress10:30AM": "Purolator Express 10:30AM",
    "PurolatorExpress12PM": "Purolator Express 12PM",
    "PurolatorExpressEvening": "Purolator Express Evening",
    "PurolatorGround": "Purolator Ground",
    "PurolatorGround9AM": "Purolator Ground 9AM",
    "PurolatorGround10:30AM": "Purolator Ground 10:30AM",
    "PurolatorExpressUS": "Purolator Express U.S.",
    "PurolatorExpressUSPack": "Purolator Express U.S. Pack",
    "PurolatorGroundUS": "Purolator Ground U.S.",
}

GUARANTEED_SERVICES = frozenset({
    "PurolatorExpress",
    "PurolatorExpress9AM",
    "PurolatorExpress10:30AM",
    "PurolatorExpress12PM",
    "PurolatorExpressEvening",
    "PurolatorExpressUS",
})

DELIVERY_STATUS_DISPLAY = {
    "PickedUp": "Picked Up",
    "InTransit": "In Transit",
    "OutForDelivery": "Out for Delivery",
    "Delivered": "Delivered",
    "Exception": "Exception",
    "ReturnToSender": "Return to Sender",
}


def service_name(service_id: str) -> str:
    return SERVICE_NAMES.get(service_id, service_id)


def is_guaranteed_service(service_id: str) -> bool:
    return service_id in GUARANTEED_SERVICES


def delivery_status_display(scan_type: str) -> str:
    return DELIVERY_STATUS_DISPLAY.get(scan_type, scan_type)


def _x(value) -> str:
    return escape("" if value is None else str(value))


class SOAPPurolatorAPIClient(PurolatorAPIClient):
    """Live Purolator client: f-string envelopes, httpx transport, ElementTree parsing."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        group_id: str = DEFAULT_GROUP_ID,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.group_id = group_id
        self.timeout = timeout or DEFAULT_TIMEOUT
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                auth=httpx.BasicAuth(self.username, self.password),
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== Envelope ====================

    def build_envelope(self, body: str) -> str:
        return f"""<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/" xmlns:v2="http://purolator.com/pws/datatypes/v2">
  <soap:Header>
    <v2:RequestContext>
      <v2:Version>{API_VERSION}</v2:Version>
      <v2:Language>en</v2:Language>
      <v2:GroupID>{_x(self.group_id)}</v2:GroupID>
      <v2:RequestReference>req-{uuid.uuid4().hex}</v2:RequestReference>
    </v2:RequestContext>
  </soap:Header>
  <soap:Body>
    {body}
  </soap:Body>
</soap:Envelope>"""

    @staticmethod
    def _package_xml(package: PackageInformation, service_code: str = "") -> str:
        service = f"<v2:ServiceID>{_x(service_code)}</v2:ServiceID>" if service_code else ""
        return f"""<v2:PackageInformation>
          {service}
          <v2:TotalWeight>
            <v2:Value>{package.total_weight.value:.2f}</v2:Value>
            <v2:WeightUnit>{_x(package.total_weight.unit)}</v2:WeightUnit>
          </v2:TotalWeight>
          <v2:TotalPieces>{package.total_pieces}</v2:TotalPieces>
        </v2:PackageInformation>"""

    @staticmethod
    def _address_xml(address: WireAddress) -> str:
        return f"""<v2:Address>
            <v2:Name>{_x(address.name)}</v2:Name>
            <v2:Company>{_x(address.company)}</v2:Company>
            <v2:StreetNumber>{_x(address.street_number)}</v2:StreetNumber>
            <v2:StreetName>{_x(address.street_name)}</v2:StreetName>
            <v2:City>{_x(address.city)}</v2:City>
            <v2:Province>{_x(address.province)}</v2:Province>
            <v2:PostalCode>{_x(address.postal_code)}</v2:PostalCode>
            <v2:Country>{_x(address.country)}</v2:Country>
            <v2:PhoneNumber>
              <v2:CountryCode>{_x(address.phone_number.country_code)}</v2:CountryCode>
              <v2:AreaCode>{_x(address.phone_number.area_code)}</v2:AreaCode>
              <v2:Phone>{_x(address.phone_number.phone)}</v2:Phone>
            </v2:PhoneNumber>
          </v2:Address>"""

    def build_rates_request(self, request: RatesRequest) -> str:
        receiver = request.receiver_address
        return self.build_envelope(f"""<v2:GetFullEstimateRequest>
      <v2:Shipment>
        <v2:SenderInformation>
          <v2:Address>
            <v2:PostalCode>{_x(request.sender_postal_code)}</v2:PostalCode>
            <v2:Country>CA</v2:Country>
          </v2:Address>
        </v2:SenderInformation>
        <v2:ReceiverInformation>
          <v2:Address>
            <v2:City>{_x(receiver.city)}</v2:City>
            <v2:Province>{_x(receiver.province)}</v2:Province>
            <v2:PostalCode>{_x(receiver.postal_code)}</v2:PostalCode>
            <v2:Country>{_x(receiver.country)}</v2:Country>
          </v2:Address>
        </v2:ReceiverInformation>
        {self._package_xml(request.package_information)}
        <v2:PaymentInformation>
          <v2:PaymentType>Sender</v2:PaymentType>
          <v2:RegisteredAccountNumber>{_x(request.billing_account_number)}</v2:RegisteredAccountNumber>
        </v2:PaymentInformation>
      </v2:Shipment>
      <v2:ShowAlternativeServicesIndicator>true</v2:ShowAlternativeServicesIndicator>
    </v2:GetFullEstimateRequest>""")

    def build_shipment_request(self, request: ShipmentRequest) -> str:
        return self.build_envelope(f"""<v2:CreateShipmentRequest>
      <v2:Shipment>
        <v2:SenderInformation>
          {self._address_xml(request.sender)}
        </v2:SenderInformation>
        <v2:ReceiverInformation>
          {self._address_xml(request.receiver)}
        </v2:ReceiverInformation>
        {self._package_xml(request.package_information, request.service_code)}
        <v2:PaymentInformation>
          <v2:PaymentType>Sender</v2:PaymentType>
          <v2:RegisteredAccountNumber>{_x(request.billing_account_number)}</v2:RegisteredAccountNumber>
        </v2:PaymentInformation>
      </v2:Shipment>
      <v2:PrinterType>{_x(request.printer_type)}</v2:PrinterType>
    </v2:CreateShipmentRequest>""")

    def build_documents_request(self, shipment_pin: str) -> str:
        return self.build_envelope(f"""<v2:GetDocumentsRequest>
      <v2:DocumentCriteria>
        <v2:PIN>
          <v2:Value>{_x(shipment_pin)}</v2:Value>
        </v2:PIN>
      </v2:DocumentCriteria>
    </v2:GetDocumentsRequest>""")

    def build_void_request(self, shipment_pin: str) -> str:
        return self.build_envelope(f"""<v2:VoidShipmentRequest>
      <v2:PIN>
        <v2:Value>{_x(shipment_pin)}</v2:Value>
      </v2:PIN>
    </v2:VoidShipmentRequest>""")

    def build_tracking_request(self, tracking_pin: str) -> str:
        return self.build_envelope(f"""<v1:TrackPackagesByPinRequest xmlns:v1="http://purolator.com/pws/datatypes/v1">
      <v1:PINs>
        <v1:PIN>
          <v1:Value>{_x(tracking_pin)}</v1:Value>
        </v1:PIN>
      </v1:PINs>
    </v1:TrackPackagesByPinRequest>""")

    # ==================== Transport ====================

    async def _call(self, path: str, action: str, envelope: str) -> ET.Element:
        """POST one envelope and return the ``<action>Response`` element."""
        client = await self._get_http_client()
        try:
            response = await client.post(
                f"{self.base_url}{path}",
                content=envelope.encode("utf-8"),
                headers={
                    "Content-Type": "text/xml; charset=utf-8",
                    "SOAPAction": f"{SOAP_ACTION_BASE}/{action}",
                },
            )
        except httpx.TimeoutException as e:
            logger.error(f"Purolator {action} timed out: {e}")
            raise CarrierError(
                CARRIER_NAME, code=TIMEOUT, message=f"Request timed out: {action}",
                retryable=True, cause=e,
            )
        except httpx.RequestError as e:
            logger.error(f"Purolator {action} request failed: {e}")
            raise CarrierError(
                CARRIER_NAME, code=NETWORK_ERROR, message=f"Network error: {e}",
                retryable=True, cause=e,
            )

        logger.debug(f"Purolator {action} -> {response.status_code}")
        if response.status_code != 200:
            raise self._parse_error(response)
        return self._open_response(response.content, action)

    @staticmethod
    def _fault_error(root: ET.Element) -> Optional[CarrierError]:
        fault = root.find(".//Fault")
        if fault is None:
            return None
        return CarrierError(
            CARRIER_NAME,
            code=find_text(fault, "faultcode") or "SOAP_FAULT",
            message=find_text(fault, "faultstring") or "SOAP fault",
        )

    def _parse_error(self, response: httpx.Response) -> CarrierError:
        try:
            fault = self._fault_error(parse_xml(response.content))
        except ET.ParseError:
            fault = None

        if fault is not None:
            logger.error(f"Purolator SOAP fault ({response.status_code}): {fault.code} - {fault.message}")
            return fault.with_status_code(response.status_code)

        logger.error(f"Purolator HTTP error: {response.status_code} - {sanitize_for_logging(response.text)}")
        return error_from_status(CARRIER_NAME, response.status_code, response.text)

    def _open_response(self, body: bytes, action: str) -> ET.Element:
        try:
            root = parse_xml(body)
        except ET.ParseError as e:
            raise CarrierError(
                CARRIER_NAME, code=PARSE_ERROR, message=f"failed to parse {action} response", cause=e,
            )

        fault = self._fault_error(root)
        if fault is not None:
            logger.error(f"Purolator SOAP fault: {fault.code} - {fault.message}")
            raise fault

        result = root.find(f".//{action}Response")
        if result is None:
            raise CarrierError(CARRIER_NAME, code=PARSE_ERROR, message=f"no {action}Response in body")

        error = result.find("ResponseInformation/Errors/Error")
        if error is not None:
            code = find_text(error, "Code")
            description = find_text(error, "Description")
            logger.error(f"Purolator {action} error: {code} - {description}")
            raise CarrierError(CARRIER_NAME, code=code or None, message=description or None)

        return result

    # ==================== Operations ====================

    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        result = await self._call(ESTIMATING_PATH, "GetFullEstimate", self.build_rates_request(request))

        rates = []
        for estimate in result.iterfind("ShipmentEstimates/ShipmentEstimate"):
            fuel_surcharge = 0.0
            for surcharge in estimate.iterfind("Surcharges/Surcharge"):
                if find_text(surcharge, "Type") in FUEL_SURCHARGE_TYPES:
                    fuel_surcharge = find_float(surcharge, "Amount")

            taxes = sum(find_float(tax, "Amount") for tax in estimate.iterfind("Taxes/Tax"))
            service_id = find_text(estimate, "ServiceID")
            rates.append(ShipmentRate(
                service_code=service_id,
                service_name=service_name(service_id),
                base_price=find_float(estimate, "BasePrice"),
                fuel_surcharge=fuel_surcharge,
                taxes=round(taxes, 2),
                total_price=find_float(estimate, "TotalPrice"),
                expected_delivery_date=find_text(estimate, "ExpectedDeliveryDate"),
                estimated_transit_days=find_int(estimate, "EstimatedTransitDays"),
                guaranteed_delivery=is_guaranteed_service(service_id),
            ))

        return RatesResponse(quote_id=f"quote-{time.time_ns()}", shipment_rates=rates)

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        result = await self._call(SHIPPING_PATH, "CreateShipment", self.build_shipment_request(request))

        shipment_pin = find_text(result, "ShipmentPIN/Value")
        return ShipmentResponse(
            shipment_pin=shipment_pin,
            tracking_number=shipment_pin,
            total_price=find_float(result, "TotalPrice"),
            expected_delivery_date=find_text(result, "ExpectedDeliveryDate"),
            piece_pins=[find_text(pin, "Value") for pin in result.iterfind("PiecePINs/PIN")],
        )

    async def get_label(self, shipment_pin: str, label_format: str) -> LabelResponse:
        result = await self._call(DOCUMENTS_PATH, "GetDocuments", self.build_documents_request(shipment_pin))

        for detail in result.iterfind("Documents/Document/DocumentDetails/DocumentDetail"):
            if find_text(detail, "DocumentStatus") != DOCUMENT_COMPLETED:
                continue
            try:
                data = base64.b64decode(find_text(detail, "Data"), validate=True)
            except (binascii.Error, ValueError) as e:
                raise CarrierError(
                    CARRIER_NAME, code=PARSE_ERROR, message="failed to decode label data", cause=e,
                )
            return LabelResponse(shipment_pin=shipment_pin, format=label_format, data=data)

        raise CarrierError(CARRIER_NAME, code=LABEL_NOT_FOUND, message="No completed label found in response")

    async def void_shipment(self, shipment_pin: str) -> VoidResponse:
        result = await self._call(SHIPPING_PATH, "VoidShipment", self.build_void_request(shipment_pin))

        if find_text(result, "ShipmentVoided").lower() == "true":
            return VoidResponse(shipment_pin=shipment_pin, status="voided", message="Shipment successfully voided")
        return VoidResponse(shipment_pin=shipment_pin, status="failed", message="Failed to void shipment")

    async def get_tracking(self, tracking_pin: str) -> TrackingResponse:
        result = await self._call(TRACKING_PATH, "TrackPackagesByPin", self.build_tracking_request(tracking_pin))

        for info in result.iterfind("TrackingInformationList/TrackingInformation"):
            if find_text(info, "PIN/Value") != tracking_pin:
                continue

            events = []
            for scan in info.iterfind("Scans/Scan"):
                location = find_text(scan, "Depot/Address/City")
                province = find_text(scan, "Depot/Address/Province")
                if province:
                    location = f"{location}, {province}"
                events.append(WireTrackingEvent(
                    timestamp=f"{find_text(scan, 'ScanDate')}T{find_text(scan, 'ScanTime')}",
                    description=find_text(scan, "Description"),
                    location=location,
                    type=find_text(scan, "ScanType"),
                ))

            # scans are newest first
            latest = events[0].type if events else ""
            return TrackingResponse(
                tracking_pin=tracking_pin,
                status=latest,
                delivery_status=delivery_status_display(latest),
                events=events,
            )

        raise CarrierError(
            CARRIER_NAME, code=TRACKING_NOT_FOUND, message=f"Tracking information not found for PIN {tracking_pin}",
        )
