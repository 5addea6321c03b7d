import base64

import httpx
import pytest

from delivro_logistic.core.exceptions import (
    CancellationNotAllowedError,
    CarrierError,
    LABEL_NOT_FOUND,
    PARSE_ERROR,
    ServiceUnavailableError,
    TRACKING_NOT_FOUND,
)
from delivro_logistic.modules.shipping.carriers.purolator.api import PhoneNumber
from delivro_logistic.modules.shipping.carriers.purolator.api_mock import (
    MOCK_LABEL_DATA,
    MockPurolatorAPIClient,
)
from delivro_logistic.modules.shipping.carriers.purolator.api_soap import (
    ESTIMATING_PATH,
    SOAP_ACTION_BASE,
    SOAPPurolatorAPIClient,
)
from delivro_logistic.modules.shipping.carriers.purolator.carrier import (
    PurolatorCarrier,
    PurolatorConfig,
    extract_service_code,
    map_status,
    split_street,
)
from delivro_logistic.modules.shipping.carriers.xml_utils import parse_xml
from delivro_logistic.modules.shipping.models import (
    CancelOrderRequest,
    GetLabelRequest,
    Package,
    ServiceType,
    ShipmentStatus,
    TrackingRequest,
)

BASE_URL = "https://purolator.test"
SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"
DATA_NS = "http://purolator.com/pws/datatypes/v2"


def _envelope(body: str) -> bytes:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<s:Envelope xmlns:s="{SOAP_NS}">
  <s:Body>{body}</s:Body>
</s:Envelope>""".encode()


def _fault(code: str, message: str) -> str:
    return f"<s:Fault><faultcode>{code}</faultcode><faultstring>{message}</faultstring></s:Fault>"


ESTIMATE_BODY = f"""<GetFullEstimateResponse xmlns="{DATA_NS}">
  <ResponseInformation><Errors/><InformationalMessages/></ResponseInformation>
  <ShipmentEstimates>
    <ShipmentEstimate>
      <ServiceID>PurolatorExpress9AM</ServiceID>
      <ExpectedDeliveryDate>2026-10-20</ExpectedDeliveryDate>
      <EstimatedTransitDays>1</EstimatedTransitDays>
      <BasePrice>45.00</BasePrice>
      <Surcharges>
        <Surcharge><Amount>1.50</Amount><Type>ResidentialDelivery</Type></Surcharge>
        <Surcharge><Amount>5.40</Amount><Type>Fuel</Type></Surcharge>
      </Surcharges>
      <Taxes>
        <Tax><Amount>2.55</Amount><Type>GST</Type></Tax>
        <Tax><Amount>4.00</Amount><Type>QST</Type></Tax>
      </Taxes>
      <TotalPrice>58.45</TotalPrice>
    </ShipmentEstimate>
  </ShipmentEstimates>
</GetFullEstimateResponse>"""


def _soap_client(handler) -> SOAPPurolatorAPIClient:
    return SOAPPurolatorAPIClient(
        base_url=BASE_URL,
        username="puro-user",
        password="puro-pass",
        transport=httpx.MockTransport(handler),
    )


def _carrier(api_client=None) -> PurolatorCarrier:
    config = PurolatorConfig(account_number="9999999999")
    return PurolatorCarrier.with_api_client(config, api_client or MockPurolatorAPIClient())


def _respond(status: int, body: str):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=_envelope(body))
    return handler


# =============================================================================
# SOAP client over httpx.MockTransport
# =============================================================================

@pytest.mark.asyncio
async def test_estimate_request_and_response(quote_request):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, content=_envelope(ESTIMATE_BODY))

    carrier = _carrier(_soap_client(handler))
    quote = await carrier.get_quote(quote_request)
    await carrier.close()

    request = seen["request"]
    assert request.url.path == ESTIMATING_PATH
    assert request.headers["SOAPAction"] == f"{SOAP_ACTION_BASE}/GetFullEstimate"
    assert request.headers["Content-Type"] == "text/xml; charset=utf-8"
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"puro-user:puro-pass").decode()

    body = parse_xml(request.content)
    assert body.findtext(".//RequestContext/GroupID") == "xxx"
    assert body.findtext(".//PackageInformation/TotalWeight/Value") == "2.50"
    assert body.findtext(".//PaymentInformation/RegisteredAccountNumber") == "9999999999"

    rate = quote.rates[0]
    assert quote.quote_id.startswith("puro-quote-")
    assert rate.rate_id.startswith("puro-PurolatorExpress9AM-")
    assert rate.service_name == "Purolator Express 9AM"
    assert rate.service_type == ServiceType.OVERNIGHT
    assert str(rate.fuel_surcharge.amount) == "5.40"
    assert str(rate.taxes.amount) == "6.55"
    assert rate.guaranteed
    assert rate.transit_days == 1


def test_envelope_escapes_text():
    client = SOAPPurolatorAPIClient(base_url=BASE_URL, username="u", password="p", group_id="a&b")

    envelope = client.build_void_request("<pin>&1")

    assert "<v2:GroupID>a&amp;b</v2:GroupID>" in envelope
    assert "<v2:Value>&lt;pin&gt;&amp;1</v2:Value>" in envelope
    assert parse_xml(envelope).findtext(".//VoidShipmentRequest/PIN/Value") == "<pin>&1"


@pytest.mark.asyncio
async def test_fault_wins_over_populated_estimate(quote_request):
    carrier = _carrier(_soap_client(_respond(200, _fault("s:Client", "Invalid account") + ESTIMATE_BODY)))

    with pytest.raises(CarrierError) as exc_info:
        await carrier.get_quote(quote_request)
    await carrier.close()

    assert exc_info.value.code == "s:Client"
    assert exc_info.value.message == "Invalid account"


@pytest.mark.asyncio
async def test_response_information_error_beside_estimates_raised(quote_request):
    body = ESTIMATE_BODY.replace(
        "<ResponseInformation><Errors/><InformationalMessages/></ResponseInformation>",
        "<ResponseInformation><Errors>"
        "<Error><Code>1100698</Code><Description>Invalid receiver postal code</Description></Error>"
        "</Errors></ResponseInformation>",
    )
    carrier = _carrier(_soap_client(_respond(200, body)))

    with pytest.raises(CarrierError) as exc_info:
        await carrier.get_quote(quote_request)
    await carrier.close()

    assert exc_info.value.code == "1100698"
    assert exc_info.value.message == "Invalid receiver postal code"


@pytest.mark.asyncio
async def test_negative_estimate_amount_is_parse_error(quote_request):
    body = ESTIMATE_BODY.replace("<TotalPrice>58.45</TotalPrice>", "<TotalPrice>-58.45</TotalPrice>")
    carrier = _carrier(_soap_client(_respond(200, body)))

    with pytest.raises(CarrierError) as exc_info:
        await carrier.get_quote(quote_request)
    await carrier.close()

    assert exc_info.value.code == PARSE_ERROR


@pytest.mark.asyncio
async def test_fault_on_server_error_keeps_fault_code():
    client = _soap_client(_respond(500, _fault("s:Server", "Backend down")))

    with pytest.raises(CarrierError) as exc_info:
        await client.void_shipment("329000000001")
    await client.close()

    assert exc_info.value.code == "s:Server"
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_server_error_without_fault_is_service_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream unavailable")

    client = _soap_client(handler)
    with pytest.raises(ServiceUnavailableError):
        await client.void_shipment("329000000001")
    await client.close()


@pytest.mark.asyncio
async def test_missing_response_element_is_parse_error():
    client = _soap_client(_respond(200, "<Unexpected/>"))

    with pytest.raises(CarrierError) as exc_info:
        await client.void_shipment("329000000001")
    await client.close()

    assert exc_info.value.code == PARSE_ERROR


@pytest.mark.asyncio
async def test_response_information_error_raised():
    body = f"""<VoidShipmentResponse xmlns="{DATA_NS}">
      <ResponseInformation>
        <Errors>
          <Error><Code>1100519</Code><Description>Shipment already picked up</Description></Error>
        </Errors>
      </ResponseInformation>
    </VoidShipmentResponse>"""
    client = _soap_client(_respond(200, body))

    with pytest.raises(CarrierError) as exc_info:
        await client.void_shipment("329000000001")
    await client.close()

    assert exc_info.value.code == "1100519"
    assert exc_info.value.message == "Shipment already picked up"


@pytest.mark.asyncio
async def test_unvoided_shipment_cannot_be_cancelled():
    body = f"""<VoidShipmentResponse xmlns="{DATA_NS}">
      <ResponseInformation><Errors/></ResponseInformation>
      <ShipmentVoided>false</ShipmentVoided>
    </VoidShipmentResponse>"""
    carrier = _carrier(_soap_client(_respond(200, body)))

    with pytest.raises(CancellationNotAllowedError):
        await carrier.cancel_order(CancelOrderRequest(order_id="puro-329000000001"))
    await carrier.close()


@pytest.mark.asyncio
async def test_create_shipment_reads_pin(make_order_request):
    body = f"""<CreateShipmentResponse xmlns="{DATA_NS}">
      <ResponseInformation><Errors/></ResponseInformation>
      <ShipmentPIN><Value>329000000042</Value></ShipmentPIN>
      <PiecePINs><PIN><Value>329000000043</Value></PIN></PiecePINs>
    </CreateShipmentResponse>"""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = parse_xml(request.content)
        return httpx.Response(200, content=_envelope(body))

    carrier = _carrier(_soap_client(handler))
    order = await carrier.create_order(make_order_request("puro-PurolatorExpress-20261019120000"))
    await carrier.close()

    sent = seen["body"]
    assert sent.findtext(".//PackageInformation/ServiceID") == "PurolatorExpress"
    assert sent.findtext(".//SenderInformation/Address/StreetNumber") == "100"
    assert sent.findtext(".//SenderInformation/Address/StreetName") == "King St W"
    assert sent.findtext(".//ReceiverInformation/Address/PhoneNumber/AreaCode") == "514"
    assert order.order_id == "puro-329000000042"
    assert order.tracking_number == "329000000042"
    assert order.status == ShipmentStatus.CONFIRMED
    assert order.tracking_url.endswith("pin=329000000042")


def _documents_body(status: str, data: str) -> str:
    return f"""<GetDocumentsResponse xmlns="{DATA_NS}">
      <ResponseInformation><Errors/></ResponseInformation>
      <Documents>
        <Document>
          <PIN><Value>329000000042</Value></PIN>
          <DocumentDetails>
            <DocumentDetail>
              <DocumentType>DomesticBillOfLading</DocumentType>
              <DocumentStatus>{status}</DocumentStatus>
              <Data>{data}</Data>
            </DocumentDetail>
          </DocumentDetails>
        </Document>
      </Documents>
    </GetDocumentsResponse>"""


@pytest.mark.asyncio
async def test_completed_document_decoded():
    pdf = b"%PDF-1.4 purolator"
    client = _soap_client(_respond(200, _documents_body("Completed", base64.b64encode(pdf).decode())))

    label = await client.get_label("329000000042", "application/pdf")
    await client.close()

    assert label.data == pdf


@pytest.mark.asyncio
async def test_pending_document_is_label_not_found():
    client = _soap_client(_respond(200, _documents_body("Pending", "")))

    with pytest.raises(CarrierError) as exc_info:
        await client.get_label("329000000042", "application/pdf")
    await client.close()

    assert exc_info.value.code == LABEL_NOT_FOUND


@pytest.mark.asyncio
async def test_corrupt_document_is_parse_error():
    client = _soap_client(_respond(200, _documents_body("Completed", "not*base64!")))

    with pytest.raises(CarrierError) as exc_info:
        await client.get_label("329000000042", "application/pdf")
    await client.close()

    assert exc_info.value.code == PARSE_ERROR


def _tracking_body(pin: str) -> str:
    return f"""<TrackPackagesByPinResponse xmlns="http://purolator.com/pws/datatypes/v1">
      <ResponseInformation><Errors/></ResponseInformation>
      <TrackingInformationList>
        <TrackingInformation>
          <PIN><Value>{pin}</Value></PIN>
          <Scans>
            <Scan>
              <ScanType>Delivered</ScanType>
              <ScanDate>2026-10-18</ScanDate>
              <ScanTime>14:05:00</ScanTime>
              <Description>Shipment delivered</Description>
              <Depot><Address><City>Montreal</City><Province>QC</Province></Address></Depot>
            </Scan>
            <Scan>
              <ScanType>PickedUp</ScanType>
              <ScanDate>2026-10-16</ScanDate>
              <ScanTime>09:30:00</ScanTime>
              <Description>Picked up</Description>
              <Depot><Address><City>Toronto</City></Address></Depot>
            </Scan>
          </Scans>
        </TrackingInformation>
      </TrackingInformationList>
    </TrackPackagesByPinResponse>"""


@pytest.mark.asyncio
async def test_tracking_uses_latest_scan():
    carrier = _carrier(_soap_client(_respond(200, _tracking_body("329000000042"))))

    tracking = await carrier.get_tracking(TrackingRequest(order_id="puro-329000000042"))
    await carrier.close()

    assert tracking.status == ShipmentStatus.DELIVERED
    assert tracking.events[0].location == "Montreal, QC"
    assert tracking.events[0].timestamp.day == 18
    assert tracking.events[1].location == "Toronto"
    assert tracking.events[1].status == ShipmentStatus.PICKED_UP


@pytest.mark.asyncio
async def test_tracking_pin_mismatch_is_not_found():
    client = _soap_client(_respond(200, _tracking_body("329000000099")))

    with pytest.raises(CarrierError) as exc_info:
        await client.get_tracking("329000000042")
    await client.close()

    assert exc_info.value.code == TRACKING_NOT_FOUND


# =============================================================================
# Adapter over the mock transport
# =============================================================================

@pytest.mark.asyncio
async def test_quote_from_mock(quote_request):
    quote = await _carrier().get_quote(quote_request)

    assert [r.service_code for r in quote.rates] == ["PurolatorGround", "PurolatorExpress", "PurolatorExpress9AM"]
    for rate in quote.rates:
        assert extract_service_code(rate.rate_id) == rate.service_code
        assert rate.is_total_consistent()


@pytest.mark.asyncio
async def test_packages_are_summed(quote_request):
    api = MockPurolatorAPIClient()
    seen = {}
    default_rates = api._default_rates

    async def capture(request):
        seen["request"] = request
        return default_rates(request)

    api.on_get_rates = capture
    quote_request.packages.append(Package(length=10, width=10, height=10, weight=1.5))

    await _carrier(api).get_quote(quote_request)

    info = seen["request"].package_information
    assert info.total_pieces == 2
    assert info.total_weight.value == 4.0


@pytest.mark.asyncio
async def test_order_label_cancel_tracking_from_mock(make_order_request):
    carrier = _carrier()

    order = await carrier.create_order(make_order_request("puro-PurolatorGround-20261019120000"))
    label = await carrier.get_label(GetLabelRequest(order_id=order.order_id))
    cancelled = await carrier.cancel_order(CancelOrderRequest(order_id=order.order_id))
    tracking = await carrier.get_tracking(TrackingRequest(order_id=order.order_id, tracking_number=order.tracking_number))

    assert order.order_id.startswith("puro-ship-")
    assert order.service_name == "Purolator Ground"
    assert order.label_url.endswith("/label.pdf")
    assert base64.b64decode(label.label.data) == MOCK_LABEL_DATA
    assert cancelled.confirmation_number.endswith("-VOID")
    assert tracking.status == ShipmentStatus.IN_TRANSIT


def test_extract_service_code_prefers_longest_match():
    assert extract_service_code("puro-PurolatorExpress10:30AM-20261019120000") == "PurolatorExpress10:30AM"
    assert extract_service_code("legacy-PurolatorExpress9AM") == "PurolatorExpress9AM"
    assert extract_service_code("legacy-PurolatorExpress") == "PurolatorExpress"
    assert extract_service_code("") == "PurolatorGround"


def test_helpers():
    assert split_street("123 Main St") == ("123", "Main St")
    assert split_street("Unit B Main St") == ("", "Unit B Main St")
    assert map_status("OutForDelivery") == ShipmentStatus.OUT_FOR_DELIVERY
    assert map_status("ReturnToSender") == ShipmentStatus.EXCEPTION
    phone = PhoneNumber.parse("1 (514) 555-0199")
    assert (phone.area_code, phone.phone) == ("514", "5550199")
