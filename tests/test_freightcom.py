import json
from decimal import Decimal

import httpx
import pytest

from delivro_logistic.core.exceptions import (
    AuthenticationFailedError,
    CarrierError,
    LabelNotAvailableError,
    PARSE_ERROR,
    ServiceUnavailableError,
    TIMEOUT,
    is_retryable,
)
from delivro_logistic.modules.shipping.carriers.freightcom.api import (
    PackagingInfo,
    RatesRequest,
    ShippingDetails,
    Location,
    WirePackage,
)
from delivro_logistic.modules.shipping.carriers.freightcom.api_http import HTTPFreightcomAPIClient
from delivro_logistic.modules.shipping.carriers.freightcom.api_mock import MockFreightcomAPIClient
from delivro_logistic.modules.shipping.carriers.freightcom.carrier import (
    FreightcomCarrier,
    FreightcomConfig,
    extract_service_id,
    map_status,
)
from delivro_logistic.modules.shipping.models import (
    CancelOrderRequest,
    GetLabelRequest,
    LabelFormat,
    ShipmentStatus,
    TrackingRequest,
)

BASE_URL = "https://freightcom.test/v1"


def _carrier(api_client=None) -> FreightcomCarrier:
    return FreightcomCarrier.with_api_client(FreightcomConfig(payment_method_id="pm-1"), api_client or MockFreightcomAPIClient())


def _http_client(handler, poll_timeout: float = 5.0) -> HTTPFreightcomAPIClient:
    return HTTPFreightcomAPIClient(
        base_url=BASE_URL,
        api_key="fc-test-key",
        poll_interval=0,
        poll_timeout=poll_timeout,
        transport=httpx.MockTransport(handler),
    )


def _rates_request() -> RatesRequest:
    location = Location(address_1="1 Main", city="Toronto", province="ON", postal_code="M5X1A9", country="CA")
    return RatesRequest(details=ShippingDetails(
        origin=location,
        destination=location,
        packaging=PackagingInfo(packages=[WirePackage(length=10, width=10, height=10, weight=1)]),
    ))


# =============================================================================
# Adapter over the mock transport
# =============================================================================

@pytest.mark.asyncio
async def test_quote_ids_carry_prefix_and_service_id(quote_request):
    quote = await _carrier().get_quote(quote_request)

    assert quote.quote_id.startswith("fc-")
    assert len(quote.rates) == 3
    assert [r.rate_id.split("-")[1] for r in quote.rates] == ["101", "102", "201"]
    for rate in quote.rates:
        assert rate.carrier == "freightcom"
        assert rate.is_total_consistent()
        assert rate.total_price.currency == "CAD"
    assert quote.expires_at == min(r.expires_at for r in quote.rates)


@pytest.mark.asyncio
async def test_create_order_strips_rate_prefix_and_prefixes_order_id(make_order_request):
    api = MockFreightcomAPIClient()
    seen = {}
    default_shipment = api._default_shipment

    async def capture(request):
        seen["request"] = request
        return default_shipment(request)

    api.on_create_shipment = capture
    order = await _carrier(api).create_order(make_order_request("fc-102-rate-abc", reference="PO-77"))

    shipment_request = seen["request"]
    assert shipment_request.service_id == 102
    assert shipment_request.unique_id == "PO-77"
    assert shipment_request.payment_method_id == "pm-1"
    assert order.order_id.startswith("fc-ship-")
    assert order.status == ShipmentStatus.CONFIRMED
    assert order.total_charged.amount == Decimal("20.24")
    assert order.tracking_number


@pytest.mark.asyncio
async def test_label_cancel_and_tracking_use_raw_shipment_id():
    api = MockFreightcomAPIClient()
    carrier = _carrier(api)

    label = await carrier.get_label(GetLabelRequest(order_id="fc-ship-1", format=LabelFormat.ZPL))
    cancelled = await carrier.cancel_order(CancelOrderRequest(order_id="fc-ship-1", reason="customer request"))
    tracking = await carrier.get_tracking(TrackingRequest(order_id="fc-ship-1"))

    assert label.order_id == "fc-ship-1"
    assert label.label.format == LabelFormat.ZPL
    assert label.label.url.endswith("/shipment/ship-1/label.zpl")
    assert cancelled.status == ShipmentStatus.CANCELLED
    assert cancelled.refund_amount.amount == Decimal("20.24")
    assert tracking.status == ShipmentStatus.IN_TRANSIT
    assert [e.status for e in tracking.events] == [ShipmentStatus.PICKED_UP, ShipmentStatus.IN_TRANSIT]
    assert api.calls == ["get_label", "cancel_shipment", "get_tracking"]


@pytest.mark.asyncio
async def test_simulated_errors_propagate(quote_request):
    carrier = _carrier(MockFreightcomAPIClient(simulate_errors=True))

    with pytest.raises(CarrierError) as exc_info:
        await carrier.get_quote(quote_request)

    assert exc_info.value.code == "MOCK_ERROR"


def test_extract_service_id():
    assert extract_service_id("fc-201-rate-xyz") == 201
    assert extract_service_id("fc-rate-xyz") == 101
    assert extract_service_id("") == 101


def test_status_mapping():
    assert map_status("booked") == ShipmentStatus.CONFIRMED
    assert map_status("DELIVERED") == ShipmentStatus.DELIVERED
    assert map_status("something-new") == ShipmentStatus.PENDING


# =============================================================================
# HTTP client over httpx.MockTransport
# =============================================================================

def _rates_payload(status: str) -> dict:
    payload = {"request_id": "req-1", "status": status}
    if status == "complete":
        payload["rates"] = [{
            "id": "rate-1", "service_id": 101, "service_code": "FEDEX_GROUND", "service_name": "FedEx Ground",
            "base_rate": 15.99, "fuel_surcharge": 1.92, "total_tax": 2.33, "total_price": 20.24,
        }]
    return payload


@pytest.mark.asyncio
@pytest.mark.parametrize("pending_polls", [0, 1, 3])
async def test_rates_poll_until_complete(pending_polls):
    polls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal polls
        if request.method == "POST":
            assert request.url.path == "/v1/rate"
            assert request.headers["X-API-Key"] == "fc-test-key"
            return httpx.Response(202, json={"request_id": "req-1"})
        assert request.url.path == "/v1/rate/req-1"
        polls += 1
        status = "pending" if polls <= pending_polls else "complete"
        return httpx.Response(200, json=_rates_payload(status))

    client = _http_client(handler)
    result = await client.get_rates(_rates_request())
    await client.close()

    assert polls == pending_polls + 1
    assert result.status == "complete"
    assert result.rates[0].total_price == 20.24


@pytest.mark.asyncio
async def test_rates_poll_times_out_when_never_complete():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"request_id": "req-1"})
        return httpx.Response(200, json=_rates_payload("pending"))

    client = _http_client(handler, poll_timeout=0.05)
    with pytest.raises(CarrierError) as exc_info:
        await client.get_rates(_rates_request())
    await client.close()

    assert exc_info.value.code == TIMEOUT


@pytest.mark.asyncio
async def test_rates_error_status_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"request_id": "req-1"})
        return httpx.Response(200, json={"request_id": "req-1", "status": "error", "error": "no service"})

    client = _http_client(handler)
    with pytest.raises(CarrierError) as exc_info:
        await client.get_rates(_rates_request())
    await client.close()

    assert exc_info.value.code == "RATE_ERROR"
    assert exc_info.value.message == "no service"


@pytest.mark.asyncio
async def test_structured_error_body_keeps_carrier_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"code": "INVALID_POSTAL_CODE", "message": "postal code invalid", "errors": ["origin"]},
        )

    client = _http_client(handler)
    with pytest.raises(CarrierError) as exc_info:
        await client.get_rates(_rates_request())
    await client.close()

    error = exc_info.value
    assert error.code == "INVALID_POSTAL_CODE"
    assert error.status_code == 400
    assert error.details["errors"] == ["origin"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error_cls",
    [(401, AuthenticationFailedError), (503, ServiceUnavailableError)],
)
async def test_status_codes_map_to_shared_errors(status, error_cls):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="nope")

    client = _http_client(handler)
    with pytest.raises(error_cls) as exc_info:
        await client.get_rates(_rates_request())
    await client.close()

    assert exc_info.value.message == "nope"


@pytest.mark.asyncio
async def test_transport_failure_is_retryable_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _http_client(handler)
    with pytest.raises(CarrierError) as exc_info:
        await client.get_rates(_rates_request())
    await client.close()

    assert exc_info.value.code == "NETWORK_ERROR"
    assert is_retryable(exc_info.value)


@pytest.mark.asyncio
async def test_create_shipment_polls_while_pending(make_order_request):
    gets = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal gets
        if request.method == "POST":
            body = json.loads(request.content)
            assert body["service_id"] == 101
            assert body["unique_id"]
            return httpx.Response(202, json={"id": "ship-9", "status": "pending"})
        gets += 1
        status = "processing" if gets < 2 else "booked"
        return httpx.Response(200, json={
            "id": "ship-9", "status": status, "tracking_numbers": ["TRK9"], "total_charged": 20.24,
        })

    carrier = _carrier(_http_client(handler))
    order = await carrier.create_order(make_order_request("fc-101-rate-1"))
    await carrier.close()

    assert gets == 2
    assert order.order_id == "fc-ship-9"
    assert order.tracking_number == "TRK9"
    assert order.status == ShipmentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_cancel_with_no_content_is_cancelled():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert request.url.path == "/v1/shipment/ship-9"
        return httpx.Response(204)

    carrier = _carrier(_http_client(handler))
    result = await carrier.cancel_order(CancelOrderRequest(order_id="fc-ship-9"))
    await carrier.close()

    assert result.status == ShipmentStatus.CANCELLED
    assert result.refund_amount is None


@pytest.mark.asyncio
async def test_get_label_filters_by_format():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "id": "ship-9",
            "status": "booked",
            "labels": [
                {"format": "PDF", "url": "https://labels.test/9.pdf"},
                {"format": "zpl", "url": "https://labels.test/9.zpl"},
            ],
        })

    carrier = _carrier(_http_client(handler))
    result = await carrier.get_label(GetLabelRequest(order_id="fc-ship-9", format=LabelFormat.PDF))
    await carrier.close()

    assert result.label.url == "https://labels.test/9.pdf"
    assert result.additional_labels == []


@pytest.mark.asyncio
async def test_get_label_without_requested_format_is_not_available():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "id": "ship-9",
            "status": "booked",
            "labels": [{"format": "zpl", "url": "https://labels.test/9.zpl"}],
        })

    carrier = _carrier(_http_client(handler))
    with pytest.raises(LabelNotAvailableError):
        await carrier.get_label(GetLabelRequest(order_id="fc-ship-9", format=LabelFormat.PDF))
    await carrier.close()


# =============================================================================
# Malformed payloads
# =============================================================================

FEDEX_GROUND = _rates_payload("complete")["rates"][0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "rates",
    [
        [{**FEDEX_GROUND, "base_rate": "n/a"}],
        ["oops"],
        [{**FEDEX_GROUND, "fuel_surcharge": -1.0}],
        {"id": "not-a-list"},
    ],
    ids=["non-numeric-amount", "non-object-rate", "negative-surcharge", "rates-not-a-list"],
)
async def test_malformed_rates_are_parse_errors(rates, quote_request):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(202, json={"request_id": "req-1"})
        return httpx.Response(200, json={"request_id": "req-1", "status": "complete", "rates": rates})

    carrier = _carrier(_http_client(handler))
    with pytest.raises(CarrierError) as exc_info:
        await carrier.get_quote(quote_request)
    await carrier.close()

    assert exc_info.value.code == PARSE_ERROR
    assert exc_info.value.carrier == "freightcom"


@pytest.mark.asyncio
@pytest.mark.parametrize("total_charged", ["twenty", -20.24])
async def test_malformed_shipment_charge_is_parse_error(total_charged, make_order_request):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json={"id": "ship-9", "status": "booked", "total_charged": total_charged})

    carrier = _carrier(_http_client(handler))
    with pytest.raises(CarrierError) as exc_info:
        await carrier.create_order(make_order_request("fc-101-rate-1"))
    await carrier.close()

    assert exc_info.value.code == PARSE_ERROR
