import base64

import pytest
import pytest_asyncio

from delivro_logistic.core.exceptions import CarrierNotFoundError
from delivro_logistic.modules.shipping.carriers import build_registry
from delivro_logistic.modules.shipping.carriers.mock import MockCarrier
from delivro_logistic.modules.shipping.carriers.registry import CarrierRegistry
from delivro_logistic.modules.shipping.models import (
    CancelOrderRequest,
    GetLabelRequest,
    ServiceType,
    ShipmentStatus,
    TrackingRequest,
)
from delivro_logistic.services import MultiCarrierService


def _mock_service(*names: str) -> MultiCarrierService:
    registry = CarrierRegistry()
    for name in names:
        registry.register(MockCarrier(name))
    return MultiCarrierService(registry)


@pytest_asyncio.fixture
async def live_service(mock_settings):
    registry = build_registry(mock_settings)
    yield MultiCarrierService(registry)
    await registry.close()


@pytest.mark.asyncio
async def test_rates_merged_and_sorted_by_price(quote_request):
    quote = await _mock_service("alpha", "beta").get_quotes(quote_request)

    totals = [rate.total_price.amount for rate in quote.rates]
    assert len(quote.rates) == 4
    assert totals == sorted(totals)
    assert sorted(quote.carriers) == ["alpha", "beta"]
    assert quote.quote_id.startswith("mq-")
    assert quote.errors == []


@pytest.mark.asyncio
async def test_service_type_filter(quote_request):
    quote_request.options.service_types = [ServiceType.EXPRESS]

    quote = await _mock_service("alpha", "beta").get_quotes(quote_request)

    assert len(quote.rates) == 2
    assert {rate.service_type for rate in quote.rates} == {ServiceType.EXPRESS}


@pytest.mark.asyncio
async def test_carrier_subset_and_unknown_names(quote_request):
    quote_request.options.carriers = ["beta", "dhl"]

    quote = await _mock_service("alpha", "beta").get_quotes(quote_request)

    assert quote.carriers == ["beta"]
    assert len(quote.errors) == 1
    assert isinstance(quote.errors[0], CarrierNotFoundError)


@pytest.mark.asyncio
async def test_quote_to_dict(quote_request):
    quote = await _mock_service("alpha").get_quotes(quote_request)

    data = quote.to_dict()

    assert data["quote_id"] == quote.quote_id
    assert data["rates"][0]["total_price"] == "15.82"
    assert data["rates"][0]["service_type"] == "standard"
    assert data["expires_at"] == quote.expires_at.isoformat()
    assert data["errors"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("rate_id", ["ups-123", "fc_123", ""])
async def test_unroutable_rate_id(rate_id, make_order_request):
    service = _mock_service("alpha")

    with pytest.raises(CarrierNotFoundError):
        await service.create_order(make_order_request(rate_id))


@pytest.mark.asyncio
async def test_unregistered_carrier_for_known_prefix():
    service = _mock_service("alpha")

    with pytest.raises(CarrierNotFoundError):
        await service.cancel_order(CancelOrderRequest(order_id="puro-ship-1"))


@pytest.mark.asyncio
async def test_quotes_from_every_carrier(live_service, quote_request):
    quote = await live_service.get_quotes(quote_request)

    assert quote.errors == []
    assert sorted(quote.carriers) == ["canadapost", "freightcom", "purolator"]
    assert len(quote.rates) == 9
    for rate in quote.rates:
        assert rate.rate_id.startswith({"freightcom": "fc-", "canadapost": "cp-", "purolator": "puro-"}[rate.carrier])


@pytest.mark.asyncio
@pytest.mark.parametrize("carrier", ["freightcom", "canadapost", "purolator"])
async def test_order_lifecycle_routes_by_id(carrier, live_service, quote_request, make_order_request):
    quote = await live_service.get_quotes(quote_request)
    rate = next(r for r in quote.rates if r.carrier == carrier)

    order = await live_service.create_order(make_order_request(rate.rate_id))
    label = await live_service.get_label(GetLabelRequest(order_id=order.order_id))
    tracking = await live_service.get_tracking(
        TrackingRequest(order_id=order.order_id, tracking_number=order.tracking_number)
    )
    cancelled = await live_service.cancel_order(CancelOrderRequest(order_id=order.order_id))

    assert order.carrier == carrier
    assert label.order_id == order.order_id
    assert label.label.url or base64.b64decode(label.label.data)
    assert tracking.status == ShipmentStatus.IN_TRANSIT
    assert cancelled.status == ShipmentStatus.CANCELLED


@pytest.mark.asyncio
async def test_one_failing_carrier_is_reported(mock_settings, quote_request):
    registry = build_registry(mock_settings)
    registry.get("canadapost").api_client.simulate_errors = True
    service = MultiCarrierService(registry)

    quote = await service.get_quotes(quote_request)
    await registry.close()

    assert sorted(quote.carriers) == ["freightcom", "purolator"]
    assert len(quote.errors) == 1
    assert str(quote.errors[0]).startswith("canadapost: ")
