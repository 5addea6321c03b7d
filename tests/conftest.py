"""
Pytest configuration and fixtures for Delivro Logistic tests.
"""
import os

import pytest

# Set test environment before importing package modules
os.environ["ENVIRONMENT"] = "test"

from delivro_logistic.core.config import Settings, get_settings  # noqa: E402
from delivro_logistic.modules.shipping.models import (  # noqa: E402
    Address,
    Contact,
    CreateOrderRequest,
    Package,
    QuoteRequest,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def origin() -> Address:
    return Address(
        name="Delivro Warehouse",
        company="Delivro Inc.",
        line1="100 King St W",
        city="Toronto",
        province_code="ON",
        postal_code="M5X 1A9",
        phone="416-555-0100",
    )


@pytest.fixture
def destination() -> Address:
    return Address(
        name="Jordan Tremblay",
        line1="1 Rue Sainte-Catherine",
        city="Montreal",
        province_code="QC",
        postal_code="H2X 1Y4",
        phone="(514) 555-0199",
        is_residential=True,
    )


@pytest.fixture
def packages() -> list:
    return [Package(length=30, width=20, height=15, weight=2.5, description="Books")]


@pytest.fixture
def quote_request(origin, destination, packages) -> QuoteRequest:
    return QuoteRequest(origin=origin, destination=destination, packages=packages, shipper_id="shipper-1")


@pytest.fixture
def make_order_request(origin, destination, packages):
    """Build a CreateOrderRequest for a given rate id."""
    def _make(rate_id: str, reference: str = "") -> CreateOrderRequest:
        return CreateOrderRequest(
            rate_id=rate_id,
            sender=Contact(name="Delivro Shipping", company="Delivro Inc.", phone="416-555-0100"),
            sender_address=origin,
            recipient=Contact(name="Jordan Tremblay", phone="514-555-0199"),
            recipient_address=destination,
            packages=packages,
            reference=reference,
        )
    return _make


@pytest.fixture
def mock_settings() -> Settings:
    """Every carrier enabled, every carrier on its mock transport, no .env."""
    return Settings(
        _env_file=None,
        FREIGHTCOM_USE_MOCK=True,
        CANADAPOST_USE_MOCK=True,
        PUROLATOR_USE_MOCK=True,
    )
