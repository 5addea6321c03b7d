"""
Canada Post API wire types and client interface.

Canada Post speaks versioned XML over REST (rate-v4, shipment-v8,
track-v2). These types are the decoded form of those documents; building
and parsing the XML itself is the HTTP client's job.

Weights are kg, dimensions cm. Label artifacts are raw bytes.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

CARRIER_NAME = "canadapost"

DESTINATION_DOMESTIC = "domestic"
DESTINATION_UNITED_STATES = "united-states"
DESTINATION_INTERNATIONAL = "international"


def normalize_postal_code(postal_code: str) -> str:
    """'k1a 0b1' -> 'K1A0B1'"""
    return (postal_code or "").upper().replace(" ", "")


# =============================================================================
# Rating
# =============================================================================

@dataclass
class Dimensions:
    length: float
    width: float
    height: float


@dataclass
class Destination:
    """Rating destination. Which XML variant is sent depends on the country."""
    country_code: str = "CA"
    postal_code: str = ""

    @property
    def variant(self) -> str:
        country = (self.country_code or "CA").upper()
        if country == "CA":
            return DESTINATION_DOMESTIC
        if country == "US":
            return DESTINATION_UNITED_STATES
        return DESTINATION_INTERNATIONAL


@dataclass
class RatesRequest:
    customer_number: str
    origin_postal_code: str
    destination: Destination
    weight: float
    dimensions: Optional[Dimensions] = None


@dataclass
class Rate:
    service_code: str
    service_name: str
    base_rate: float
    fuel_surcharge: float
    taxes: float
    total_price: float
    expected_transit: int = 0
    expected_delivery: str = ""  # YYYY-MM-DD
    guaranteed_delivery: bool = False


@dataclass
class RatesResponse:
    quote_id: str
    rates: List[Rate] = field(default_factory=list)


# =============================================================================
# Shipments
# =============================================================================

@dataclass
class WireAddress:
    name: str
    address_line_1: str
    city: str
    province: str
    postal_code: str
    country_code: str = "CA"
    company: str = ""
    address_line_2: str = ""
    phone: str = ""
    email: str = ""


@dataclass
class ShipmentRequest:
    customer_number: str
    group_id: str
    service_code: str
    sender: WireAddress
    destination: WireAddress
    parcel_weight: float
    parcel_dimensions: Optional[Dimensions] = None
    output_format: str = "4x6"
    encoding: str = "PDF"


@dataclass
class Link:
    rel: str
    href: str
    media_type: str = ""


@dataclass
class ShipmentResponse:
    shipment_id: str
    tracking_pin: str
    shipment_status: str
    links: List[Link] = field(default_factory=list)
    service_name: str = ""
    total_charged: float = 0.0
    expected_delivery: str = ""

    def link(self, rel: str) -> Optional[Link]:
        for link in self.links:
            if link.rel == rel:
                return link
        return None


@dataclass
class LabelResponse:
    shipment_id: str
    media_type: str  # application/pdf, application/zpl
    data: bytes = b""


@dataclass
class VoidResponse:
    shipment_id: str
    status: str


@dataclass
class WireTrackingEvent:
    timestamp: str
    description: str
    location: str = ""
    type: str = ""


@dataclass
class TrackingResponse:
    tracking_pin: str
    status: str
    events: List[WireTrackingEvent] = field(default_factory=list)


# =============================================================================
# Client interface
# =============================================================================

class CanadaPostAPIClient(ABC):
    """Transport for the Canada Post API. Implemented over HTTP and as a mock."""

    @abstractmethod
    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        pass

    @abstractmethod
    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        pass

    @abstractmethod
    async def get_label(self, shipment_id: str, media_type: str) -> LabelResponse:
        pass

    @abstractmethod
    async def void_shipment(self, shipment_id: str) -> VoidResponse:
        pass

    @abstractmethod
    async def get_tracking(self, tracking_pin: str) -> TrackingResponse:
        pass

    async def close(self) -> None:
        return None
