"""
Purolator API wire types and client interface.

Purolator's web services are SOAP 1.1 (EstimatingService, ShippingService,
ShippingDocumentsService, TrackingService). These dataclasses mirror the
request and response documents; the SOAP client builds and parses the
envelopes.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

CARRIER_NAME = "purolator"


@dataclass
class Weight:
    value: float
    unit: str = "kg"  # kg / lb


@dataclass
class PackageInformation:
    total_weight: Weight
    total_pieces: int = 1


@dataclass
class PhoneNumber:
    country_code: str = "1"
    area_code: str = ""
    phone: str = ""

    @classmethod
    def parse(cls, raw: str) -> "PhoneNumber":
        """Split a North American number into area code and local part."""
        digits = "".join(ch for ch in (raw or "") if ch.isdigit())
        if len(digits) == 11 and digits.startswith("1"):
            digits = digits[1:]
        if len(digits) == 10:
            return cls(area_code=digits[:3], phone=digits[3:])
        return cls(phone=digits)


@dataclass
class WireAddress:
    name: str = ""
    company: str = ""
    street_number: str = ""
    street_name: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    country: str = "CA"
    phone_number: PhoneNumber = field(default_factory=PhoneNumber)


# =============================================================================
# Estimating
# =============================================================================

@dataclass
class RatesRequest:
    billing_account_number: str
    sender_postal_code: str
    receiver_address: WireAddress
    package_information: PackageInformation


@dataclass
class ShipmentRate:
    service_code: str
    service_name: str
    base_price: float
    fuel_surcharge: float
    taxes: float
    total_price: float
    expected_delivery_date: str = ""  # YYYY-MM-DD
    estimated_transit_days: int = 0
    guaranteed_delivery: bool = False


@dataclass
class RatesResponse:
    quote_id: str
    shipment_rates: List[ShipmentRate] = field(default_factory=list)


# =============================================================================
# Shipping / documents / tracking
# =============================================================================

@dataclass
class ShipmentRequest:
    billing_account_number: str
    service_code: str
    sender: WireAddress
    receiver: WireAddress
    package_information: PackageInformation
    printer_type: str = "Regular"  # Regular / Thermal


@dataclass
class DocumentLink:
    type: str  # Label, CustomsInvoice, ...
    url: str


@dataclass
class ShipmentResponse:
    shipment_pin: str
    tracking_number: str
    total_price: float = 0.0
    expected_delivery_date: str = ""
    piece_pins: List[str] = field(default_factory=list)
    document_links: List[DocumentLink] = field(default_factory=list)

    def label_url(self) -> str:
        for link in self.document_links:
            if link.type == "Label":
                return link.url
        return ""


@dataclass
class LabelResponse:
    shipment_pin: str
    format: str
    data: bytes = b""


@dataclass
class VoidResponse:
    shipment_pin: str
    status: str  # voided / failed
    message: str = ""


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
    delivery_status: str = ""
    events: List[WireTrackingEvent] = field(default_factory=list)


# =============================================================================
# Client interface
# =============================================================================

class PurolatorAPIClient(ABC):
    """Transport for the Purolator web services. Implemented over SOAP and as a mock."""

    @abstractmethod
    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        pass

    @abstractmethod
    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        pass

    @abstractmethod
    async def get_label(self, shipment_pin: str, label_format: str) -> LabelResponse:
        pass

    @abstractmethod
    async def void_shipment(self, shipment_pin: str) -> VoidResponse:
        pass

    @abstractmethod
    async def get_tracking(self, tracking_pin: str) -> TrackingResponse:
        pass

    async def close(self) -> None:
        return None
