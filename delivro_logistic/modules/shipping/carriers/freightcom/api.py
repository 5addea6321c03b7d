"""
Freightcom API wire types and client interface.

Freightcom is a rate aggregator: a single request fans out to several
underlying carriers (FedEx, UPS, ...) on their side. Rating and booking
are asynchronous: the first call returns a request id / pending shipment
and the result has to be polled for.

All dimensions are cm, all weights kg.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CARRIER_NAME = "freightcom"


def _drop_empty(data: Dict[str, Any]) -> Dict[str, Any]:
    """Mimic omitempty for optional JSON fields."""
    return {k: v for k, v in data.items() if v not in (None, "", [], {})}


# =============================================================================
# Request types
# =============================================================================

@dataclass
class Location:
    address_1: str
    city: str
    province: str
    postal_code: str
    country: str
    name: str = ""
    company: str = ""
    address_2: str = ""
    phone: str = ""
    email: str = ""
    residential: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "company": self.company,
            "address_1": self.address_1,
            "address_2": self.address_2,
            "city": self.city,
            "province": self.province,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
            "email": self.email,
        }
        data = _drop_empty(data)
        # required keys stay even when blank
        for key in ("address_1", "city", "province", "postal_code", "country"):
            data.setdefault(key, getattr(self, key))
        if self.residential:
            data["residential"] = True
        return data


@dataclass
class WirePackage:
    length: float
    width: float
    height: float
    weight: float
    description: str = ""
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "length": self.length,
            "width": self.width,
            "height": self.height,
            "weight": self.weight,
        }
        if self.description:
            data["description"] = self.description
        if self.quantity:
            data["quantity"] = self.quantity
        return data


@dataclass
class PackagingInfo:
    packages: List[WirePackage]
    type: str = "package"  # package, envelope, pallet

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "packages": [p.to_dict() for p in self.packages]}


@dataclass
class ShippingDetails:
    origin: Location
    destination: Location
    packaging: PackagingInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin": self.origin.to_dict(),
            "destination": self.destination.to_dict(),
            "packaging": self.packaging.to_dict(),
        }


@dataclass
class RatesRequest:
    details: ShippingDetails
    services: List[int] = field(default_factory=list)
    excluded_services: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"details": self.details.to_dict()}
        if self.services:
            data["services"] = list(self.services)
        if self.excluded_services:
            data["excluded_services"] = list(self.excluded_services)
        return data


@dataclass
class WireContact:
    name: str
    phone: str = ""
    company: str = ""
    email: str = ""
    attention_to: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "phone": self.phone}
        data.update(_drop_empty({
            "company": self.company,
            "email": self.email,
            "attention_to": self.attention_to,
        }))
        return data


@dataclass
class ShipmentRequest:
    """
    Booking request.

    ``unique_id`` is Freightcom's idempotency key (max 128 chars): a
    repeated unique_id returns the original shipment with
    ``previously_created`` set.
    """
    unique_id: str
    payment_method_id: Optional[str]
    service_id: int
    details: ShippingDetails
    sender: WireContact
    recipient: WireContact
    reference: str = ""
    po_number: str = ""
    instructions: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "unique_id": self.unique_id[:128],
            "payment_method_id": self.payment_method_id,
            "service_id": self.service_id,
            "details": self.details.to_dict(),
            "sender": self.sender.to_dict(),
            "recipient": self.recipient.to_dict(),
        }
        data.update(_drop_empty({
            "reference": self.reference,
            "po_number": self.po_number,
            "instructions": self.instructions,
        }))
        return data


# =============================================================================
# Response types
# =============================================================================

@dataclass
class RateRequestResponse:
    request_id: str
    status: str = "pending"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RateRequestResponse":
        return cls(request_id=str(data.get("request_id", "")), status=data.get("status", "pending"))


@dataclass
class Surcharge:
    code: str
    amount: float
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Surcharge":
        return cls(
            code=data.get("code", ""),
            amount=float(data.get("amount") or 0),
            description=data.get("description", ""),
        )


@dataclass
class Tax:
    code: str
    amount: float
    rate: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tax":
        return cls(
            code=data.get("code", ""),
            amount=float(data.get("amount") or 0),
            rate=float(data.get("rate") or 0),
        )


@dataclass
class Rate:
    id: str
    service_id: int
    carrier_code: str
    carrier_name: str
    service_code: str
    service_name: str
    base_rate: float
    fuel_surcharge: float
    total_tax: float
    total_price: float
    currency: str = "CAD"
    transit_days: int = 0
    estimated_delivery: str = ""  # YYYY-MM-DD
    guaranteed: bool = False
    expires_at: str = ""  # RFC 3339
    surcharges: List[Surcharge] = field(default_factory=list)
    taxes: List[Tax] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rate":
        return cls(
            id=str(data.get("id", "")),
            service_id=int(data.get("service_id") or 0),
            carrier_code=data.get("carrier_code", ""),
            carrier_name=data.get("carrier_name", ""),
            service_code=data.get("service_code", ""),
            service_name=data.get("service_name", ""),
            base_rate=float(data.get("base_rate") or 0),
            fuel_surcharge=float(data.get("fuel_surcharge") or 0),
            total_tax=float(data.get("total_tax") or 0),
            total_price=float(data.get("total_price") or 0),
            currency=data.get("currency") or "CAD",
            transit_days=int(data.get("transit_days") or 0),
            estimated_delivery=data.get("estimated_delivery") or "",
            guaranteed=bool(data.get("guaranteed", False)),
            expires_at=data.get("expires_at") or "",
            surcharges=[Surcharge.from_dict(s) for s in data.get("surcharges") or []],
            taxes=[Tax.from_dict(t) for t in data.get("taxes") or []],
        )


@dataclass
class RatesResponse:
    request_id: str
    status: str
    rates: List[Rate] = field(default_factory=list)
    error: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RatesResponse":
        return cls(
            request_id=str(data.get("request_id", "")),
            status=data.get("status", ""),
            rates=[Rate.from_dict(r) for r in data.get("rates") or []],
            error=data.get("error") or "",
        )


@dataclass
class WireLabel:
    format: str
    url: str
    size: str = ""  # 4x6, letter

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WireLabel":
        return cls(format=data.get("format", ""), url=data.get("url", ""), size=data.get("size", ""))


@dataclass
class ShipmentResponse:
    id: str
    status: str
    unique_id: str = ""
    previously_created: bool = False
    tracking_numbers: List[str] = field(default_factory=list)
    tracking_url: str = ""
    carrier_code: str = ""
    service_name: str = ""
    total_charged: float = 0.0
    currency: str = "CAD"
    estimated_delivery: str = ""
    labels: List[WireLabel] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShipmentResponse":
        return cls(
            id=str(data.get("id", "")),
            status=data.get("status", ""),
            unique_id=data.get("unique_id", ""),
            previously_created=bool(data.get("previously_created", False)),
            tracking_numbers=list(data.get("tracking_numbers") or []),
            tracking_url=data.get("tracking_url") or "",
            carrier_code=data.get("carrier_code", ""),
            service_name=data.get("service_name", ""),
            total_charged=float(data.get("total_charged") or 0),
            currency=data.get("currency") or "CAD",
            estimated_delivery=data.get("estimated_delivery") or "",
            labels=[WireLabel.from_dict(label) for label in data.get("labels") or []],
        )


@dataclass
class LabelResponse:
    shipment_id: str
    labels: List[WireLabel] = field(default_factory=list)


@dataclass
class CancelResponse:
    shipment_id: str
    status: str
    refund_amount: float = 0.0
    currency: str = "CAD"
    confirmation_number: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CancelResponse":
        return cls(
            shipment_id=str(data.get("shipment_id", "")),
            status=data.get("status", ""),
            refund_amount=float(data.get("refund_amount") or 0),
            currency=data.get("currency") or "CAD",
            confirmation_number=data.get("confirmation_number") or "",
        )


@dataclass
class WireTrackingEvent:
    timestamp: str
    description: str
    location: str = ""
    status: str = ""
    code: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WireTrackingEvent":
        return cls(
            timestamp=data.get("timestamp", ""),
            description=data.get("description", ""),
            location=data.get("location", ""),
            status=data.get("status", ""),
            code=data.get("code", ""),
        )


@dataclass
class TrackingResponse:
    shipment_id: str
    tracking_number: str
    status: str
    events: List[WireTrackingEvent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackingResponse":
        return cls(
            shipment_id=str(data.get("shipment_id", "")),
            tracking_number=data.get("tracking_number", ""),
            status=data.get("status", ""),
            events=[WireTrackingEvent.from_dict(e) for e in data.get("events") or []],
        )


# =============================================================================
# Client interface
# =============================================================================

class FreightcomAPIClient(ABC):
    """Transport for the Freightcom API. Implemented over HTTP and as a mock."""

    @abstractmethod
    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        """Submit a rate request and wait for it to complete."""

    @abstractmethod
    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        """Book a shipment, waiting while it is pending/processing."""

    @abstractmethod
    async def get_label(self, shipment_id: str, label_format: str) -> LabelResponse:
        pass

    @abstractmethod
    async def cancel_shipment(self, shipment_id: str, reason: str = "") -> CancelResponse:
        pass

    @abstractmethod
    async def get_tracking(self, shipment_id: str) -> TrackingResponse:
        pass

    async def close(self) -> None:
        return None
