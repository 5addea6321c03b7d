"""
Shipping Domain Model v1.0.0

Carrier-agnostic types shared by every adapter, the registry and the
multi-carrier service. Adapters translate between these and their own
wire types; nothing carrier-specific lives here.

Conventions:
- Money is a non-negative Decimal amount plus an ISO currency code.
- Address country defaults to CA.
- Package units default to cm / kg, type to box, currency to CAD.
- Rate ids and order ids carry their carrier's prefix (see carriers/ids.py).
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple, Union

from delivro_logistic.core.exceptions import InvalidPackageError

DEFAULT_COUNTRY = "CA"
DEFAULT_CURRENCY = "CAD"

CENTS = Decimal("0.01")
KG_PER_LB = Decimal("0.45359237")
CM_PER_IN = Decimal("2.54")


# =============================================================================
# Enumerations
# =============================================================================

class ShipmentStatus(str, enum.Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    EXCEPTION = "exception"

    @property
    def is_terminal(self) -> bool:
        return self in (ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED, ShipmentStatus.EXCEPTION)


class ServiceType(str, enum.Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    PRIORITY = "priority"
    OVERNIGHT = "overnight"
    ECONOMY = "economy"
    FREIGHT = "freight"


class PackageType(str, enum.Enum):
    BOX = "box"
    ENVELOPE = "envelope"
    TUBE = "tube"
    PALLET = "pallet"
    CUSTOM = "custom"


class WeightUnit(str, enum.Enum):
    KG = "kg"
    LB = "lb"


class DimensionUnit(str, enum.Enum):
    CM = "cm"
    IN = "in"


class LabelFormat(str, enum.Enum):
    PDF = "pdf"
    PNG = "png"
    ZPL = "zpl"


# =============================================================================
# Value types
# =============================================================================

@dataclass(frozen=True)
class Money:
    """A non-negative amount in a currency, kept to the cent."""
    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def __init__(self, amount: Union[Decimal, int, float, str] = Decimal("0"), currency: str = DEFAULT_CURRENCY):
        # floats go through str() so 15.82 stays 15.82
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        if value < 0:
            raise ValueError(f"Money amount cannot be negative: {value}")
        object.__setattr__(self, "amount", value.quantize(CENTS, rounding=ROUND_HALF_UP))
        object.__setattr__(self, "currency", (currency or DEFAULT_CURRENCY).upper())

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(Decimal("0"), currency)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        if other.currency != self.currency:
            raise ValueError(f"Cannot add {other.currency} to {self.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


@dataclass(frozen=True)
class Address:
    """Postal address. An empty country code means Canada."""
    name: str
    line1: str
    city: str
    province_code: str
    postal_code: str
    company: str = ""
    line2: str = ""
    country_code: str = DEFAULT_COUNTRY
    phone: str = ""
    email: str = ""
    instructions: str = ""
    is_residential: bool = False

    def __post_init__(self):
        country = (self.country_code or DEFAULT_COUNTRY).strip().upper()
        object.__setattr__(self, "country_code", country or DEFAULT_COUNTRY)

    @property
    def is_domestic(self) -> bool:
        return self.country_code == DEFAULT_COUNTRY


@dataclass
class Contact:
    name: str
    company: str = ""
    phone: str = ""
    email: str = ""
    tax_id: str = ""


@dataclass
class Package:
    """A single parcel. Falsy units, type and currency fall back to the defaults."""
    length: float
    width: float
    height: float
    weight: float
    dimension_unit: DimensionUnit = DimensionUnit.CM
    weight_unit: WeightUnit = WeightUnit.KG
    package_type: PackageType = PackageType.BOX
    description: str = ""
    declared_value: Optional[Money] = None
    currency: str = DEFAULT_CURRENCY
    id: str = ""

    def __post_init__(self):
        self.dimension_unit = DimensionUnit(self.dimension_unit or DimensionUnit.CM)
        self.weight_unit = WeightUnit(self.weight_unit or WeightUnit.KG)
        self.package_type = PackageType(self.package_type or PackageType.BOX)
        self.currency = (self.currency or DEFAULT_CURRENCY).upper()

        for attr in ("length", "width", "height", "weight"):
            if getattr(self, attr) < 0:
                raise InvalidPackageError(message=f"package {attr} cannot be negative")

    def weight_in_kg(self) -> Decimal:
        weight = Decimal(str(self.weight))
        if self.weight_unit == WeightUnit.LB:
            weight = weight * KG_PER_LB
        return weight.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)

    def dimensions_in_cm(self) -> Tuple[Decimal, Decimal, Decimal]:
        factor = CM_PER_IN if self.dimension_unit == DimensionUnit.IN else Decimal("1")
        return tuple(
            (Decimal(str(v)) * factor).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            for v in (self.length, self.width, self.height)
        )


@dataclass
class RateOption:
    """One purchasable service offered by a carrier for a quote."""
    rate_id: str
    carrier: str
    service_code: str
    service_name: str
    service_type: ServiceType
    base_rate: Money
    fuel_surcharge: Money
    taxes: Money
    total_price: Money
    transit_days: int = 0
    expires_at: Optional[datetime] = None
    estimated_delivery: Optional[datetime] = None
    signature_required: bool = False
    guaranteed: bool = False

    def components_total(self) -> Money:
        return self.base_rate + self.fuel_surcharge + self.taxes

    def is_total_consistent(self, tolerance: Decimal = Decimal("0.05")) -> bool:
        """Whether total_price matches base + fuel + taxes within ``tolerance``."""
        return abs(self.components_total().amount - self.total_price.amount) <= tolerance


@dataclass
class TrackingEvent:
    timestamp: datetime
    description: str
    location: str = ""
    status: ShipmentStatus = ShipmentStatus.IN_TRANSIT
    carrier_code: str = ""


@dataclass
class Label:
    """Shipping label. ``data`` is base64 text when the carrier returns bytes."""
    format: LabelFormat = LabelFormat.PDF
    data: str = ""
    url: str = ""
    expires_at: Optional[datetime] = None


@dataclass
class ShippingOptions:
    carriers: List[str] = field(default_factory=list)
    service_types: List[ServiceType] = field(default_factory=list)
    signature_required: bool = False
    insurance_required: bool = False
    saturday_delivery: bool = False
    ship_date: Optional[datetime] = None


# =============================================================================
# Capability requests / responses
# =============================================================================

@dataclass
class QuoteRequest:
    origin: Address
    destination: Address
    packages: List[Package]
    shipper_id: str = ""
    options: ShippingOptions = field(default_factory=ShippingOptions)


@dataclass
class QuoteResponse:
    quote_id: str
    rates: List[RateOption] = field(default_factory=list)
    expires_at: Optional[datetime] = None

    def cheapest(self) -> Optional[RateOption]:
        if not self.rates:
            return None
        return min(self.rates, key=lambda r: r.total_price.amount)


# Friendlier name used by the service layer
Quote = QuoteResponse


@dataclass
class CreateOrderRequest:
    rate_id: str
    sender: Contact
    sender_address: Address
    recipient: Contact
    recipient_address: Address
    packages: List[Package]
    shipper_id: str = ""
    quote_id: str = ""
    reference: str = ""
    po_number: str = ""
    instructions: str = ""


@dataclass
class CreateOrderResponse:
    order_id: str
    tracking_number: str
    status: ShipmentStatus
    carrier: str
    total_charged: Money
    tracking_url: str = ""
    service_name: str = ""
    estimated_delivery: Optional[datetime] = None
    label_url: str = ""


@dataclass
class GetLabelRequest:
    order_id: str
    format: Optional[LabelFormat] = None


@dataclass
class GetLabelResponse:
    order_id: str
    label: Label
    additional_labels: List[Label] = field(default_factory=list)


@dataclass
class CancelOrderRequest:
    order_id: str
    reason: str = ""


@dataclass
class CancelOrderResponse:
    order_id: str
    status: ShipmentStatus
    refund_amount: Optional[Money] = None
    confirmation_number: str = ""


@dataclass
class TrackingRequest:
    order_id: str
    # Carriers that track by a separate number (Canada Post PIN) need it here
    tracking_number: str = ""


@dataclass
class TrackingResponse:
    order_id: str
    tracking_number: str
    status: ShipmentStatus
    events: List[TrackingEvent] = field(default_factory=list)
    estimated_delivery: Optional[datetime] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
