"""
Shipping Module v1.0.0

- Carrier-agnostic domain model (models.py)
- BaseCarrier interface for all carrier implementations
- CarrierFactory / build_registry for wiring carriers from Settings
- CarrierRegistry for concurrent quote fan-out
"""
from delivro_logistic.modules.shipping.carriers import CarrierFactory, build_registry, register_carrier
from delivro_logistic.modules.shipping.carriers.base import BaseCarrier
from delivro_logistic.modules.shipping.carriers.registry import CarrierRegistry

__all__ = [
    "CarrierFactory",
    "build_registry",
    "register_carrier",
    "BaseCarrier",
    "CarrierRegistry",
]
