"""
Carrier Registry and Factory v1.0.0

- Carrier implementations self-register by name via @register_carrier
- CarrierFactory builds instances from Settings, skipping disabled carriers
- build_registry() assembles the runtime CarrierRegistry used for fan-out
"""
from typing import Dict, List, Optional, Type
import logging

from delivro_logistic.core.config import Settings, get_settings
from delivro_logistic.modules.shipping.carriers.base import BaseCarrier
from delivro_logistic.modules.shipping.carriers.registry import CarrierRegistry

logger = logging.getLogger(__name__)

# Registry of carrier implementations
_CARRIER_REGISTRY: Dict[str, Type[BaseCarrier]] = {}


def register_carrier(name: str):
    """
    Decorator to register a carrier implementation.

    The class must provide a ``from_settings(settings)`` classmethod.

    Usage:
        @register_carrier(FREIGHTCOM)
        class FreightcomCarrier(BaseCarrier):
            ...
    """
    def decorator(cls: Type[BaseCarrier]):
        _CARRIER_REGISTRY[name] = cls
        logger.debug(f"Registered carrier implementation: {name} -> {cls.__name__}")
        return cls
    return decorator


def is_carrier_enabled(settings: Settings, name: str) -> bool:
    return bool(getattr(settings, f"{name.upper()}_ENABLED", False))


class CarrierFactory:
    """
    Factory for creating carrier instances.

    Checks the <NAME>_ENABLED setting before building a carrier.
    Returns None for disabled carriers.
    """

    @classmethod
    def get_carrier(cls, name: str, settings: Optional[Settings] = None) -> Optional[BaseCarrier]:
        """
        Get a carrier instance if enabled.

        Args:
            name: Registry name, e.g. "purolator"
            settings: Settings to read credentials from (defaults to get_settings())

        Returns:
            BaseCarrier instance or None if disabled/not found
        """
        settings = settings or get_settings()

        if not is_carrier_enabled(settings, name):
            logger.debug(f"Carrier {name} is disabled")
            return None

        carrier_cls = _CARRIER_REGISTRY.get(name)
        if not carrier_cls:
            logger.warning(f"No implementation registered for carrier: {name}")
            return None

        return carrier_cls.from_settings(settings)

    @classmethod
    def get_enabled_carriers(cls, settings: Optional[Settings] = None) -> List[BaseCarrier]:
        """Get all enabled carrier instances."""
        settings = settings or get_settings()
        carriers = []
        for name in _CARRIER_REGISTRY:
            carrier = cls.get_carrier(name, settings)
            if carrier:
                carriers.append(carrier)
        return carriers

    @classmethod
    def get_registered_carriers(cls) -> List[str]:
        """Get list of all registered carrier names."""
        return list(_CARRIER_REGISTRY.keys())


def build_registry(settings: Optional[Settings] = None) -> CarrierRegistry:
    """Create a CarrierRegistry holding every enabled carrier."""
    registry = CarrierRegistry()
    for carrier in CarrierFactory.get_enabled_carriers(settings):
        registry.register(carrier)
    logger.info(f"Carrier registry ready: {registry.names()}")
    return registry


# Import carriers to trigger registration
# These imports must be at the bottom to avoid circular imports
from delivro_logistic.modules.shipping.carriers.freightcom.carrier import FreightcomCarrier  # noqa: E402, F401
from delivro_logistic.modules.shipping.carriers.canadapost.carrier import CanadaPostCarrier  # noqa: E402, F401
from delivro_logistic.modules.shipping.carriers.purolator.carrier import PurolatorCarrier  # noqa: E402, F401
