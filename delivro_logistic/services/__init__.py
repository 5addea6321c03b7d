# Services layer for business logic
from delivro_logistic.services.multi_carrier_service import MultiCarrierQuote, MultiCarrierService

__all__ = ["MultiCarrierQuote", "MultiCarrierService"]
