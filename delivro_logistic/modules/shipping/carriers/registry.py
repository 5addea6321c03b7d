"""
Carrier Registry v1.0.0

Holds the live set of carrier adapters keyed by name and fans quote
requests out to them concurrently.

- Lookups take a shared read lock, registration an exclusive write lock
- One failing carrier never fails the whole quote: its error is collected,
  tagged with the carrier name, and the other carriers carry on
- Results come back in completion order
"""
import asyncio
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Tuple

from delivro_logistic.core.exceptions import AnnotatedCarrierError, CarrierNotFoundError
from delivro_logistic.modules.shipping.carriers.base import BaseCarrier
from delivro_logistic.modules.shipping.models import QuoteRequest, QuoteResponse

logger = logging.getLogger(__name__)

QuoteResults = Tuple[List[QuoteResponse], List[Exception]]


class _ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class CarrierRegistry:
    """
    Name -> carrier map with concurrent quote fan-out.

    Usage:
        registry = CarrierRegistry()
        registry.register(FreightcomCarrier(config))
        quotes, errors = await registry.get_all_quotes(request)
    """

    def __init__(self):
        self._carriers: Dict[str, BaseCarrier] = {}
        self._lock = _ReadWriteLock()

    # ==================== Map operations ====================

    def register(self, carrier: BaseCarrier) -> None:
        """Add a carrier, replacing any carrier already registered under its name."""
        with self._lock.write():
            replaced = carrier.name in self._carriers
            self._carriers[carrier.name] = carrier
        if replaced:
            logger.info(f"Replaced carrier: {carrier.name}")
        else:
            logger.info(f"Registered carrier: {carrier.name} -> {carrier.__class__.__name__}")

    def get(self, name: str) -> BaseCarrier:
        with self._lock.read():
            carrier = self._carriers.get(name)
        if carrier is None:
            raise CarrierNotFoundError(name, message=f"carrier not found: {name}")
        return carrier

    def all(self) -> List[BaseCarrier]:
        with self._lock.read():
            return list(self._carriers.values())

    def names(self) -> List[str]:
        with self._lock.read():
            return list(self._carriers.keys())

    def count(self) -> int:
        with self._lock.read():
            return len(self._carriers)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._carriers

    # ==================== Fan-out ====================

    async def get_all_quotes(self, request: QuoteRequest) -> QuoteResults:
        """
        Quote every registered carrier concurrently.

        Returns:
            (responses, errors). An empty registry yields no responses and a
            single CarrierNotFoundError.
        """
        carriers = self.all()
        if not carriers:
            logger.warning("Quote requested with no carriers registered")
            return [], [CarrierNotFoundError(message="no carriers registered")]
        return await self._fan_out(carriers, request, [])

    async def get_quotes_from_carriers(self, request: QuoteRequest, names: Iterable[str]) -> QuoteResults:
        """
        Quote only the named carriers.

        An empty name list means every carrier. Unknown names contribute a
        CarrierNotFoundError each; the known ones are still queried.
        """
        requested = list(dict.fromkeys(names))
        if not requested:
            return await self.get_all_quotes(request)

        carriers: List[BaseCarrier] = []
        errors: List[Exception] = []
        for name in requested:
            try:
                carriers.append(self.get(name))
            except CarrierNotFoundError as e:
                logger.warning(f"Quote requested from unknown carrier: {name}")
                errors.append(e)

        return await self._fan_out(carriers, request, errors)

    async def _fan_out(
        self,
        carriers: List[BaseCarrier],
        request: QuoteRequest,
        errors: List[Exception],
    ) -> QuoteResults:
        responses: List[QuoteResponse] = []
        results_lock = asyncio.Lock()

        async def quote_one(carrier: BaseCarrier) -> None:
            try:
                response = await carrier.get_quote(request)
            except Exception as e:
                logger.warning(f"Quote failed for {carrier.name}: {e}")
                async with results_lock:
                    errors.append(AnnotatedCarrierError(carrier.name, e))
                return
            async with results_lock:
                responses.append(response)

        # Cancelling the caller cancels every pending quote_one task
        await asyncio.gather(*(quote_one(carrier) for carrier in carriers))

        logger.info(
            f"Quoted {len(carriers)} carrier(s): {len(responses)} succeeded, {len(errors)} error(s)"
        )
        return responses, errors

    async def close(self) -> None:
        """Close every registered carrier."""
        for carrier in self.all():
            await carrier.close()
