"""
Freightcom HTTP client.

Submit-then-poll over JSON/REST:
- POST /rate            -> {request_id}, then GET /rate/{id} until complete
- POST /shipment        -> shipment, then GET /shipment/{id} while pending
- GET /shipment/{id}    -> labels
- DELETE /shipment/{id} -> cancellation
- GET /shipment/{id}/tracking-events

Polling runs at a fixed interval against its own deadline. The caller's
deadline (asyncio.timeout around the adapter call) applies on top and
simply cancels the poll.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

import httpx

from delivro_logistic.core.exceptions import (
    CarrierError,
    NETWORK_ERROR,
    PARSE_ERROR,
    RATE_ERROR,
    SHIPMENT_ERROR,
    TIMEOUT,
    UNKNOWN_STATUS,
    error_from_status,
)
from delivro_logistic.core.logging_config import sanitize_for_logging
from delivro_logistic.modules.shipping.carriers.freightcom.api import (
    CARRIER_NAME,
    CancelResponse,
    FreightcomAPIClient,
    LabelResponse,
    RateRequestResponse,
    RatesRequest,
    RatesResponse,
    ShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_AGENT = "delivro-logistic/1.0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_POLL_TIMEOUT = 30.0

SHIPMENT_DONE = {"booked", "confirmed", "complete"}
SHIPMENT_FAILED = {"error", "failed"}
SHIPMENT_WAITING = {"pending", "processing"}


class HTTPFreightcomAPIClient(FreightcomAPIClient):
    """
    Live Freightcom client on httpx.

    ``transport`` is passed straight to httpx.AsyncClient (tests use
    httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.poll_interval = poll_interval if poll_interval is not None else DEFAULT_POLL_INTERVAL
        self.poll_timeout = poll_timeout or DEFAULT_POLL_TIMEOUT
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "X-API-Key": self.api_key or "",
                    "User-Agent": USER_AGENT,
                },
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== Transport ====================

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> httpx.Response:
        client = await self._get_http_client()
        url = f"{self.base_url}{path}"
        try:
            response = await client.request(method, url, json=body)
        except httpx.TimeoutException as e:
            logger.error(f"Freightcom API {method} {path} timed out: {e}")
            raise CarrierError(
                CARRIER_NAME, code=TIMEOUT, message=f"Request timed out: {method} {path}",
                retryable=True, cause=e,
            )
        except httpx.RequestError as e:
            logger.error(f"Freightcom API request failed: {e}")
            raise CarrierError(
                CARRIER_NAME, code=NETWORK_ERROR, message=f"Network error: {e}",
                retryable=True, cause=e,
            )

        logger.debug(f"Freightcom API {method} {path} -> {response.status_code}")
        return response

    def _parse_error(self, response: httpx.Response) -> CarrierError:
        """
        Error body shapes, most specific first:
        {"code", "message", "errors"} -> carrier code
        {"error"} or {"message"}      -> HTTP_<status>
        anything else                 -> raw body as the message
        """
        text = response.text
        code: Optional[str] = None
        message = text
        details: Dict[str, Any] = {}
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            if data.get("code"):
                code = str(data["code"])
                message = data.get("message") or code
                if data.get("errors"):
                    details["errors"] = data["errors"]
            elif data.get("error") or data.get("message"):
                message = data.get("error") or data.get("message")

        logger.error(
            f"Freightcom API error: {response.status_code} {code or ''} - "
            f"{sanitize_for_logging(message)}"
        )
        return error_from_status(CARRIER_NAME, response.status_code, message, code=code, details=details)

    @staticmethod
    def _parse(data: Dict[str, Any], what: str, parse: Callable[[Dict[str, Any]], T]) -> T:
        """Build a wire object; values of the wrong type become PARSE_ERROR."""
        try:
            return parse(data)
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Freightcom {what} response is malformed: {e}")
            raise CarrierError(
                CARRIER_NAME, code=PARSE_ERROR, message=f"malformed {what} response", cause=e,
            )

    @classmethod
    def _decode(cls, response: httpx.Response, what: str, parse: Callable[[Dict[str, Any]], T]) -> T:
        try:
            data = response.json()
        except ValueError as e:
            raise CarrierError(
                CARRIER_NAME, code=PARSE_ERROR, message=f"failed to decode {what} response", cause=e,
            )
        if not isinstance(data, dict):
            raise CarrierError(CARRIER_NAME, code=PARSE_ERROR, message=f"unexpected {what} response")
        return cls._parse(data, what, parse)

    # ==================== Rates ====================

    async def get_rates(self, request: RatesRequest) -> RatesResponse:
        response = await self._request("POST", "/rate", request.to_dict())
        if response.status_code not in (200, 202):
            raise self._parse_error(response)

        submitted = self._decode(response, "rate request", RateRequestResponse.from_dict)
        logger.info(f"Freightcom rate request submitted: {submitted.request_id}")
        return await self._poll_rates(submitted.request_id)

    async def _poll_rates(self, request_id: str) -> RatesResponse:
        deadline = time.monotonic() + self.poll_timeout
        path = f"/rate/{request_id}"
        polls = 0

        while True:
            if time.monotonic() > deadline:
                raise CarrierError(
                    CARRIER_NAME, code=TIMEOUT, message="Rate request timed out waiting for results",
                )

            response = await self._request("GET", path)
            polls += 1
            if response.status_code != 200:
                raise self._parse_error(response)

            result = self._decode(response, "rates", RatesResponse.from_dict)
            if result.status == "complete":
                logger.debug(f"Freightcom rates {request_id} complete after {polls} poll(s)")
                return result
            if result.status == "error":
                raise CarrierError(CARRIER_NAME, code=RATE_ERROR, message=result.error or "rate request failed")
            if result.status != "pending":
                raise CarrierError(
                    CARRIER_NAME, code=UNKNOWN_STATUS, message=f"Unknown rate status: {result.status}",
                )

            await asyncio.sleep(self.poll_interval)

    # ==================== Shipments ====================

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResponse:
        response = await self._request("POST", "/shipment", request.to_dict())
        if response.status_code not in (200, 201, 202):
            raise self._parse_error(response)

        result = self._decode(response, "shipment", ShipmentResponse.from_dict)
        if result.previously_created:
            logger.info(f"Freightcom returned existing shipment {result.id} for unique_id {result.unique_id}")
        if result.status in SHIPMENT_WAITING:
            return await self._poll_shipment(result.id)
        return result

    async def _poll_shipment(self, shipment_id: str) -> ShipmentResponse:
        deadline = time.monotonic() + self.poll_timeout
        path = f"/shipment/{shipment_id}"

        while True:
            if time.monotonic() > deadline:
                raise CarrierError(CARRIER_NAME, code=TIMEOUT, message="Shipment creation timed out")

            response = await self._request("GET", path)
            if response.status_code != 200:
                raise self._parse_error(response)

            result = self._decode(response, "shipment", ShipmentResponse.from_dict)
            if result.status in SHIPMENT_DONE:
                return result
            if result.status in SHIPMENT_FAILED:
                raise CarrierError(
                    CARRIER_NAME, code=SHIPMENT_ERROR,
                    message=f"Shipment failed with status: {result.status}",
                )
            if result.status not in SHIPMENT_WAITING:
                # Unrecognised but not a failure; the adapter maps it
                return result

            await asyncio.sleep(self.poll_interval)

    async def get_label(self, shipment_id: str, label_format: str) -> LabelResponse:
        response = await self._request("GET", f"/shipment/{shipment_id}")
        if response.status_code != 200:
            raise self._parse_error(response)

        shipment = self._decode(response, "shipment", ShipmentResponse.from_dict)
        labels = shipment.labels
        if label_format:
            labels = [label for label in labels if label.format.lower() == label_format.lower()]
        return LabelResponse(shipment_id=shipment_id, labels=labels)

    async def cancel_shipment(self, shipment_id: str, reason: str = "") -> CancelResponse:
        response = await self._request("DELETE", f"/shipment/{shipment_id}")
        if response.status_code not in (200, 204):
            raise self._parse_error(response)

        if response.status_code == 204:
            return CancelResponse(shipment_id=shipment_id, status="cancelled")
        try:
            data = response.json()
        except ValueError:
            return CancelResponse(shipment_id=shipment_id, status="cancelled")
        if not isinstance(data, dict):
            return CancelResponse(shipment_id=shipment_id, status="cancelled")

        result = self._parse(data, "cancellation", CancelResponse.from_dict)
        result.shipment_id = result.shipment_id or shipment_id
        result.status = result.status or "cancelled"
        return result

    async def get_tracking(self, shipment_id: str) -> TrackingResponse:
        response = await self._request("GET", f"/shipment/{shipment_id}/tracking-events")
        if response.status_code != 200:
            raise self._parse_error(response)

        result = self._decode(response, "tracking", TrackingResponse.from_dict)
        result.shipment_id = shipment_id
        return result
