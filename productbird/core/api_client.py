"""HTTP client for the Productbird description-generation API."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from productbird.config import MAX_BULK_ITEMS, settings

logger = logging.getLogger(__name__)

GENERATE_PRODUCT_DESCRIPTION_ENDPOINT = "/api/v1/generate/product-description"
GENERATE_PRODUCT_DESCRIPTION_BULK_ENDPOINT = "/api/v1/generate/product-description/bulk"

PROD_BASE_URL = "https://app.productbird.ai"
LOCAL_BASE_URL = "http://localhost:5173"


class ProductbirdAPIError(Exception):
    """Raised when a request to the Productbird API fails.

    ``status_code`` is None for transport failures (DNS, connection, timeout).
    """

    code = "productbird_api_error"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class Unauthorized(ProductbirdAPIError):
    """The API rejected the configured key (HTTP 401)."""

    code = "unauthorized"


class InsufficientCredits(ProductbirdAPIError):
    """The organization has no credits left (HTTP 402)."""

    code = "insufficient_credits"


class BatchTooLarge(ValueError):
    """Raised before any network call when a bulk request exceeds the cap."""

    code = "too_many_items"

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"You can only generate descriptions for up to {limit} products at a time ({count} given).")
        self.count = count
        self.limit = limit


@dataclass(frozen=True)
class BulkResult:
    """Job handle returned for one item of a bulk request."""

    item_id: int
    job_id: str


@dataclass(frozen=True)
class PollResult:
    """State of a generation job as reported by the status endpoint.

    ``content`` is either an HTML string or a list of description blocks.
    """

    workflow_state: str
    content: Any = None


def determine_base_url(site_url: Optional[str] = None) -> str:
    """Pick the API base URL for a store.

    Stores running on a localhost-style domain talk to the local development
    server, everything else to production.
    """
    site_url = site_url if site_url is not None else settings.site_url
    is_local = any(marker in site_url for marker in ("localhost", "127.0.0.1", ".local"))
    return LOCAL_BASE_URL if is_local else PROD_BASE_URL


class ProductbirdClient:
    """Authenticated client for the Productbird workflow API.

    Args:
        api_key: Secret API key sent as a bearer token
        base_url: Optional base URL override (defaults to PRODUCTBIRD_API_BASE_URL
            or the URL chosen by :func:`determine_base_url`)
        timeout: Deadline in seconds for each request
        max_bulk_items: Maximum payloads accepted by :meth:`generate_bulk`
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_bulk_items: int = MAX_BULK_ITEMS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key.strip()
        self.base_url = (base_url or settings.productbird_api_base_url or determine_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_bulk_items = max_bulk_items
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def generate(self, payload: Dict[str, Any]) -> str:
        """Request a description for a single product.

        Args:
            payload: Product payload (see ``build_product_payload``)

        Returns:
            str: Status ID of the created job

        Raises:
            ProductbirdAPIError: If the request fails or no status ID is returned
        """
        data = await self._request("POST", GENERATE_PRODUCT_DESCRIPTION_ENDPOINT, json=payload)
        status_id = data.get("statusId") if isinstance(data, dict) else None
        if not status_id:
            raise ProductbirdAPIError("Productbird API response did not include a statusId.", body=data)
        return str(status_id)

    async def generate_bulk(self, payloads: List[Dict[str, Any]]) -> List[BulkResult]:
        """Request descriptions for many products in one call.

        Args:
            payloads: One product payload per item

        Returns:
            List[BulkResult]: Job handles for the items the API accepted

        Raises:
            BatchTooLarge: If more than ``max_bulk_items`` payloads are given
            ProductbirdAPIError: If the request fails
        """
        if len(payloads) > self.max_bulk_items:
            raise BatchTooLarge(len(payloads), self.max_bulk_items)

        data = await self._request("POST", GENERATE_PRODUCT_DESCRIPTION_BULK_ENDPOINT, json=payloads)
        raw_results = data.get("results", []) if isinstance(data, dict) else []

        results: List[BulkResult] = []
        for item in raw_results:
            product_id = item.get("productId") if isinstance(item, dict) else None
            status_id = item.get("statusId") if isinstance(item, dict) else None
            if product_id is None or not status_id:
                logger.warning(f"Ignoring malformed bulk result entry: {item!r}")
                continue
            try:
                results.append(BulkResult(item_id=int(product_id), job_id=str(status_id)))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring bulk result with non-numeric productId: {product_id!r}")
        return results

    async def poll_status(self, job_id: str) -> PollResult:
        """Fetch the state of a generation job.

        Args:
            job_id: Status ID returned by a generate call

        Returns:
            PollResult: Workflow state and, once finished, the description

        Raises:
            ProductbirdAPIError: If the request fails
        """
        data = await self._request(
            "GET",
            GENERATE_PRODUCT_DESCRIPTION_ENDPOINT,
            params={"statusId": job_id},
            headers={"Accept": "application/json"},
        )
        if not isinstance(data, dict):
            data = {}
        return PollResult(workflow_state=str(data.get("status") or ""), content=data.get("description"))

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Perform an authenticated request and decode the JSON response."""
        try:
            response = await self.client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Productbird API request {method} {endpoint} failed: {e}")
            raise ProductbirdAPIError(f"Productbird API request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if 200 <= response.status_code < 300:
            return data if data is not None else {}

        body = data if data is not None else response.text
        message = f"Productbird API request failed with status {response.status_code}."
        logger.error(f"{message} ({method} {endpoint})")

        if response.status_code == 401:
            raise Unauthorized(message, status_code=401, body=body)
        if response.status_code == 402:
            raise InsufficientCredits(message, status_code=402, body=body)
        raise ProductbirdAPIError(message, status_code=response.status_code, body=body)
