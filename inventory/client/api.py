import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from inventory.client.cache import ResponseCache
from inventory.client.debounce import Debouncer
from inventory.config import get_settings
from inventory.models.transaction import TransactionType

settings = get_settings()
logger = logging.getLogger(__name__)

PRODUCTS_PATH = "/api/productos"
TRANSACTIONS_PATH = "/api/transacciones"


class ApiError(Exception):
    """Exception raised when a service answers with a failure envelope."""

    def __init__(self, message: str, status_code: int = None, errors: List[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or []


def _param(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def _query(filters: dict) -> dict:
    """camelCase query parameters with empty values left out."""
    return {
        to_camel(name): _param(value)
        for name, value in filters.items()
        if value is not None and value != ""
    }


def _cache_key(prefix: str, params: dict) -> str:
    return f"{prefix}_{urlencode(sorted(params.items()))}"


def _body(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    return data


class InventoryApiClient:
    """
    Data layer a frontend uses to talk to both services.

    - List reads are cached in a ResponseCache and debounced, so a burst of
      identical refreshes costs one request
    - Product writes drop cached product listings, the product itself and
      the category list
    - Transaction writes drop the whole cache, since any product's stock
      may have moved
    - Transport failures are retried with exponential backoff; failure
      envelopes are raised as ApiError straight away

    Args:
        products_url: Products service root URL
        transactions_url: Transactions service root URL
        cache: Response cache (a fresh one by default)
        max_retries: Attempts per request on transport failure
        backoff: Delay before the first retry, doubled on each attempt
        debounce: Quiet period for list reads in seconds
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport
    """

    def __init__(
        self,
        products_url: str = None,
        transactions_url: str = None,
        cache: ResponseCache = None,
        max_retries: int = None,
        backoff: float = None,
        debounce: float = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.products_url = (products_url or settings.PRODUCT_SERVICE_URL).rstrip("/")
        self.transactions_url = (transactions_url or settings.TRANSACTION_SERVICE_URL).rstrip("/")
        self.cache = cache if cache is not None else ResponseCache()
        self.max_retries = max_retries or settings.CLIENT_MAX_RETRIES
        self.backoff = settings.CLIENT_RETRY_BACKOFF if backoff is None else backoff
        self.timeout = timeout or settings.PRODUCT_SERVICE_TIMEOUT
        self.transport = transport

        self.debounce = settings.CLIENT_DEBOUNCE_SECONDS if debounce is None else debounce
        # One debouncer per cache key, so only identical reads are merged
        self._debouncers: Dict[str, Debouncer] = {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """
        Send a request and unwrap the envelope.

        Returns:
            The envelope's ``data``

        Raises:
            ApiError: On a failure envelope, an unreadable body, or once
                every retry has failed at the transport level
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self._client() as client:
                    response = await client.request(method, url, **kwargs)
                break
            except httpx.TransportError as e:
                if attempt == self.max_retries:
                    logger.error(f"{method} {url} failed after {attempt} attempts: {e}")
                    raise ApiError(f"Network error: {e}") from e
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(
                    f"{method} {url} failed ({e}), retrying in {delay}s "
                    f"({attempt}/{self.max_retries})"
                )
                await asyncio.sleep(delay)

        try:
            body = response.json()
        except ValueError:
            raise ApiError("Unknown error", status_code=response.status_code)

        if not isinstance(body, dict):
            raise ApiError("Unknown error", status_code=response.status_code)
        if not body.get("success"):
            raise ApiError(
                body.get("message") or "Unknown error",
                status_code=response.status_code,
                errors=body.get("errors"),
            )
        return body.get("data")

    async def _fetch_and_cache(self, key: str, url: str, params: dict = None) -> Any:
        data = await self._request("GET", url, params=params)
        self.cache.set(key, data)
        return data

    async def _cached_get(self, key: str, url: str, params: dict = None) -> Any:
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        return await self._fetch_and_cache(key, url, params)

    async def _debounced_get(self, key: str, url: str, params: dict) -> Any:
        debouncer = self._debouncers.get(key)
        if debouncer is None:
            debouncer = self._debouncers[key] = Debouncer(self._fetch_and_cache, self.debounce)
        try:
            return await debouncer(key, url, params)
        finally:
            if not debouncer.pending and self._debouncers.get(key) is debouncer:
                del self._debouncers[key]

    def _invalidate_products(self, product_id: int = None) -> None:
        self.cache.delete_pattern("products_*")
        self.cache.delete("categories")
        if product_id is not None:
            self.cache.delete(f"product_{product_id}")

    # Products

    async def list_products(self, **filters) -> dict:
        """
        Get a page of products.

        Keyword arguments are the listing's query parameters in snake_case
        (search, category, sort_by, sort_direction, page, page_size).
        """
        params = _query(filters)
        key = _cache_key("products", params)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        return await self._debounced_get(key, f"{self.products_url}{PRODUCTS_PATH}/", params)

    async def get_product(self, product_id: int) -> dict:
        return await self._cached_get(
            f"product_{product_id}", f"{self.products_url}{PRODUCTS_PATH}/{product_id}"
        )

    async def get_categories(self) -> List[str]:
        return await self._cached_get(
            "categories", f"{self.products_url}{PRODUCTS_PATH}/categories"
        )

    async def create_product(self, product: Any) -> dict:
        data = await self._request(
            "POST", f"{self.products_url}{PRODUCTS_PATH}/", json=_body(product)
        )
        self._invalidate_products(data.get("id") if isinstance(data, dict) else None)
        return data

    async def update_product(self, product_id: int, product: Any) -> dict:
        data = await self._request(
            "PUT", f"{self.products_url}{PRODUCTS_PATH}/{product_id}", json=_body(product)
        )
        self._invalidate_products(product_id)
        return data

    async def delete_product(self, product_id: int) -> bool:
        await self._request("DELETE", f"{self.products_url}{PRODUCTS_PATH}/{product_id}")
        self._invalidate_products(product_id)
        return True

    # Transactions

    async def list_transactions(self, **filters) -> dict:
        """
        Get a page of transactions.

        Keyword arguments are the listing's query parameters in snake_case
        (product_id, transaction_type, date_from, date_to, search, sort_by,
        sort_direction, page, page_size).
        """
        params = _query(filters)
        key = _cache_key("transactions", params)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        return await self._debounced_get(
            key, f"{self.transactions_url}{TRANSACTIONS_PATH}/", params
        )

    async def list_transaction_products(self) -> List[dict]:
        """Every product, read through the Transactions service."""
        return await self._cached_get(
            "products_all", f"{self.transactions_url}{TRANSACTIONS_PATH}/products"
        )

    async def create_transaction(self, transaction: Any) -> dict:
        data = await self._request(
            "POST", f"{self.transactions_url}{TRANSACTIONS_PATH}/", json=_body(transaction)
        )
        self.cache.clear()
        return data

    async def update_transaction(self, transaction_id: int, transaction: Any) -> dict:
        data = await self._request(
            "PUT",
            f"{self.transactions_url}{TRANSACTIONS_PATH}/{transaction_id}",
            json=_body(transaction),
        )
        self.cache.clear()
        return data

    async def delete_transaction(self, transaction_id: int) -> bool:
        await self._request(
            "DELETE", f"{self.transactions_url}{TRANSACTIONS_PATH}/{transaction_id}"
        )
        self.cache.clear()
        return True


@dataclass
class TransactionStats:
    total: int = 0
    purchases: int = 0
    sales: int = 0
    purchase_amount: Decimal = Decimal("0")
    sale_amount: Decimal = Decimal("0")


def summarize_transactions(transactions: Iterable[dict]) -> TransactionStats:
    """Counts and amounts of a page of transactions, split by type."""
    stats = TransactionStats()
    for transaction in transactions:
        stats.total += 1
        amount = Decimal(str(transaction.get("totalPrice", 0)))
        if transaction.get("transactionType") == TransactionType.PURCHASE.value:
            stats.purchases += 1
            stats.purchase_amount += amount
        elif transaction.get("transactionType") == TransactionType.SALE.value:
            stats.sales += 1
            stats.sale_amount += amount
    return stats
