import logging
from typing import Optional, List

import httpx

from inventory.config import get_settings
from inventory.schemas.common import CamelModel, Money

settings = get_settings()
logger = logging.getLogger(__name__)

PRODUCTS_PATH = "/api/productos"


class ProductServiceError(Exception):
    """Exception raised when the Products service is unreachable or misbehaves."""
    pass


class ProductSnapshot(CamelModel):
    """The slice of a product the Transactions service works with."""
    id: int
    name: str
    stock: int
    price: Money


class ProductClient:
    """
    HTTP client the Transactions service uses to talk to the Products service.

    Every call opens a short-lived ``httpx.AsyncClient`` with a bounded
    timeout. Calls are never retried here.

    Args:
        base_url: Products service root URL
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (e.g. an in-process ASGI app)
    """

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.base_url = base_url or settings.PRODUCT_SERVICE_URL
        self.timeout = timeout or settings.PRODUCT_SERVICE_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        )

    async def get_product(self, product_id: int) -> Optional[ProductSnapshot]:
        """
        Fetch one product.

        Returns:
            The product, or None if the Products service reports 404

        Raises:
            ProductServiceError: On transport failure or any other error status
        """
        url = f"{PRODUCTS_PATH}/{product_id}"
        async with self._client() as client:
            try:
                response = await client.get(url)
            except httpx.RequestError as e:
                logger.error(f"Network error fetching product {product_id}: {e}")
                raise ProductServiceError(f"Product service unavailable: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            logger.error(
                f"Product service returned {response.status_code} for product {product_id}"
            )
            raise ProductServiceError(
                f"Product service returned status {response.status_code}"
            )

        body = response.json()
        if not body.get("success") or body.get("data") is None:
            return None
        return ProductSnapshot.model_validate(body["data"])

    async def update_stock(self, product_id: int, new_stock: int) -> bool:
        """
        Push an absolute stock value to the Products service.

        Returns:
            True when the Products service accepted the write, False on any
            transport failure, timeout or non-success response
        """
        url = f"{PRODUCTS_PATH}/{product_id}/stock"
        async with self._client() as client:
            try:
                response = await client.put(url, json=new_stock)
            except httpx.RequestError as e:
                logger.error(f"Network error updating stock for product {product_id}: {e}")
                return False

        if not response.is_success:
            logger.warning(
                f"Stock update for product {product_id} rejected with status {response.status_code}"
            )
            return False

        logger.info(f"Stock for product {product_id} pushed as {new_stock}")
        return True

    async def list_all_products(self) -> List[dict]:
        """
        Read every page of the Products listing and flatten it.

        Raises:
            ProductServiceError: On transport failure or an error status
        """
        products: List[dict] = []
        page = 1
        async with self._client() as client:
            while True:
                try:
                    response = await client.get(
                        f"{PRODUCTS_PATH}/",
                        params={"page": page, "pageSize": settings.MAX_PAGE_SIZE},
                    )
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.error(f"Error listing products from product service: {e}")
                    raise ProductServiceError(f"Product service unavailable: {e}") from e

                result = response.json().get("data") or {}
                products.extend(result.get("data", []))
                if not result.get("hasNextPage"):
                    break
                page += 1

        return products

    async def ping(self) -> bool:
        """Check that the Products service answers its health endpoint."""
        async with self._client() as client:
            try:
                response = await client.get("/api/health/")
            except httpx.RequestError as e:
                logger.warning(f"Product service health check failed: {e}")
                return False
        return response.is_success


def get_product_client() -> ProductClient:
    """Dependency returning the Products service client."""
    return ProductClient()
