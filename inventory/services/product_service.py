from sqlalchemy.orm import Session
from typing import Optional, List
from urllib.parse import urlencode
import logging

from inventory.config import get_settings
from inventory.models.product import Product
from inventory.schemas.common import ApiResponse, PagedResult
from inventory.schemas.product import ProductCreate, ProductUpdate, ProductResponse
from inventory.utils.cache import CacheService, cache_service

settings = get_settings()
logger = logging.getLogger(__name__)


class ProductNotFoundError(Exception):
    """Exception raised when the requested product doesn't exist."""
    pass


class NegativeStockError(Exception):
    """Exception raised when a stock write would leave a negative count."""
    pass


SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "stock": Product.stock,
    "category": Product.category,
}


class ProductService:
    """
    Service class for Product operations.

    This service handles:
    - Listing, searching and paginating products (read-through cached)
    - Reading single products and the category list (cached)
    - Creating, replacing and deleting products
    - Direct stock writes requested by the Transactions service
    - Cache invalidation after every write

    Cached values are complete response envelopes, so a hit is returned
    as-is without touching the database.
    """

    PRODUCT_PREFIX = "product"
    LIST_PREFIX = "product_list"
    CATEGORIES_PREFIX = "categories"
    CATEGORIES_KEY = "all"

    def __init__(self, db: Session, cache: CacheService = None):
        self.db = db
        self.cache = cache or cache_service

    def get_all(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        sort_by: Optional[str] = "name",
        sort_direction: Optional[str] = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> dict:
        """
        Get a filtered, sorted page of products.

        Args:
            search: Case-insensitive substring of name or description
            category: Exact category
            sort_by: One of name, price, stock, category (default name)
            sort_direction: 'desc' for descending, anything else ascending
            page: Page number (1-indexed, clamped to at least 1)
            page_size: Items per page (clamped to 1..MAX_PAGE_SIZE)

        Returns:
            Serialized envelope wrapping a PagedResult
        """
        page = max(page, 1)
        page_size = max(1, min(page_size, settings.MAX_PAGE_SIZE))

        cache_key = urlencode(sorted({
            "search": search or "",
            "category": category or "",
            "sortBy": sort_by or "",
            "sortDirection": sort_direction or "",
            "page": page,
            "pageSize": page_size,
        }.items()))
        cached = self.cache.get(self.LIST_PREFIX, cache_key)
        if cached is not None:
            logger.info(f"Returning cached products for key: {cache_key}")
            return cached

        query = self.db.query(Product)

        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(
                Product.name.ilike(pattern) | Product.description.ilike(pattern)
            )

        if category and category.strip():
            query = query.filter(Product.category == category)

        total = query.count()

        column = SORT_COLUMNS.get((sort_by or "").lower(), Product.name)
        if (sort_by or "").lower() in SORT_COLUMNS and (sort_direction or "").lower() == "desc":
            query = query.order_by(column.desc(), Product.id.desc())
        else:
            query = query.order_by(column.asc(), Product.id.asc())

        products = query.offset((page - 1) * page_size).limit(page_size).all()

        response = ApiResponse[PagedResult[ProductResponse]](
            success=True,
            message="Products retrieved successfully",
            data=PagedResult[ProductResponse](
                data=[ProductResponse.model_validate(p) for p in products],
                total_records=total,
                page=page,
                page_size=page_size,
            ),
        ).model_dump(mode="json", by_alias=True)

        # Unfiltered listings churn less than searches
        if search or category:
            self.cache.set(
                self.LIST_PREFIX, cache_key, response,
                settings.CACHE_SHORT_TTL, settings.CACHE_SHORT_SLIDING,
            )
        else:
            self.cache.set(
                self.LIST_PREFIX, cache_key, response,
                settings.CACHE_LONG_TTL, settings.CACHE_LONG_SLIDING,
            )

        logger.info(f"Products retrieved and cached for key: {cache_key}")
        return response

    def get_by_id_cached(self, product_id: int) -> dict:
        """
        Get product envelope from cache or database.

        Args:
            product_id: Product ID to look up

        Returns:
            Serialized envelope wrapping the product

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        cached = self.cache.get(self.PRODUCT_PREFIX, str(product_id))
        if cached is not None:
            logger.info(f"Returning cached product for ID: {product_id}")
            return cached

        product = self.get_by_id(product_id)
        if not product:
            raise ProductNotFoundError(f"Product with ID {product_id} not found")

        response = ApiResponse[ProductResponse](
            success=True,
            message="Product retrieved successfully",
            data=ProductResponse.model_validate(product),
        ).model_dump(mode="json", by_alias=True)

        self.cache.set(
            self.PRODUCT_PREFIX, str(product_id), response,
            settings.CACHE_LONG_TTL, settings.CACHE_LONG_SLIDING,
        )
        return response

    def get_by_id(self, product_id: int) -> Optional[Product]:
        """Get a product by ID straight from the database."""
        return self.db.query(Product).filter(Product.id == product_id).first()

    def get_categories(self) -> dict:
        """
        Get the sorted list of distinct categories.

        Cached with its own absolute TTL and dropped on every product write.
        """
        cached = self.cache.get(self.CATEGORIES_PREFIX, self.CATEGORIES_KEY)
        if cached is not None:
            logger.info("Returning cached categories")
            return cached

        rows = (
            self.db.query(Product.category)
            .distinct()
            .order_by(Product.category)
            .all()
        )
        categories: List[str] = [row[0] for row in rows]

        response = ApiResponse[List[str]](
            success=True,
            message="Categories retrieved successfully",
            data=categories,
        ).model_dump(mode="json", by_alias=True)

        self.cache.set(
            self.CATEGORIES_PREFIX, self.CATEGORIES_KEY, response,
            settings.CACHE_CATEGORIES_TTL,
        )
        return response

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        Args:
            product_data: Validated and trimmed product fields

        Returns:
            Created product instance
        """
        product = Product(**product_data.model_dump())
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)

        self._invalidate_cache(product.id)
        logger.info(f"Product created with ID: {product.id}")

        return product

    def update(self, product_id: int, product_data: ProductUpdate) -> Product:
        """
        Replace every mutable field of an existing product.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        product = self.get_by_id(product_id)
        if not product:
            raise ProductNotFoundError(f"Product with ID {product_id} not found")

        for field, value in product_data.model_dump().items():
            setattr(product, field, value)

        self.db.commit()
        self.db.refresh(product)

        self._invalidate_cache(product_id)
        logger.info(f"Product updated with ID: {product_id}")

        return product

    def delete(self, product_id: int) -> None:
        """
        Delete a product. The store cascades the delete to its transactions.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        product = self.get_by_id(product_id)
        if not product:
            raise ProductNotFoundError(f"Product with ID {product_id} not found")

        self.db.delete(product)
        self.db.commit()

        self._invalidate_cache(product_id)
        logger.info(f"Product deleted with ID: {product_id}")

    def update_stock(self, product_id: int, new_stock: int) -> None:
        """
        Overwrite a product's stock without touching its other fields.

        This is the endpoint the Transactions service pushes its computed
        stock to. Writing the same value twice leaves the product unchanged.

        Raises:
            NegativeStockError: If new_stock is below zero
            ProductNotFoundError: If product doesn't exist
        """
        if new_stock < 0:
            raise NegativeStockError("Stock cannot be negative")

        rows = (
            self.db.query(Product)
            .filter(Product.id == product_id)
            .update({Product.stock: new_stock}, synchronize_session=False)
        )
        if rows == 0:
            self.db.rollback()
            raise ProductNotFoundError(f"Product with ID {product_id} not found")

        self.db.commit()

        self._invalidate_cache(product_id)
        logger.info(f"Stock updated for product {product_id} to {new_stock}")

    def _invalidate_cache(self, product_id: int) -> None:
        """Drop the product's own entry, every listing and the category list."""
        self.cache.delete(self.PRODUCT_PREFIX, str(product_id))
        self.cache.delete(self.CATEGORIES_PREFIX, self.CATEGORIES_KEY)
        swept = self.cache.delete_pattern(f"{self.LIST_PREFIX}:*")
        logger.info(f"Product cache invalidated for product {product_id} ({swept} listings)")
