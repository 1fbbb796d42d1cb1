from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from inventory.database import get_db
from inventory.services.product_service import (
    ProductService,
    ProductNotFoundError,
    NegativeStockError,
)
from inventory.schemas.common import ApiResponse, PagedResult
from inventory.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
)

router = APIRouter(prefix="/productos", tags=["Products"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")


@router.get(
    "/",
    response_model=ApiResponse[PagedResult[ProductResponse]],
    summary="List products",
    description="Search, filter, sort and paginate products. Results are cached in Redis."
)
def list_products(
    search: Optional[str] = Query(None, description="Substring of name or description"),
    category: Optional[str] = Query(None, description="Exact category"),
    sort_by: Optional[str] = Query("name", alias="sortBy", description="name, price, stock or category"),
    sort_direction: Optional[str] = Query("asc", alias="sortDirection", description="asc or desc"),
    page: int = Query(1, description="Page number (1-indexed)"),
    page_size: int = Query(10, alias="pageSize", description="Items per page (max 100)"),
    db: Session = Depends(get_db)
):
    """Get a page of products."""
    service = ProductService(db)
    return service.get_all(search, category, sort_by, sort_direction, page, page_size)


@router.get(
    "/categories",
    response_model=ApiResponse[List[str]],
    summary="List categories",
    description="Distinct product categories, sorted."
)
def list_categories(db: Session = Depends(get_db)):
    """Get every category currently in use."""
    service = ProductService(db)
    return service.get_categories()


@router.get(
    "/{product_id}",
    response_model=ApiResponse[ProductResponse],
    summary="Get product by ID",
    description="Get a single product. Results are cached in Redis."
)
def get_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """Get a product by ID."""
    service = ProductService(db)
    try:
        return service.get_by_id_cached(product_id)
    except ProductNotFoundError:
        raise _not_found()


@router.post(
    "/",
    response_model=ApiResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db)
):
    """
    Create a new product.

    - **name**: Product name, up to 200 characters (required)
    - **category**: Category, up to 100 characters (required)
    - **price**: Must be positive (required)
    - **stock**: Initial stock, must be non-negative
    """
    service = ProductService(db)
    product = service.create(product_data)
    return ApiResponse[ProductResponse](
        success=True,
        message="Product created successfully",
        data=ProductResponse.model_validate(product),
    )


@router.put(
    "/{product_id}",
    response_model=ApiResponse[ProductResponse],
    summary="Replace a product",
    description="Replace every mutable field of a product."
)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db)
):
    """Update a product. Cache is invalidated after update."""
    service = ProductService(db)
    try:
        product = service.update(product_id, product_data)
    except ProductNotFoundError:
        raise _not_found()

    return ApiResponse[ProductResponse](
        success=True,
        message="Product updated successfully",
        data=ProductResponse.model_validate(product),
    )


@router.delete(
    "/{product_id}",
    response_model=ApiResponse[bool],
    summary="Delete a product",
    description="Delete a product and, through the store, its transactions."
)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """Delete a product."""
    service = ProductService(db)
    try:
        service.delete(product_id)
    except ProductNotFoundError:
        raise _not_found()

    return ApiResponse[bool](success=True, message="Product deleted successfully", data=True)


@router.put(
    "/{product_id}/stock",
    response_model=ApiResponse[bool],
    summary="Set product stock",
    description="Overwrite the stock count. Body is a bare JSON integer."
)
def update_stock(
    product_id: int,
    new_stock: int = Body(..., description="New absolute stock"),
    db: Session = Depends(get_db)
):
    """
    Set the stock of a product.

    Called by the Transactions service after it computes the stock a
    transaction implies. Setting the same value twice is harmless.
    """
    service = ProductService(db)
    try:
        service.update_stock(product_id, new_stock)
    except NegativeStockError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProductNotFoundError:
        raise _not_found()

    return ApiResponse[bool](success=True, message="Stock updated successfully", data=True)
