from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from inventory.database import get_db
from inventory.services.product_client import (
    ProductClient,
    ProductServiceError,
    get_product_client,
)
from inventory.services.transaction_service import (
    TransactionService,
    TransactionNotFoundError,
    ProductNotFoundError,
    InsufficientStockError,
    StockUpdateError,
)
from inventory.schemas.common import ApiResponse, PagedResult
from inventory.schemas.product import ProductResponse
from inventory.schemas.transaction import (
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
)

router = APIRouter(prefix="/transacciones", tags=["Transactions"])


def get_transaction_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
) -> TransactionService:
    return TransactionService(db, product_client)


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _upstream() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Product service unavailable",
    )


@router.get(
    "/",
    response_model=ApiResponse[PagedResult[TransactionResponse]],
    summary="List transactions",
    description="Filter, search, sort and paginate transactions."
)
def list_transactions(
    product_id: Optional[int] = Query(None, alias="productId"),
    transaction_type: Optional[str] = Query(None, alias="transactionType", description="Purchase or Sale"),
    date_from: Optional[date] = Query(None, alias="dateFrom", description="First day included"),
    date_to: Optional[date] = Query(None, alias="dateTo", description="Last day included"),
    search: Optional[str] = Query(None, description="Substring of product name or details"),
    sort_by: Optional[str] = Query("date", alias="sortBy", description="date, product, type or total"),
    sort_direction: Optional[str] = Query("desc", alias="sortDirection", description="asc or desc"),
    page: int = Query(1, description="Page number (1-indexed)"),
    page_size: int = Query(10, alias="pageSize", description="Items per page (max 100)"),
    service: TransactionService = Depends(get_transaction_service),
):
    """Get a page of transactions."""
    transactions, total, page, page_size = service.get_transactions(
        product_id, transaction_type, date_from, date_to, search,
        sort_by, sort_direction, page, page_size,
    )

    return ApiResponse[PagedResult[TransactionResponse]](
        success=True,
        message="Transactions retrieved successfully",
        data=PagedResult[TransactionResponse](
            data=[TransactionResponse.model_validate(t) for t in transactions],
            total_records=total,
            page=page,
            page_size=page_size,
        ),
    )


@router.get(
    "/products",
    response_model=ApiResponse[List[ProductResponse]],
    summary="List all products",
    description="Every product, read through the Products service."
)
async def list_products(
    product_client: ProductClient = Depends(get_product_client),
):
    """Proxy of the Products listing so callers need only this service's URL."""
    try:
        products = await product_client.list_all_products()
    except ProductServiceError as e:
        raise _upstream() from e

    return ApiResponse[List[ProductResponse]](
        success=True,
        message="Products retrieved successfully",
        data=products,
    )


@router.get(
    "/{transaction_id}",
    response_model=ApiResponse[TransactionResponse],
    summary="Get transaction by ID",
)
def get_transaction(
    transaction_id: int,
    service: TransactionService = Depends(get_transaction_service),
):
    """Get a transaction by ID."""
    transaction = service.get_transaction(transaction_id)

    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )

    return ApiResponse[TransactionResponse](
        success=True,
        message="Transaction retrieved successfully",
        data=TransactionResponse.model_validate(transaction),
    )


@router.post(
    "/",
    response_model=ApiResponse[TransactionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Record a purchase or sale",
    description="""
    Record a stock movement.

    The product is read from the Products service, the new stock is pushed
    back to it, and only then is the transaction saved. A sale larger than
    the available stock is rejected with 400.
    """
)
async def create_transaction(
    transaction_data: TransactionCreate,
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Create a transaction.

    - **transactionType**: Purchase or Sale (required)
    - **productId**: Product whose stock moves (required)
    - **quantity**: Units, must be positive (required)
    - **unitPrice**: Price per unit, must be positive (required)
    - **details**: Notes, up to 500 characters (optional)
    """
    try:
        transaction = await service.create_transaction(transaction_data)
    except (ProductNotFoundError, InsufficientStockError, StockUpdateError) as e:
        raise _bad_request(e)
    except ProductServiceError as e:
        raise _upstream() from e

    return ApiResponse[TransactionResponse](
        success=True,
        message="Transaction created successfully",
        data=TransactionResponse.model_validate(transaction),
    )


@router.put(
    "/{transaction_id}",
    response_model=ApiResponse[TransactionResponse],
    summary="Edit a transaction",
    description="Replace a transaction and move stock by the difference."
)
async def update_transaction(
    transaction_id: int,
    transaction_data: TransactionUpdate,
    service: TransactionService = Depends(get_transaction_service),
):
    """Update a transaction."""
    try:
        transaction = await service.update_transaction(transaction_id, transaction_data)
    except TransactionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )
    except (ProductNotFoundError, InsufficientStockError, StockUpdateError) as e:
        raise _bad_request(e)
    except ProductServiceError as e:
        raise _upstream() from e

    return ApiResponse[TransactionResponse](
        success=True,
        message="Transaction updated successfully",
        data=TransactionResponse.model_validate(transaction),
    )


@router.delete(
    "/{transaction_id}",
    response_model=ApiResponse[bool],
    summary="Delete a transaction",
    description="Delete a transaction, undoing its stock movement when possible."
)
async def delete_transaction(
    transaction_id: int,
    service: TransactionService = Depends(get_transaction_service),
):
    """Delete a transaction."""
    try:
        await service.delete_transaction(transaction_id)
    except TransactionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )

    return ApiResponse[bool](success=True, message="Transaction deleted successfully", data=True)
