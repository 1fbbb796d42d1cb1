from datetime import date, datetime, time, timedelta
from typing import Optional, List, Tuple
import logging

from sqlalchemy.orm import Session

from inventory.config import get_settings
from inventory.models.transaction import Transaction, TransactionType
from inventory.schemas.transaction import TransactionCreate, TransactionUpdate
from inventory.services.product_client import ProductClient, ProductServiceError

settings = get_settings()
logger = logging.getLogger(__name__)


class TransactionNotFoundError(Exception):
    """Exception raised when the requested transaction doesn't exist."""
    pass


class ProductNotFoundError(Exception):
    """Exception raised when the referenced product doesn't exist."""
    pass


class InsufficientStockError(Exception):
    """Exception raised when a sale would take more units than are in stock."""
    pass


class StockUpdateError(Exception):
    """Exception raised when the Products service refuses or misses a stock push."""
    pass


def apply_movement(stock: int, transaction_type: str, quantity: int) -> int:
    """Stock after a movement: purchases add units, sales remove them."""
    if transaction_type == TransactionType.PURCHASE:
        return stock + quantity
    return stock - quantity


def reverse_movement(stock: int, transaction_type: str, quantity: int) -> int:
    """Stock as it would be had the movement never happened."""
    if transaction_type == TransactionType.PURCHASE:
        return stock - quantity
    return stock + quantity


SORT_COLUMNS = {
    "date": Transaction.transaction_date,
    "product": Transaction.product_name,
    "type": Transaction.transaction_type,
    "total": Transaction.total_price,
}


class TransactionService:
    """
    Service class for Transaction operations and their stock side effects.

    STOCK PROTOCOL:
    ===============
    The Products service owns stock. Every transaction write reads the
    product over HTTP, computes the resulting absolute stock locally and
    pushes it back with ``PUT /api/productos/{id}/stock`` before the
    transaction row is written:

    - create: stock +/- quantity
    - update: undo the stored movement, then apply the requested one
    - delete: undo the stored movement, floored at zero

    Create and update fail as a whole when the push fails, so a transaction
    row is never saved without its stock change. Delete treats the push as
    best-effort and always removes the row.

    Two concurrent writes against the same product both read the same
    stock and the last push wins. Nothing here serializes them.
    """

    def __init__(self, db: Session, product_client: ProductClient):
        self.db = db
        self.product_client = product_client

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get a transaction by ID."""
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def get_transactions(
        self,
        product_id: Optional[int] = None,
        transaction_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = "date",
        sort_direction: Optional[str] = "desc",
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[Transaction], int, int, int]:
        """
        Get a filtered, sorted page of transactions.

        Args:
            product_id: Only movements of this product
            transaction_type: Only Purchase or only Sale
            date_from: Earliest day included
            date_to: Latest day included (the whole day counts)
            search: Case-insensitive substring of product name or details
            sort_by: One of date, product, type, total (default date)
            sort_direction: asc/desc; date defaults to descending
            page: Page number (1-indexed)
            page_size: Number of items per page

        Returns:
            Tuple of (transactions, total count, page, page size)
        """
        page = max(page, 1)
        page_size = max(1, min(page_size, settings.MAX_PAGE_SIZE))

        query = self.db.query(Transaction)

        if product_id is not None:
            query = query.filter(Transaction.product_id == product_id)

        if transaction_type:
            query = query.filter(Transaction.transaction_type == transaction_type)

        if date_from:
            query = query.filter(
                Transaction.transaction_date >= datetime.combine(date_from, time.min)
            )

        if date_to:
            upper = datetime.combine(date_to + timedelta(days=1), time.min)
            query = query.filter(Transaction.transaction_date < upper)

        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(
                Transaction.product_name.ilike(pattern) | Transaction.details.ilike(pattern)
            )

        total = query.count()

        key = (sort_by or "").lower()
        direction = (sort_direction or "").lower()
        if key not in SORT_COLUMNS:
            key, direction = "date", "desc"

        column = SORT_COLUMNS[key]
        if key == "date":
            descending = direction != "asc"
        else:
            descending = direction == "desc"

        if descending:
            query = query.order_by(column.desc(), Transaction.id.desc())
        else:
            query = query.order_by(column.asc(), Transaction.id.asc())

        transactions = query.offset((page - 1) * page_size).limit(page_size).all()

        return transactions, total, page, page_size

    async def create_transaction(self, data: TransactionCreate) -> Transaction:
        """
        Record a purchase or sale and push the resulting stock.

        Algorithm:
        1. Fetch the product from the Products service
        2. Reject sales larger than the available stock
        3. Compute total price and the new stock
        4. Push the new stock; abort if the push fails
        5. Persist the transaction with a snapshot of the product name

        Raises:
            ProductNotFoundError: If the product doesn't exist
            InsufficientStockError: If a sale exceeds the available stock
            StockUpdateError: If the Products service did not take the stock
            ProductServiceError: If the Products service is unreachable
        """
        transaction_type = TransactionType(data.transaction_type)

        product = await self.product_client.get_product(data.product_id)
        if product is None:
            raise ProductNotFoundError("Product not found")

        if transaction_type == TransactionType.SALE and data.quantity > product.stock:
            raise InsufficientStockError(
                f"Insufficient stock. Available: {product.stock}, Requested: {data.quantity}"
            )

        total_price = data.quantity * data.unit_price
        new_stock = apply_movement(product.stock, transaction_type, data.quantity)

        if not await self.product_client.update_stock(data.product_id, new_stock):
            raise StockUpdateError("Error updating product stock")

        transaction = Transaction(
            transaction_type=transaction_type.value,
            product_id=data.product_id,
            product_name=product.name,
            quantity=data.quantity,
            unit_price=data.unit_price,
            total_price=total_price,
            details=data.details,
        )

        try:
            self.db.add(transaction)
            self.db.commit()
            self.db.refresh(transaction)
        except Exception:
            self.db.rollback()
            # No compensation exists: the product already holds new_stock
            logger.error(
                f"Stock for product {data.product_id} was set to {new_stock} "
                f"but the transaction could not be saved",
                exc_info=True,
            )
            raise

        logger.info(
            f"Transaction #{transaction.id} created: {transaction_type.value} of "
            f"{data.quantity} x product #{data.product_id}, stock now {new_stock}"
        )
        return transaction

    async def update_transaction(
        self, transaction_id: int, data: TransactionUpdate
    ) -> Transaction:
        """
        Edit a transaction and move stock by the difference.

        The stored type and quantity are undone against the current stock of
        the requested product, then the requested movement is applied on top.

        Raises:
            TransactionNotFoundError: If the transaction doesn't exist
            ProductNotFoundError: If the requested product doesn't exist
            InsufficientStockError: If a sale would leave negative stock
            StockUpdateError: If the Products service did not take the stock
            ProductServiceError: If the Products service is unreachable
        """
        transaction = self.get_transaction(transaction_id)
        if not transaction:
            raise TransactionNotFoundError(f"Transaction with ID {transaction_id} not found")

        transaction_type = TransactionType(data.transaction_type)

        product = await self.product_client.get_product(data.product_id)
        if product is None:
            raise ProductNotFoundError("Product not found")

        old_stock = reverse_movement(
            product.stock, transaction.transaction_type, transaction.quantity
        )
        new_stock = apply_movement(old_stock, transaction_type, data.quantity)

        if transaction_type == TransactionType.SALE and new_stock < 0:
            raise InsufficientStockError(
                f"Insufficient stock for this change. Resulting stock would be: {new_stock}"
            )

        if not await self.product_client.update_stock(data.product_id, new_stock):
            raise StockUpdateError("Error updating product stock")

        transaction.transaction_type = transaction_type.value
        transaction.product_id = data.product_id
        transaction.product_name = product.name
        transaction.quantity = data.quantity
        transaction.unit_price = data.unit_price
        transaction.total_price = data.quantity * data.unit_price
        transaction.details = data.details

        try:
            self.db.commit()
            self.db.refresh(transaction)
        except Exception:
            self.db.rollback()
            logger.error(
                f"Stock for product {data.product_id} was set to {new_stock} "
                f"but transaction #{transaction_id} could not be saved",
                exc_info=True,
            )
            raise

        logger.info(
            f"Transaction #{transaction_id} updated, stock of product "
            f"#{data.product_id} now {new_stock}"
        )
        return transaction

    async def delete_transaction(self, transaction_id: int) -> None:
        """
        Delete a transaction, undoing its stock movement on a best-effort basis.

        A missing product, an unreachable Products service or a rejected
        stock push is logged and ignored; the row is deleted regardless.

        Raises:
            TransactionNotFoundError: If the transaction doesn't exist
        """
        transaction = self.get_transaction(transaction_id)
        if not transaction:
            raise TransactionNotFoundError(f"Transaction with ID {transaction_id} not found")

        try:
            product = await self.product_client.get_product(transaction.product_id)
        except ProductServiceError as e:
            logger.warning(
                f"Skipping stock reversal for transaction #{transaction_id}: {e}"
            )
            product = None

        if product is not None:
            reverted = max(
                0,
                reverse_movement(
                    product.stock, transaction.transaction_type, transaction.quantity
                ),
            )
            if not await self.product_client.update_stock(transaction.product_id, reverted):
                logger.warning(
                    f"Stock reversal for transaction #{transaction_id} was not applied; "
                    f"product #{transaction.product_id} may be stale"
                )

        self.db.delete(transaction)
        self.db.commit()

        logger.info(f"Transaction #{transaction_id} deleted")
