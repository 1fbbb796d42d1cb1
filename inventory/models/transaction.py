from datetime import datetime, timezone
import enum

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint

from inventory.database import Base


class TransactionType(str, enum.Enum):
    """Kinds of stock movement a transaction records."""
    PURCHASE = "Purchase"
    SALE = "Sale"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Transaction(Base):
    """
    Transaction model owned by the Transactions service.

    ``product_name`` is a snapshot of the product name at write time and is
    not kept in sync with later renames.

    Attributes:
        id: Unique identifier assigned by the store
        transaction_date: When the movement happened (UTC)
        transaction_type: Purchase or Sale
        product_id: Reference to the product whose stock moved
        product_name: Product name captured at write time
        quantity: Units moved
        unit_price: Price per unit
        total_price: quantity * unit_price, computed at write time
        details: Optional free-text notes
    """
    __tablename__ = "Transacciones"

    id = Column(Integer, primary_key=True, index=True)
    transaction_date = Column(DateTime, nullable=False, default=_utcnow, index=True)
    transaction_type = Column(String(10), nullable=False, index=True)
    product_id = Column(
        Integer,
        ForeignKey("Productos.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_name = Column(String(200), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)
    total_price = Column(Numeric(18, 2), nullable=False)
    details = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('Purchase', 'Sale')", name='check_transaction_type'
        ),
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
    )

    def __repr__(self):
        return (
            f"<Transaction(id={self.id}, type='{self.transaction_type}', "
            f"product_id={self.product_id}, quantity={self.quantity})>"
        )
