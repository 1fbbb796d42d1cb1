from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func

from inventory.database import Base


class Product(Base):
    """
    Product model owned by the Products service.

    Attributes:
        id: Unique identifier assigned by the store
        name: Product name
        description: Optional free-text description
        category: Category the product is listed under
        image_url: Optional image location
        price: Unit price (must be positive)
        stock: Available quantity (must be non-negative)
        created_at: Timestamp when product was created
    """
    __tablename__ = "Productos"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    category = Column(String(100), nullable=False, index=True)
    image_url = Column(String(500), nullable=True)
    price = Column(Numeric(18, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint('price > 0', name='check_price_positive'),
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
