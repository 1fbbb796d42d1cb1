from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from inventory.config import get_settings
from inventory.database import engine, Base
from inventory.api import transactions, health
from inventory.api.errors import register_exception_handlers

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up Transactions service...")
    logger.info(f"Products service expected at {settings.PRODUCT_SERVICE_URL}")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    yield

    # Shutdown
    logger.info("Shutting down Transactions service...")


# Create FastAPI application
app = FastAPI(
    title="Inventory Transactions Service",
    description="""
    Purchase and sale ledger of the inventory system:

    - **Transactions**: Filter, search, sort and paginate; full CRUD
    - **Products Proxy**: `GET /api/transacciones/products` lists every product

    ## Stock Consistency
    The Products service owns stock. Creating, editing or deleting a
    transaction reads the product over HTTP, computes the resulting stock and
    pushes it back before the transaction row is written. A sale larger than
    the available stock is rejected. Deleting a transaction undoes its stock
    movement on a best-effort basis.
    """,
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(health.transactions_router, prefix="/api")
app.include_router(transactions.router, prefix="/api")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": "Inventory Transactions Service",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/health"
    }
