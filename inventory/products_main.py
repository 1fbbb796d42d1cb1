from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from inventory.config import get_settings
from inventory.database import engine, Base
from inventory.api import products, health
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
    logger.info("Starting up Products service...")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    yield

    # Shutdown
    logger.info("Shutting down Products service...")


# Create FastAPI application
app = FastAPI(
    title="Inventory Products Service",
    description="""
    Product catalogue and stock owner of the inventory system:

    - **Product Management**: Search, filter, sort and paginate products; full CRUD
    - **Stock Writes**: `PUT /api/productos/{id}/stock` sets the absolute stock
    - **Categories**: Distinct categories in use

    ## Caching
    Listings, single products and the category list are cached in Redis.
    Entries combine an absolute lifetime with a sliding window, and every
    product write (stock writes included) drops the product's entry, every
    listing and the category list.
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
app.include_router(health.products_router, prefix="/api")
app.include_router(products.router, prefix="/api")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": "Inventory Products Service",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/health"
    }
