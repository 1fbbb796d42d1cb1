from fastapi import APIRouter, Depends
from sqlalchemy import text

from inventory.database import engine
from inventory.services.product_client import ProductClient, get_product_client
from inventory.utils.cache import cache_service

# One router per service: readiness depends on what each service talks to
products_router = APIRouter(prefix="/health", tags=["Health"])
transactions_router = APIRouter(prefix="/health", tags=["Health"])


def _check_database(checks: dict) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        checks["database_error"] = str(e)


def _readiness(checks: dict) -> dict:
    all_healthy = all(value for name, value in checks.items() if not name.endswith("_error"))
    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks
    }


@products_router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
@transactions_router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@products_router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the database and Redis are reachable."
)
def products_readiness_check():
    """
    Readiness check for the Products service.

    Returns status of:
    - Database connection
    - Redis connection
    """
    checks = {
        "database": False,
        "redis": False
    }

    _check_database(checks)

    try:
        cache_service.ping()
        checks["redis"] = True
    except Exception as e:
        checks["redis_error"] = str(e)

    return _readiness(checks)


@transactions_router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the database and the Products service are reachable."
)
async def transactions_readiness_check(
    product_client: ProductClient = Depends(get_product_client),
):
    """
    Readiness check for the Transactions service.

    Returns status of:
    - Database connection
    - Products service reachability
    """
    checks = {
        "database": False,
        "product_service": False
    }

    _check_database(checks)
    checks["product_service"] = await product_client.ping()

    return _readiness(checks)
