"""Health check endpoint for monitoring application status."""

from fastapi import APIRouter, Depends

from ledger.core import schemas
from ledger.core.database import DatabaseManager
from ledger.core.errors import DatabaseConnectionError
from ledger.core.init_db import get_db_manager

SERVICE_NAME = "Personal Ledger"

router = APIRouter(
    prefix="/health_check",
    tags=["services"],
    responses={200: {"description": "Service is healthy"}},
)


@router.get("/", response_model=schemas.HealthCheck)
async def health_check(manager: DatabaseManager = Depends(get_db_manager)) -> schemas.HealthCheck:
    """Check the health status of the service and its database."""
    try:
        await manager.health_check()
    except DatabaseConnectionError:
        return schemas.HealthCheck(service_name=SERVICE_NAME, status="unhealthy")
    return schemas.HealthCheck(
        service_name=SERVICE_NAME,
        status="healthy"
    )
