"""Utility endpoints."""

from fastapi import APIRouter

from ledger.core import schemas

router = APIRouter(
    prefix="/utilities",
    tags=["services"],
)


@router.get("/ping", response_model=schemas.Pong)
async def ping() -> schemas.Pong:
    """Answer with a pong so clients can check the service is reachable."""
    return schemas.Pong(message="Pong...")
