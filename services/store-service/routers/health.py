"""Health check router."""
from fastapi import APIRouter

from config import API_VERSION
from models import utcnow
from schemas import HealthResponse

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": utcnow(), "version": API_VERSION}
