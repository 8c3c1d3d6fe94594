"""
Health check endpoint
"""
from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health_check():
    """Service liveness"""
    return {
        "status": "ok",
        "service": "hr-settlement-core",
    }
