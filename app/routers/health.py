"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends

from app.core.config import Settings, get_settings
from app.core.utc import utc_now
from app.routers.graduation import get_repository
from app.services.validation import DictionaryRepository

router = APIRouter()


@router.get("/health")
async def health(
    settings: Settings = Depends(get_settings),
    repository: DictionaryRepository = Depends(get_repository),
):
    """Liveness plus a summary of dictionary load state."""
    stats = repository.stats()
    return {
        "status": "ok",
        "app": settings.app_name,
        "version": settings.app_version,
        "timestamp": utc_now().isoformat(),
        "dictionaries": {
            "total": stats["total_types"],
            "loaded": stats["loaded_types"],
        },
    }
