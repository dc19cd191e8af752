"""
Health Check API Endpoint
Liveness plus a view of which search backends are registered and usable
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from websearch.service import SearchService

from .search import get_search_service

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
async def health_check(service: SearchService = Depends(get_search_service)) -> Dict[str, Any]:
    """
    Liveness check.

    Status is "degraded" when every registered backend is currently inside
    a rate-limit backoff window.
    """
    providers = {}
    for name, provider in sorted(service.providers.items()):
        available, reason = service.metrics.is_provider_available(name)
        providers[name] = {
            "priority": provider.priority,
            "available": available,
            "reason": reason,
        }

    any_available = any(p["available"] for p in providers.values())
    return {
        "status": "healthy" if any_available else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "environment": service.settings.environment,
        "providers": providers,
        "cache_enabled": service.cache is not None,
    }
