"""
Search API Router

REST endpoints for the web search orchestrator.

Endpoints:
- POST /api/v1/search/web - Intent-aware multi-backend web search
- POST /api/v1/search/classify - Intent and strategy for a query, no search
- GET /api/v1/search/stats - Metrics summary and cache statistics
- DELETE /api/v1/search/cache - Clear the result cache
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from core.exceptions import NoResultsError
from websearch.formatting import get_fallback_resources
from websearch.models import ClassifyRequest, ResponseMeta, WebSearchRequest, WebSearchResponse
from websearch.service import SearchService

logger = logging.getLogger("api.search")

router = APIRouter(prefix="/api/v1/search", tags=["Search"])


def get_search_service(request: Request) -> SearchService:
    """The process-wide SearchService created in the application lifespan"""
    return request.app.state.search_service


def _envelope(data: Any) -> Dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "meta": ResponseMeta().model_dump(),
        "errors": [],
    }


@router.post("/web", response_model=WebSearchResponse)
async def web_search(
    body: WebSearchRequest,
    service: SearchService = Depends(get_search_service),
) -> WebSearchResponse:
    """
    Search the web.

    Classifies the query, fans out to the backends suited to its intent,
    scores and diversifies the merged results and returns them with
    citations. A search that finds nothing fails with ERR_4003 and carries
    static fallback resources in the error details.
    """
    logger.info(f"Web search: '{body.query[:80]}' max_uses={body.max_uses}")
    try:
        outcome = await service.search(
            body.query,
            max_uses=body.max_uses,
            allowed_domains=body.allowed_domains,
            blocked_domains=body.blocked_domains,
            user_location=body.user_location,
        )
    except NoResultsError as e:
        e.details["fallback_resources"] = get_fallback_resources(body.query)
        raise

    return WebSearchResponse(data=outcome)


@router.post("/classify")
async def classify_query(
    body: ClassifyRequest,
    service: SearchService = Depends(get_search_service),
) -> Dict[str, Any]:
    """Intent and backend strategy a search for this query would use"""
    strategy = service.strategy_for(body.query, max_uses=body.max_uses)
    return _envelope({
        "query": body.query,
        "intent": strategy.intent.value,
        "strategy": strategy.to_dict(),
    })


@router.get("/stats")
async def search_stats(service: SearchService = Depends(get_search_service)) -> Dict[str, Any]:
    return _envelope(service.stats())


@router.delete("/cache")
async def clear_search_cache(service: SearchService = Depends(get_search_service)) -> Dict[str, Any]:
    """Drop every cached search outcome"""
    cleared = await service.clear_cache()
    logger.info(f"Search cache cleared ({cleared} entries)")
    return _envelope({
        "cleared": cleared,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })
