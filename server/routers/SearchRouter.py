from fastapi import APIRouter, Depends, Query, Request

from server.core.SearchService import DEFAULT_LIMIT
from server.dependencies.auth import get_identity, verify_api_key
from server.models.responses import SearchResultResponse
from shared.models.identity import Identity

router = APIRouter(prefix="/documents", tags=["search"])


@router.get("/search", response_model=list[SearchResultResponse])
async def search_documents(
    request: Request,
    q: str = Query(default=""),
    limit: int = Query(default=DEFAULT_LIMIT),
    _: None = Depends(verify_api_key),
    identity: Identity = Depends(get_identity),
) -> list[SearchResultResponse]:
    """Rank documents by title and extracted text.

    Args:
        request (Request): FastAPI request (provides app.state.search_service).
        q (str): The query; blank queries are rejected with 400.
        limit (int): Maximum number of results.

    Returns:
        list[SearchResultResponse]: Ranked documents, best first.
    """
    search_service = request.app.state.search_service
    hits = await search_service.search(q, limit=limit)
    return [SearchResultResponse.from_hit(hit) for hit in hits]
