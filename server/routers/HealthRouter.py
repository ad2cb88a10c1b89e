from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from server.models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> JSONResponse:
    """Report reachability of every configured backend. 503 if any of them is down."""
    results: dict[str, bool] = {}
    for client in request.app.state.clients:
        name = f"{client.get_client_type()}:{client.get_engine_name()}"
        try:
            results[name] = await client.do_healthcheck()
        except Exception as e:
            request.app.state.logging.warning("Healthcheck for %s failed: %s", name, e)
            results[name] = False
    healthy = all(results.values())
    body = HealthResponse(status="ok" if healthy else "degraded", clients=results)
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())
