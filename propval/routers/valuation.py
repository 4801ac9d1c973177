from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from ..schemas import ValuationRequest, ValuationResponse
from ..services.valuation_service import ValuationService
from ..core.errors import Timeout, ValidationError
from ..core.security import require_api_key, rate_limit

router = APIRouter()


def service_dep(request: Request) -> ValuationService:
    # Built once in create_app; clients are shared across requests
    return request.app.state.valuation_service


@router.post("/valuation", response_model=ValuationResponse)
async def post_valuation(
    body: ValuationRequest,
    request: Request,
    _auth = Depends(require_api_key),     # API key guard
    _lim  = Depends(rate_limit),          # Rate limiting
    svc: ValuationService = Depends(service_dep),
):
    request_id = getattr(request.state, "request_id", None)
    try:
        payload = await svc.value_property(body, request_id=request_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Timeout as exc:
        raise HTTPException(status_code=504, detail=str(exc))
    if not payload["success"]:
        return JSONResponse(status_code=500, content=ValuationResponse(**payload).model_dump())
    return payload


@router.get("/providers/status")
def providers_status(
    _auth = Depends(require_api_key),
    svc: ValuationService = Depends(service_dep),
):
    """Which AI providers are configured, with endpoints and keys masked."""
    return svc.providers_status()
