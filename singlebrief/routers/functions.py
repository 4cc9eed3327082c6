"""Function endpoints called by the signed-in browser client."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from singlebrief.schemas import CancellationRequest
from singlebrief.services.cancellation import send_brief_cancellation
from singlebrief.utils import require_authenticated_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["functions"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


@router.options("/send-brief-cancellation")
async def cancellation_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/send-brief-cancellation")
async def cancellation(request: Request, user=Depends(require_authenticated_user)):
    try:
        payload = CancellationRequest.model_validate(await request.json())
        result = await send_brief_cancellation(payload.briefId, payload.briefTitle, payload.recipients)
    except (ValueError, ValidationError) as e:
        logger.warning("Rejected cancellation request from user %s: %s", user.id, e)
        return JSONResponse({"success": False, "error": str(e)}, status_code=500, headers=CORS_HEADERS)
    except Exception as e:  # noqa: BLE001
        logger.exception("Error in send-brief-cancellation function")
        return JSONResponse({"success": False, "error": str(e)}, status_code=500, headers=CORS_HEADERS)
    return JSONResponse(result, status_code=200, headers=CORS_HEADERS)


__all__ = ["router"]
