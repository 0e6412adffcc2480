"""
Credits API Routes
Per-client generation quota: GET the current state, POST an action
"""
import logging

from fastapi import APIRouter, Request

from eduquest.api.responses import error_response
from eduquest.models.credits import CreditActionRequest, CreditsResponse
from eduquest.services.credit_service import (
    ClientInfo,
    CreditServiceError,
    client_ip,
    get_credit_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session")


def _client_info(request: Request) -> ClientInfo:
    headers = request.headers
    return ClientInfo(
        ip=client_ip(
            headers.get("x-forwarded-for"),
            request.client.host if request.client else None
        ),
        user_agent=headers.get("user-agent", ""),
        accept_language=headers.get("accept-language", ""),
        accept_encoding=headers.get("accept-encoding", ""),
    )


@router.get(
    "/credits",
    response_model=CreditsResponse,
    response_model_exclude_none=True,
    summary="Get Credits",
    description="Current credit balance for the calling client"
)
async def get_credits(request: Request):
    try:
        data = await get_credit_service().get_credits(_client_info(request))
        return CreditsResponse(data=data)

    except Exception as e:
        logger.error(f"❌ Credits API error: {e}")
        return error_response(500, "INTERNAL_ERROR", "Internal server error")


@router.post(
    "/credits",
    response_model=CreditsResponse,
    response_model_exclude_none=True,
    summary="Update Credits",
    description="Apply decrement, reset or setApiKeyStatus for the calling client"
)
async def update_credits(body: CreditActionRequest, request: Request):
    try:
        data = await get_credit_service().apply_action(
            _client_info(request), body.action, body.hasLocalApiKey
        )
        return CreditsResponse(data=data)

    except CreditServiceError as e:
        logger.warning(f"⚠️ Credit action '{body.action}' refused: {e.message}")
        return error_response(e.status_code, "CREDITS_ERROR", e.message)

    except Exception as e:
        logger.error(f"❌ Credits API error: {e}")
        return error_response(500, "INTERNAL_ERROR", "Internal server error")
