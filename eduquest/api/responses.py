"""
Error envelope shared by the API routes: {"success": false, "error": {code, message, details}}
"""
from typing import Any, Optional

from fastapi.responses import JSONResponse

from eduquest.models.errors import ApiErrorBody, ApiErrorResponse


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None
) -> JSONResponse:
    body = ApiErrorResponse(error=ApiErrorBody(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


API_KEY_ERROR_MESSAGE = "AI service configuration error. Please check your API key."
NO_API_KEY_MESSAGE = "No API key available. Please provide your own Gemini API key."
