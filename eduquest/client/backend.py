"""
Backend Collaborators
HTTP clients for the generation/analysis/upload routes and the credit service
"""
import json
import logging
from typing import Any, List, Optional, Protocol, Tuple

import httpx
from pydantic import BaseModel, Field

from eduquest.models.credits import CreditsData
from eduquest.models.generation import (
    AnswerPair,
    ContentExtraction,
    GenerationConfig,
)
from eduquest.models.question import RawGenerationResult
from eduquest.utils.id_generator import generate_id

logger = logging.getLogger(__name__)

DEFAULT_TEXT_TIMEOUT = 30.0
DEFAULT_MULTIMODAL_TIMEOUT = 60.0

API_KEY_HEADER = "x-api-key"


class BackendError(Exception):
    """Raised when a route answers but reports failure or an unexpected shape"""

    def __init__(self, message: str, code: str = "API_ERROR", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class UploadedFile(BaseModel):
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


class GeneratedQuestionSet(BaseModel):
    questions: RawGenerationResult
    session_id: str
    extracted_content: List[ContentExtraction] = Field(default_factory=list)


class ExtractedText(BaseModel):
    text: str
    file_type: str = "unknown"
    filename: Optional[str] = None


class QuizBackend(Protocol):
    """External AI collaborator as seen by the request gate"""

    async def generate_questions(
        self, topic: str, config: GenerationConfig, api_key: Optional[str] = None
    ) -> GeneratedQuestionSet:
        ...

    async def generate_with_context(
        self,
        files: List[UploadedFile],
        prompt: Optional[str],
        config: GenerationConfig,
        api_key: Optional[str] = None
    ) -> GeneratedQuestionSet:
        ...

    async def analyze_answers(
        self,
        short_questions: List[AnswerPair],
        long_questions: List[AnswerPair],
        api_key: Optional[str] = None
    ) -> str:
        ...

    async def extract_text(self, file: UploadedFile, api_key: Optional[str] = None) -> ExtractedText:
        ...


def _error_message(body: Any, fallback: str) -> Tuple[str, str]:
    """Pull (code, message) out of a failed response body"""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str) and error:
            return "API_ERROR", error
        if isinstance(error, dict) and error.get("message"):
            return str(error.get("code") or "API_ERROR"), str(error["message"])
        detail = body.get("detail")
        if isinstance(detail, str) and detail:
            return "API_ERROR", detail
    return "API_ERROR", fallback


def _unwrap(response: httpx.Response, fallback: str) -> dict:
    """
    Decode a {success, ...} envelope

    Raises:
        BackendError: On non-JSON bodies, HTTP errors or success=false
    """
    try:
        body = response.json()
    except ValueError:
        raise BackendError(
            f"{fallback}: response was not valid JSON",
            status_code=response.status_code
        )

    if response.is_error or not isinstance(body, dict) or not body.get("success"):
        code, message = _error_message(body, fallback)
        raise BackendError(message, code=code, status_code=response.status_code)

    return body


class HttpQuizBackend:
    """QuizBackend implementation talking to the EduQuest HTTP routes"""

    def __init__(
        self,
        base_url: str,
        text_timeout: float = DEFAULT_TEXT_TIMEOUT,
        multimodal_timeout: float = DEFAULT_MULTIMODAL_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.text_timeout = text_timeout
        self.multimodal_timeout = multimodal_timeout
        self._client = client or httpx.AsyncClient(base_url=base_url)

    @staticmethod
    def _headers(api_key: Optional[str]) -> dict:
        return {API_KEY_HEADER: api_key} if api_key else {}

    async def generate_questions(
        self, topic: str, config: GenerationConfig, api_key: Optional[str] = None
    ) -> GeneratedQuestionSet:
        session_id = generate_id("session")
        response = await self._client.post(
            "/api/generate-questions",
            json={
                "topic": topic,
                "config": config.model_dump(by_alias=True),
                "sessionId": session_id,
            },
            headers=self._headers(api_key),
            timeout=self.text_timeout,
        )
        body = _unwrap(response, "Failed to generate questions")
        if not isinstance(body.get("data"), dict):
            raise BackendError("Generation response is missing the question set")

        return GeneratedQuestionSet(
            questions=RawGenerationResult.model_validate(body["data"]),
            session_id=body.get("sessionId") or session_id,
        )

    async def generate_with_context(
        self,
        files: List[UploadedFile],
        prompt: Optional[str],
        config: GenerationConfig,
        api_key: Optional[str] = None
    ) -> GeneratedQuestionSet:
        form = {"config": json.dumps(config.model_dump(by_alias=True))}
        if prompt:
            form["prompt"] = prompt

        response = await self._client.post(
            "/api/generate-with-context",
            data=form,
            files=[("files", (f.filename, f.content, f.mime_type)) for f in files],
            headers=self._headers(api_key),
            timeout=self.multimodal_timeout,
        )
        body = _unwrap(response, "Failed to generate questions with context")
        data = body.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("questions"), dict):
            raise BackendError("Generation response is missing the question set")

        return GeneratedQuestionSet(
            questions=RawGenerationResult.model_validate(data["questions"]),
            session_id=data.get("sessionId") or generate_id("session"),
            extracted_content=data.get("extractedContent") or [],
        )

    async def analyze_answers(
        self,
        short_questions: List[AnswerPair],
        long_questions: List[AnswerPair],
        api_key: Optional[str] = None
    ) -> str:
        response = await self._client.post(
            "/api/analyze-answers",
            json={
                "shortQuestions": [p.model_dump() for p in short_questions],
                "longQuestions": [p.model_dump() for p in long_questions],
            },
            headers=self._headers(api_key),
            timeout=self.text_timeout,
        )
        body = _unwrap(response, "Analysis failed")
        feedback = body.get("feedback") or body.get("data")
        if not isinstance(feedback, str):
            raise BackendError("Analysis response is missing feedback text")
        return feedback

    async def extract_text(self, file: UploadedFile, api_key: Optional[str] = None) -> ExtractedText:
        response = await self._client.post(
            "/api/upload",
            files={"file": (file.filename, file.content, file.mime_type)},
            headers=self._headers(api_key),
            timeout=self.multimodal_timeout,
        )
        body = _unwrap(response, "Upload failed")
        return ExtractedText(
            text=body.get("text") or "",
            file_type=body.get("fileType") or "unknown",
            filename=body.get("filename"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class CreditServiceRejected(Exception):
    """Raised when the credit service refuses an action (no credits, reset in production)"""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CreditServiceClient:
    """Client for GET/POST /api/session/credits"""

    PATH = "/api/session/credits"

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TEXT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(base_url=base_url)

    @staticmethod
    def _parse(response: httpx.Response) -> CreditsData:
        try:
            body = response.json()
        except ValueError:
            raise CreditServiceRejected("Credit service returned invalid JSON", response.status_code)

        if response.is_error or not isinstance(body, dict) or not body.get("success"):
            _, message = _error_message(body, "Credit service error")
            raise CreditServiceRejected(message, response.status_code)

        return CreditsData.model_validate(body["data"])

    async def get_state(self) -> CreditsData:
        response = await self._client.get(self.PATH, timeout=self.timeout)
        return self._parse(response)

    async def post_action(self, action: str, has_local_api_key: Optional[bool] = None) -> CreditsData:
        payload = {"action": action}
        if has_local_api_key is not None:
            payload["hasLocalApiKey"] = has_local_api_key
        response = await self._client.post(self.PATH, json=payload, timeout=self.timeout)
        return self._parse(response)

    async def aclose(self) -> None:
        await self._client.aclose()
