"""
LLM Client
Unified interface for generating content via the Gemini and OpenAI REST APIs
"""
import base64
import logging
from enum import Enum
from typing import List, Optional

import httpx
from pydantic import BaseModel

from eduquest.core.config import settings
from eduquest.utils.quiz_prompt import SYSTEM_INSTRUCTION

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"


class LLMClientError(Exception):
    """Base exception for LLM client errors"""
    pass


class LLMTimeoutError(LLMClientError):
    """Raised when LLM request times out"""
    pass


class LLMAPIError(LLMClientError):
    """Raised when LLM API returns an error"""
    pass


class MissingAPIKeyError(LLMClientError):
    """Raised when neither a caller-supplied nor a configured API key exists"""
    pass


class MediaPart(BaseModel):
    """Binary input sent alongside the prompt (image or PDF)"""
    mime_type: str
    data: bytes
    filename: Optional[str] = None

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


# API Endpoints
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"

# Configuration
DEFAULT_TIMEOUT = 30.0  # seconds


def resolve_api_key(provider: str, api_key: Optional[str] = None) -> str:
    """
    Pick the key for a call: the caller's override first, then the server's

    Raises:
        MissingAPIKeyError: If no key is available
    """
    if api_key:
        return api_key

    configured = settings.gemini_api_key if provider == LLMProvider.GEMINI else settings.openai_api_key
    if not configured:
        raise MissingAPIKeyError(f"No API key available for {provider}")
    return configured


def has_api_key(api_key: Optional[str] = None, provider: Optional[str] = None) -> bool:
    try:
        resolve_api_key((provider or settings.llm_provider).lower(), api_key)
    except MissingAPIKeyError:
        return False
    return True


async def _post(url: str, provider_name: str, timeout: float, **kwargs) -> dict:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, **kwargs)
            response.raise_for_status()
            return response.json()

    except httpx.TimeoutException as e:
        logger.error(f"❌ {provider_name} request timed out after {timeout}s")
        raise LLMTimeoutError(f"{provider_name} request timed out: {e}")

    except httpx.HTTPStatusError as e:
        logger.error(f"❌ {provider_name} API error: {e.response.status_code}")
        raise LLMAPIError(f"{provider_name} API error: {e.response.text}")

    except httpx.TransportError as e:
        logger.error(f"❌ {provider_name} connection failed: {e}")
        raise LLMAPIError(f"{provider_name} connection failed: {e}")


async def _call_gemini(
    prompt: str,
    api_key: str,
    media: List[MediaPart],
    json_output: bool,
    timeout: float
) -> str:
    """Call the Gemini generateContent API"""
    parts = [{"text": prompt}]
    parts.extend(
        {"inline_data": {"mime_type": m.mime_type, "data": m.b64()}}
        for m in media
    )

    payload = {
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": {"temperature": 0.7, "maxOutputTokens": 8192},
    }
    if json_output:
        payload["systemInstruction"] = {"parts": [{"text": SYSTEM_INSTRUCTION}]}
        payload["generationConfig"]["responseMimeType"] = "application/json"

    data = await _post(
        GEMINI_API_URL.format(model=settings.gemini_model),
        "Gemini",
        timeout,
        headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
        json=payload,
    )

    try:
        content = "".join(
            part.get("text", "")
            for part in data["candidates"][0]["content"]["parts"]
        )
    except (KeyError, IndexError, TypeError):
        raise LLMAPIError(f"Gemini returned no content: {data}")

    logger.info(f"✅ Gemini response received ({len(content)} chars)")
    return content


async def _call_openai(
    prompt: str,
    api_key: str,
    media: List[MediaPart],
    json_output: bool,
    timeout: float
) -> str:
    """Call the OpenAI Chat Completions API"""
    if media:
        user_content = [{"type": "text", "text": prompt}]
        for m in media:
            data_url = f"data:{m.mime_type};base64,{m.b64()}"
            if m.mime_type.startswith("image/"):
                user_content.append({"type": "image_url", "image_url": {"url": data_url}})
            else:
                user_content.append({
                    "type": "file",
                    "file": {"filename": m.filename or "document.pdf", "file_data": data_url}
                })
    else:
        user_content = prompt

    messages = [{"role": "user", "content": user_content}]
    if json_output:
        messages.insert(0, {"role": "system", "content": SYSTEM_INSTRUCTION})

    payload = {
        "model": settings.openai_model,
        "messages": messages,
        "temperature": 0.7,
        "max_tokens": 4096
    }

    data = await _post(
        OPENAI_API_URL,
        "OpenAI",
        timeout,
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        json=payload,
    )

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise LLMAPIError(f"OpenAI returned no content: {data}")

    logger.info(f"✅ OpenAI response received ({len(content)} chars)")
    return content


async def generate_content(
    prompt: str,
    media: Optional[List[MediaPart]] = None,
    api_key: Optional[str] = None,
    provider: Optional[str] = None,
    timeout: Optional[float] = None,
    json_output: bool = True
) -> str:
    """
    Generate content using the configured LLM provider

    Args:
        prompt: The prompt text
        media: Optional images/PDFs sent inline with the prompt
        api_key: Caller-supplied key; falls back to the server's key
        provider: "gemini" or "openai" (defaults to settings.llm_provider)
        timeout: Request timeout; media requests default to the multimodal timeout
        json_output: Ask the model for a bare JSON object

    Returns:
        Raw string output from the LLM (no parsing)

    Raises:
        MissingAPIKeyError: If no API key is available
        LLMTimeoutError: If the request times out
        LLMAPIError: If the API returns an error
        ValueError: If an invalid provider is specified

    No automatic retry: a failed call is reported to the caller as-is.
    """
    media = media or []
    provider = (provider or settings.llm_provider).lower()
    if timeout is None:
        timeout = settings.multimodal_timeout if media else settings.text_timeout

    if provider not in [p.value for p in LLMProvider]:
        raise ValueError(
            f"Invalid provider: {provider}. "
            f"Supported providers: {[p.value for p in LLMProvider]}"
        )

    key = resolve_api_key(provider, api_key)
    logger.info(
        f"🤖 Generating via {provider} (timeout: {timeout}s, media: {len(media)}, "
        f"user key: {bool(api_key)})"
    )

    if provider == LLMProvider.GEMINI:
        return await _call_gemini(prompt, key, media, json_output, timeout)
    return await _call_openai(prompt, key, media, json_output, timeout)


def health_check(provider: Optional[str] = None) -> dict:
    """
    Check if an LLM provider is configured

    Returns:
        Health status dictionary
    """
    provider = (provider or settings.llm_provider).lower()

    if provider == LLMProvider.GEMINI:
        configured = bool(settings.gemini_api_key)
        model = settings.gemini_model
    elif provider == LLMProvider.OPENAI:
        configured = bool(settings.openai_api_key)
        model = settings.openai_model
    else:
        return {"provider": provider, "status": "error", "message": "Invalid provider"}

    return {
        "provider": provider,
        "configured": configured,
        "model": model,
        "status": "ready" if configured else "not_configured"
    }
