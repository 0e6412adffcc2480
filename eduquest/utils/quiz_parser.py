"""
Quiz Parser
Parses and validates LLM-generated question set JSON responses
"""
import json
import re
import logging
from typing import Any, Dict

from eduquest.models.question import RAW_KIND_KEYS, RawGenerationResult

logger = logging.getLogger(__name__)


class QuizParseError(Exception):
    """Base exception for quiz parsing errors"""
    pass


class InvalidJSONError(QuizParseError):
    """Raised when JSON cannot be parsed even after cleanup"""
    pass


class ValidationError(QuizParseError):
    """Raised when question set structure validation fails"""
    pass


def _strip_markdown(text: str) -> str:
    """
    Remove markdown code block formatting

    Args:
        text: Raw text possibly containing markdown

    Returns:
        Text with markdown code blocks removed
    """
    # Remove ```json ... ``` or ``` ... ```
    pattern = r"```(?:json)?\s*([\s\S]*?)\s*```"
    match = re.search(pattern, text)
    if match:
        return match.group(1).strip()

    text = re.sub(r"```", "", text)

    return text.strip()


def _extract_json_object(text: str) -> str:
    """
    Extract JSON object from text by finding outermost braces

    Raises:
        InvalidJSONError: If no valid object braces found
    """
    first_brace = text.find("{")
    last_brace = text.rfind("}")

    if first_brace == -1 or last_brace == -1:
        raise InvalidJSONError("No JSON object found in response")

    if first_brace >= last_brace:
        raise InvalidJSONError("Invalid JSON object braces")

    return text[first_brace:last_brace + 1]


def _fix_common_json_issues(text: str) -> str:
    """
    Fix common JSON formatting issues from LLM output

    Args:
        text: JSON string with potential issues

    Returns:
        Cleaned JSON string
    """
    # Remove trailing commas before ] or }
    text = re.sub(r",\s*([}\]])", r"\1", text)

    # Remove any control characters except newlines and tabs
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)

    # Unescaped newlines inside strings break json.loads; join lines with spaces
    lines = text.split("\n")
    text = " ".join(line.strip() for line in lines if line.strip())

    return text


def _clean_response(raw_response: str) -> str:
    """Apply all cleanup rules to extract valid JSON"""
    text = raw_response.strip()
    text = _strip_markdown(text)
    text = _extract_json_object(text)
    text = _fix_common_json_issues(text)
    return text


def _validate_question_set(data: Dict[str, Any]) -> RawGenerationResult:
    """
    Check the five kind arrays and fill in missing ones

    Raises:
        ValidationError: If a kind key holds something other than a list
    """
    arrays = {}
    for _, key in RAW_KIND_KEYS:
        value = data.get(key)
        if value is None:
            arrays[key] = []
            continue
        if not isinstance(value, list):
            raise ValidationError(
                f"'{key}' must be a list, got {type(value).__name__}"
            )
        arrays[key] = value

    return RawGenerationResult(**arrays)


def parse_question_set(raw_response: str) -> RawGenerationResult:
    """
    Parse and validate a question set from an LLM response

    Attempts direct JSON parsing first, then applies cleanup rules
    if initial parsing fails.

    Args:
        raw_response: Raw string response from LLM

    Returns:
        RawGenerationResult with all five arrays present (possibly empty)

    Raises:
        InvalidJSONError: If JSON cannot be parsed after cleanup
        ValidationError: If the question set structure is invalid

    Example:
        >>> raw = '{"mcqs": [{"question": "2+2?", "options": ["3","4"], "answer": "4"}]}'
        >>> parse_question_set(raw).mcqs[0]["answer"]
        '4'
    """
    if not raw_response or not raw_response.strip():
        raise InvalidJSONError("Empty response received")

    logger.debug(f"Parsing question set response ({len(raw_response)} chars)")

    try:
        data = json.loads(raw_response.strip())
        logger.debug("Direct JSON parse successful")
    except json.JSONDecodeError as e:
        logger.debug(f"Direct parse failed: {e}. Attempting cleanup...")

        try:
            cleaned = _clean_response(raw_response)
            data = json.loads(cleaned)
            logger.debug("JSON parse successful after cleanup")
        except json.JSONDecodeError as e2:
            logger.error(f"JSON parse failed after cleanup: {e2}")
            raise InvalidJSONError(
                f"Failed to parse JSON: {e2}. "
                f"Original error: {e}"
            )

    if not isinstance(data, dict):
        raise ValidationError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    result = _validate_question_set(data)

    logger.info(f"✅ Parsed question set with {result.total()} questions")

    return result
