"""
Generation API Routes
FastAPI endpoints for question generation, answer analysis, file upload and
random questions
"""
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, Header, UploadFile

from eduquest.api.responses import API_KEY_ERROR_MESSAGE, NO_API_KEY_MESSAGE, error_response
from eduquest.models.generation import (
    AnalyzeAnswersRequest,
    AnalyzeAnswersResponse,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    GenerateWithContextResponse,
    GenerationConfig,
    GenerationWithContextData,
    RandomQuestionResponse,
    UploadResponse,
    config_violations,
)
from eduquest.services.file_processing import FileProcessingError, extract_text, validate_file
from eduquest.services.llm_client import LLMClientError, MissingAPIKeyError, has_api_key
from eduquest.services.question_service import (
    AnalysisError,
    NoContentError,
    QuestionGenerationError,
    QuestionSetNotFoundError,
    get_question_service,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== GENERATION ENDPOINTS ====================

@router.post(
    "/generate-questions",
    response_model=GenerateQuestionsResponse,
    summary="Generate Questions",
    description="Generate a question set for a topic using AI"
)
async def generate_questions(
    request: GenerateQuestionsRequest,
    x_api_key: Optional[str] = Header(default=None)
):
    """
    Generate a question set for a topic

    Workflow:
    1. Build the generation prompt from topic and per-kind counts
    2. Call the LLM (caller's x-api-key first, then the server key)
    3. Parse and validate the JSON response
    4. Archive the set for /random-question
    """
    try:
        question_service = get_question_service()
        questions, session_id = await question_service.generate_questions(
            topic=request.topic,
            config=request.config,
            api_key=x_api_key,
            session_id=request.sessionId
        )
        return GenerateQuestionsResponse(data=questions, sessionId=session_id)

    except MissingAPIKeyError as e:
        logger.error(f"❌ LLM configuration error: {e}")
        return error_response(500, "API_KEY_ERROR", API_KEY_ERROR_MESSAGE)

    except QuestionGenerationError as e:
        logger.error(f"❌ Question generation error: {e}")
        return error_response(500, "GENERATION_ERROR", str(e))

    except Exception as e:
        logger.error(f"❌ Unexpected error: {e}")
        return error_response(500, "GENERATION_ERROR", "Failed to generate questions")


def _parse_config(raw: Optional[str]) -> dict:
    """Decode the multipart config field; unreadable JSON means defaults"""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("⚠️ Ignoring unparseable config field")
        return {}
    return parsed if isinstance(parsed, dict) else {}


@router.post(
    "/generate-with-context",
    response_model=GenerateWithContextResponse,
    summary="Generate Questions With Context",
    description="Generate a question set from uploaded files and/or a prompt"
)
async def generate_with_context(
    files: List[UploadFile] = File(default=[]),
    prompt: Optional[str] = Form(default=None),
    config: Optional[str] = Form(default=None),
    x_api_key: Optional[str] = Header(default=None)
):
    """
    Generate a question set from images, PDFs or text files plus an optional prompt

    Each file's text is extracted first; the combined text becomes the
    generation context.
    """
    if not has_api_key(x_api_key):
        return error_response(400, "NO_API_KEY", NO_API_KEY_MESSAGE)

    raw_config = _parse_config(config)
    violations = config_violations(raw_config)
    if violations:
        return error_response(400, "VALIDATION_ERROR", "Request validation failed", violations)
    generation_config = GenerationConfig.model_validate(raw_config)

    uploads = []
    for upload in files:
        content = await upload.read()
        mime_type = upload.content_type or "application/octet-stream"
        problem = validate_file(len(content), mime_type)
        if problem:
            return error_response(400, "VALIDATION_ERROR", problem, upload.filename)
        uploads.append((upload.filename or "upload", content, mime_type))

    logger.info(f"📨 Multimodal generation: {len(uploads)} files, prompt={bool(prompt)}")

    try:
        question_service = get_question_service()
        questions, session_id, extracted = await question_service.generate_with_context(
            uploads, prompt, generation_config, api_key=x_api_key
        )
        return GenerateWithContextResponse(data=GenerationWithContextData(
            questions=questions,
            sessionId=session_id,
            extractedContent=extracted,
        ))

    except NoContentError as e:
        return error_response(400, "NO_CONTENT", str(e))

    except MissingAPIKeyError as e:
        logger.error(f"❌ LLM configuration error: {e}")
        return error_response(500, "API_KEY_ERROR", API_KEY_ERROR_MESSAGE)

    except QuestionGenerationError as e:
        logger.error(f"❌ Multimodal generation error: {e}")
        return error_response(500, "GENERATION_ERROR", str(e))

    except Exception as e:
        logger.error(f"❌ Unexpected error: {e}")
        return error_response(500, "GENERATION_ERROR", "Failed to generate questions with context")


# ==================== ANALYSIS ENDPOINTS ====================

@router.post(
    "/analyze-answers",
    response_model=AnalyzeAnswersResponse,
    summary="Analyze Answers",
    description="Score short and long written answers with AI feedback"
)
async def analyze_answers(
    request: AnalyzeAnswersRequest,
    x_api_key: Optional[str] = Header(default=None)
):
    if not request.shortQuestions and not request.longQuestions:
        return error_response(400, "VALIDATION_ERROR", "No questions provided for analysis")

    try:
        feedback = await get_question_service().analyze_answers(
            request.shortQuestions, request.longQuestions, api_key=x_api_key
        )
        return AnalyzeAnswersResponse(feedback=feedback)

    except MissingAPIKeyError as e:
        logger.error(f"❌ LLM configuration error: {e}")
        return error_response(500, "API_KEY_ERROR", API_KEY_ERROR_MESSAGE)

    except AnalysisError as e:
        logger.error(f"❌ Answer analysis error: {e}")
        return error_response(500, "ANALYSIS_ERROR", "Failed to analyze answers")


# ==================== UPLOAD ENDPOINTS ====================

@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Extract Text",
    description="Extract text from a single uploaded file"
)
async def upload_file(
    file: UploadFile = File(...),
    x_api_key: Optional[str] = Header(default=None)
):
    if not has_api_key(x_api_key):
        return error_response(400, "NO_API_KEY", NO_API_KEY_MESSAGE)

    content = await file.read()
    mime_type = file.content_type or "application/octet-stream"
    problem = validate_file(len(content), mime_type)
    if problem:
        logger.warning(f"⚠️ Rejected upload {file.filename}: {problem}")
        return error_response(400, "VALIDATION_ERROR", problem)

    try:
        processed = await extract_text(content, file.filename or "upload", mime_type, x_api_key)
        return UploadResponse(
            text=processed.text,
            fileType=processed.fileType,
            filename=processed.filename,
        )

    except FileProcessingError as e:
        return error_response(400, "FILE_PROCESSING_ERROR", str(e))

    except MissingAPIKeyError as e:
        logger.error(f"❌ LLM configuration error: {e}")
        return error_response(500, "API_KEY_ERROR", API_KEY_ERROR_MESSAGE)

    except LLMClientError as e:
        logger.error(f"❌ Upload error: {e}")
        return error_response(500, "UPLOAD_ERROR", "Failed to process file upload")


# ==================== RANDOM QUESTION ====================

@router.get(
    "/random-question",
    response_model=RandomQuestionResponse,
    summary="Random Question",
    description="A random MCQ from recently generated question sets"
)
async def random_question():
    try:
        question = await get_question_service().random_question()
        return RandomQuestionResponse(question=question)

    except QuestionSetNotFoundError as e:
        logger.warning(f"⚠️ {e}")
        return error_response(404, "NOT_FOUND", str(e))

    except Exception as e:
        logger.error(f"❌ Random question error: {e}")
        return error_response(500, "INTERNAL_ERROR", "Failed to fetch random question")
