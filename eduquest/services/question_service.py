"""
Question Service
Business logic for question generation, answer analysis and the archive of
recently generated question sets
FILE: eduquest/services/question_service.py
"""
import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from eduquest.core.config import settings
from eduquest.db.storage import StoragePort, get_storage
from eduquest.models.generation import AnswerPair, ContentExtraction, GenerationConfig
from eduquest.models.question import RawGenerationResult
from eduquest.services.file_processing import process_files
from eduquest.services.llm_client import (
    LLMAPIError,
    LLMTimeoutError,
    generate_content,
)
from eduquest.utils.id_generator import generate_id
from eduquest.utils.quiz_parser import QuizParseError, parse_question_set
from eduquest.utils.quiz_prompt import (
    build_analysis_prompt,
    build_context_prompt,
    build_generation_prompt,
)

logger = logging.getLogger(__name__)

ARCHIVE_KEY = "question-sets"


# ==================== CUSTOM EXCEPTIONS ====================

class QuestionGenerationError(Exception):
    """Base exception for question generation errors"""
    pass


class NoContentError(QuestionGenerationError):
    """Raised when neither files nor a prompt were provided"""
    pass


class AnalysisError(Exception):
    """Raised when answer analysis fails"""
    pass


class QuestionSetNotFoundError(Exception):
    """Raised when the archive holds no usable question"""
    pass


# ==================== QUESTION SERVICE ====================

class QuestionService:
    """Service for generating question sets and analyzing answers"""

    def __init__(
        self,
        storage: Optional[StoragePort] = None,
        archive_size: Optional[int] = None,
        rng: Optional[random.Random] = None
    ):
        self.storage = storage or get_storage()
        self.archive_size = archive_size or settings.question_set_archive_size
        self.rng = rng or random.Random()
        self._archive_lock = asyncio.Lock()

    # ==================== GENERATION ====================

    async def _generate(self, prompt: str, api_key: Optional[str], timeout: float) -> RawGenerationResult:
        try:
            raw_response = await generate_content(prompt, api_key=api_key, timeout=timeout)
        except LLMTimeoutError as e:
            raise QuestionGenerationError(f"LLM request timed out: {e}")
        except LLMAPIError as e:
            raise QuestionGenerationError(f"LLM API error: {e}")

        logger.info("📋 Parsing LLM response...")
        try:
            return parse_question_set(raw_response)
        except QuizParseError as e:
            logger.error(f"❌ Failed to parse question set: {e}")
            logger.debug(f"Raw response: {raw_response[:500]}...")
            raise QuestionGenerationError(f"Failed to parse question set: {e}")

    async def generate_questions(
        self,
        topic: str,
        config: GenerationConfig,
        api_key: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> Tuple[RawGenerationResult, str]:
        """
        Generate a question set for a topic

        Returns:
            Tuple of (question set, session id)

        Raises:
            MissingAPIKeyError: If no API key is available
            QuestionGenerationError: If the LLM call or parsing fails
        """
        logger.info(f"🎯 Generating {config.total()} questions for topic: {topic[:50]}")

        prompt = build_generation_prompt(topic, config)
        questions = await self._generate(prompt, api_key, settings.text_timeout)
        session_id = session_id or generate_id("session")

        await self._archive(questions, session_id)
        logger.info(f"✅ Generated {questions.total()} questions for {session_id}")
        return questions, session_id

    async def generate_with_context(
        self,
        files: List[Tuple[str, bytes, str]],
        prompt: Optional[str],
        config: GenerationConfig,
        api_key: Optional[str] = None
    ) -> Tuple[RawGenerationResult, str, List[ContentExtraction]]:
        """
        Generate a question set from uploaded files and/or a prompt

        Args:
            files: (filename, content, mime_type) triples

        Returns:
            Tuple of (question set, session id, per-file extraction summaries)

        Raises:
            NoContentError: If no files and no prompt were given
            MissingAPIKeyError: If no API key is available
            QuestionGenerationError: If the LLM call or parsing fails
        """
        prompt = (prompt or "").strip()
        if not files and not prompt:
            raise NoContentError("Please provide either files to upload or a text prompt")

        context, extracted = ("", [])
        if files:
            context, extracted = await process_files(files, api_key)

        questions = await self._generate(
            build_context_prompt(context, config, prompt or None),
            api_key,
            settings.multimodal_timeout
        )
        session_id = generate_id("session")

        await self._archive(questions, session_id)
        logger.info(f"✅ Generated {questions.total()} questions from {len(files)} files")
        return questions, session_id, extracted

    # ==================== ANALYSIS ====================

    async def analyze_answers(
        self,
        short_questions: List[AnswerPair],
        long_questions: List[AnswerPair],
        api_key: Optional[str] = None
    ) -> str:
        """
        Ask the LLM for a score and feedback on written answers

        Returns:
            Raw feedback text, which begins with the score

        Raises:
            AnalysisError: If there is nothing to analyze or the LLM call fails
            MissingAPIKeyError: If no API key is available
        """
        if not short_questions and not long_questions:
            raise AnalysisError("No questions provided for analysis")

        logger.info(
            f"🧐 Analyzing answers ({len(short_questions)} short, {len(long_questions)} long)"
        )
        try:
            return await generate_content(
                build_analysis_prompt(short_questions, long_questions),
                api_key=api_key,
                json_output=False,
            )
        except (LLMTimeoutError, LLMAPIError) as e:
            logger.error(f"❌ Answer analysis failed: {e}")
            raise AnalysisError(f"Failed to analyze answers: {e}")

    # ==================== ARCHIVE ====================

    async def _load_archive(self) -> List[Dict[str, Any]]:
        archive = await self.storage.load(ARCHIVE_KEY)
        return archive if isinstance(archive, list) else []

    async def _archive(self, questions: RawGenerationResult, session_id: str) -> None:
        """Append a question set to the stored archive, keeping the newest"""
        entry = {
            "sessionId": session_id,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "questions": questions.model_dump(),
        }
        async with self._archive_lock:
            archive = await self._load_archive()
            archive.append(entry)
            self.storage.save(ARCHIVE_KEY, archive[-self.archive_size:])

    async def random_question(self) -> Dict[str, Any]:
        """
        Pick a random MCQ from the archived question sets

        Raises:
            QuestionSetNotFoundError: If no archived set holds an MCQ
        """
        archive = await self._load_archive()
        if not archive:
            raise QuestionSetNotFoundError(
                "No question sets available. Please generate some questions first."
            )

        candidates = [
            entry["questions"]["mcqs"]
            for entry in archive
            if isinstance(entry, dict)
            and isinstance(entry.get("questions"), dict)
            and entry["questions"].get("mcqs")
        ]
        if not candidates:
            raise QuestionSetNotFoundError("No MCQ questions found in available question sets.")

        return self.rng.choice(self.rng.choice(candidates))


# ==================== SINGLETON ====================

_question_service: Optional[QuestionService] = None


def get_question_service() -> QuestionService:
    """Get or create question service singleton"""
    global _question_service

    if _question_service is None:
        _question_service = QuestionService()

    return _question_service


def set_question_service(service: Optional[QuestionService]) -> None:
    global _question_service
    _question_service = service
