"""
Generation Request Gate
Wraps every outbound generation/analysis call: validates input, consumes a
credit, attaches the override credential, calls the backend and turns any
failure into a GateError. Nothing raised by the backend escapes the gate.
"""
import logging
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from eduquest.client.backend import (
    BackendError,
    ExtractedText,
    GeneratedQuestionSet,
    QuizBackend,
    UploadedFile,
)
from eduquest.client.credit_ledger import CreditLedger
from eduquest.client.session_store import SessionStore
from eduquest.models.errors import ErrorKind, GateError
from eduquest.models.generation import ContentExtraction, GenerationConfig, config_violations
from eduquest.models.session import SessionAnalysis
from eduquest.utils.question_normalizer import normalize
from eduquest.utils.score_extractor import (
    FirstDigitsScoreExtractor,
    ScoreExtractor,
    percentage_of,
)

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class GenerationOutcome(BaseModel):
    session_id: str
    question_count: int
    extracted_content: List[ContentExtraction] = Field(default_factory=list)


class GateRejection(Exception):
    """Raised inside the gate to fail a request before the backend is called"""

    def __init__(self, error: GateError):
        super().__init__(error.message)
        self.error = error


def classify_error(err: BaseException) -> GateError:
    """Map an exception from a backend call onto the error taxonomy"""
    if isinstance(err, GateRejection):
        return err.error

    if isinstance(err, BackendError):
        try:
            kind = ErrorKind(err.code)
        except ValueError:
            kind = ErrorKind.API_ERROR
        return GateError(kind=kind, message=err.message, details=err.status_code)

    if isinstance(err, httpx.TimeoutException):
        return GateError(
            kind=ErrorKind.NETWORK_ERROR,
            message="The request timed out. Please try again.",
            details=type(err).__name__
        )

    if isinstance(err, httpx.HTTPStatusError):
        return GateError(
            kind=ErrorKind.API_ERROR,
            message=str(err),
            details=err.response.status_code
        )

    if isinstance(err, httpx.TransportError):
        return GateError(
            kind=ErrorKind.NETWORK_ERROR,
            message=str(err) or "Network error occurred",
            details=type(err).__name__
        )

    if isinstance(err, PydanticValidationError):
        return GateError(
            kind=ErrorKind.API_ERROR,
            message="Response did not match the expected schema",
            details=err.errors()
        )

    return GateError(
        kind=ErrorKind.UNKNOWN_ERROR,
        message=str(err) or "An unknown error occurred"
    )


class GenerationRequestGate:
    """
    Mediates quota checks, credential attachment and error classification
    around calls to the AI backend.

    Overlapping requests are allowed; `loading` stays true while any is in
    flight. `error` holds the outcome of the most recent request to finish.
    """

    def __init__(
        self,
        ledger: CreditLedger,
        store: SessionStore,
        backend: QuizBackend,
        score_extractor: Optional[ScoreExtractor] = None
    ):
        self.ledger = ledger
        self.store = store
        self.backend = backend
        self.score_extractor = score_extractor or FirstDigitsScoreExtractor()
        self.state = RequestState.IDLE
        self.error: Optional[GateError] = None
        self._in_flight = 0

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    def clear_error(self) -> None:
        self.error = None

    # ==================== REQUEST LIFECYCLE ====================

    async def _run(self, action: str, call):
        self.error = None
        self.state = RequestState.PENDING
        self._in_flight += 1
        try:
            result = await call()
        except Exception as e:
            self.error = classify_error(e)
            self.state = RequestState.FAILED
            logger.error(f"❌ {action} failed [{self.error.kind.value}]: {self.error.message}")
            return None
        finally:
            self._in_flight -= 1

        self.state = RequestState.SUCCESS
        return result

    async def _consume_credit(self) -> None:
        if not await self.ledger.try_consume_credit():
            raise GateRejection(GateError(
                kind=ErrorKind.QUOTA_EXHAUSTED,
                message="No credits remaining. Add your own API key to keep generating."
            ))

    # ==================== GENERATION ====================

    @staticmethod
    def _validated_config(config: Union[GenerationConfig, Mapping[str, Any], None]) -> GenerationConfig:
        if config is None:
            return GenerationConfig()
        if isinstance(config, GenerationConfig):
            return config

        violations = config_violations(dict(config))
        if violations:
            raise GateRejection(GateError(
                kind=ErrorKind.VALIDATION_ERROR,
                message=f"Validation error: {', '.join(violations)}",
                details=violations
            ))
        return GenerationConfig.model_validate(dict(config))

    async def generate(
        self,
        files: Optional[List[UploadedFile]] = None,
        prompt: Optional[str] = None,
        config: Union[GenerationConfig, Mapping[str, Any], None] = None,
        name: Optional[str] = None
    ) -> Optional[GenerationOutcome]:
        """
        Generate a question set and create a session from it

        Files route to the multimodal endpoint, a bare prompt to the text
        endpoint. A session is created only after a fully successful,
        normalized result.

        Returns:
            GenerationOutcome, or None with `error` set
        """
        files = list(files or [])
        prompt = (prompt or "").strip()

        async def call() -> GenerationOutcome:
            generation_config = self._validated_config(config)
            if not files and not prompt:
                raise GateRejection(GateError(
                    kind=ErrorKind.NO_CONTENT,
                    message="Please provide either files to upload or a text prompt"
                ))

            await self._consume_credit()
            api_key = self.ledger.override_credential

            if files:
                logger.info(f"🤖 Generating from {len(files)} files")
                result: GeneratedQuestionSet = await self.backend.generate_with_context(
                    files, prompt or None, generation_config, api_key
                )
            else:
                logger.info(f"🤖 Generating for topic: {prompt[:50]}")
                result = await self.backend.generate_questions(prompt, generation_config, api_key)

            questions = normalize(result.questions)
            if not questions and generation_config.total() > 0:
                raise BackendError("The generated question set contained no usable questions")

            topic = prompt or ", ".join(f.filename for f in files)
            session_id = self.store.create_session(name, topic, result.questions, generation_config)
            return GenerationOutcome(
                session_id=session_id,
                question_count=len(questions),
                extracted_content=result.extracted_content,
            )

        return await self._run("Generation", call)

    # ==================== ANALYSIS ====================

    async def analyze(self, session_id: str) -> Optional[SessionAnalysis]:
        """
        Send a session's written answers for AI feedback and attach the result

        Returns:
            SessionAnalysis, or None with `error` set
        """
        async def call() -> SessionAnalysis:
            pairs = self.store.build_analysis_request(session_id)
            if pairs is None:
                raise GateRejection(GateError(
                    kind=ErrorKind.VALIDATION_ERROR,
                    message=f"Session not found: {session_id}"
                ))
            short_pairs, long_pairs = pairs
            if not short_pairs and not long_pairs:
                raise GateRejection(GateError(
                    kind=ErrorKind.NO_CONTENT,
                    message="No questions provided for analysis"
                ))

            feedback = await self.backend.analyze_answers(
                short_pairs, long_pairs, self.ledger.override_credential
            )

            session = self.store.get_session_by_id(session_id)
            total = len(session.questions) if session else 0
            score = self.score_extractor.extract(feedback)
            analysis = SessionAnalysis(
                raw_feedback=feedback,
                score=score,
                total_questions=total,
                percentage=percentage_of(score, total),
            )
            self.store.attach_analysis(session_id, analysis)
            return analysis

        return await self._run("Analysis", call)

    # ==================== UPLOAD ====================

    async def upload(self, file: UploadedFile) -> Optional[ExtractedText]:
        """Extract text from a single file"""
        async def call() -> ExtractedText:
            return await self.backend.extract_text(file, self.ledger.override_credential)

        return await self._run("Upload", call)
