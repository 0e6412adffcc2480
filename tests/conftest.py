"""Shared pytest fixtures for the EduQuest test suite."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from eduquest.client.backend import ExtractedText, GeneratedQuestionSet, UploadedFile
from eduquest.db.storage import MemoryStorage
from eduquest.models.generation import AnswerPair, GenerationConfig
from eduquest.models.question import RawGenerationResult


SAMPLE_QUESTION_SET = {
    "mcqs": [
        {"question": "What is the powerhouse of the cell?",
         "options": ["Nucleus", "Mitochondria", "Ribosome", "Golgi body"],
         "answer": "Mitochondria"},
        {"question": "Which gas do plants absorb?",
         "options": ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"],
         "answer": "Carbon dioxide"},
    ],
    "fill_in_the_blanks": [
        {"question": "Water boils at _____ degrees Celsius.", "answer": "100"},
    ],
    "true_false": [
        {"question": "DNA is double stranded.", "answer": True},
    ],
    "short_type": [
        {"question": "Define osmosis.", "answer": "Movement of water across a membrane", "points": 5},
    ],
    "long_type": [
        {"question": "Explain photosynthesis.", "answer": "Light energy converted to chemical energy", "points": 10},
    ],
}


class FakeClock:
    """Deterministic clock that advances one second per call"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


class CountingIds:
    def __init__(self):
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"session_{self.count}"


class FakeBackend:
    """QuizBackend double that records calls and replays canned results"""

    def __init__(
        self,
        questions: Optional[dict] = None,
        feedback: str = "82 - Good understanding overall.",
        error: Optional[BaseException] = None
    ):
        self.questions = questions if questions is not None else SAMPLE_QUESTION_SET
        self.feedback = feedback
        self.error = error
        self.calls: List[tuple] = []

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def generate_questions(self, topic: str, config: GenerationConfig, api_key=None):
        self.calls.append(("generate_questions", topic, api_key))
        self._maybe_fail()
        return GeneratedQuestionSet(
            questions=RawGenerationResult.model_validate(self.questions),
            session_id="session_remote",
        )

    async def generate_with_context(self, files: List[UploadedFile], prompt, config, api_key=None):
        self.calls.append(("generate_with_context", [f.filename for f in files], api_key))
        self._maybe_fail()
        return GeneratedQuestionSet(
            questions=RawGenerationResult.model_validate(self.questions),
            session_id="session_remote",
        )

    async def analyze_answers(self, short_questions: List[AnswerPair], long_questions: List[AnswerPair], api_key=None):
        self.calls.append(("analyze_answers", short_questions, long_questions, api_key))
        self._maybe_fail()
        return self.feedback

    async def extract_text(self, file: UploadedFile, api_key=None):
        self.calls.append(("extract_text", file.filename, api_key))
        self._maybe_fail()
        return ExtractedText(text="Extracted notes", file_type="text", filename=file.filename)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ids():
    return CountingIds()


@pytest.fixture
def sample_questions():
    return dict(SAMPLE_QUESTION_SET)


@pytest.fixture
def backend():
    return FakeBackend()
