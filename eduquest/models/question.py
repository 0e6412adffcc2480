"""
Question Models
Raw generation payloads (one model per question kind) and the uniform
Question record they are normalized into
FILE: eduquest/models/question.py
"""
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class QuestionKind(str, Enum):
    MCQ = "mcq"
    FILL = "fill"
    TRUE_FALSE = "true_false"
    SHORT = "short"
    LONG = "long"


# Short id prefix per kind; question ids are "{tag}_{index}"
KIND_TAGS = {
    QuestionKind.MCQ: "mcq",
    QuestionKind.FILL: "fill",
    QuestionKind.TRUE_FALSE: "tf",
    QuestionKind.SHORT: "short",
    QuestionKind.LONG: "long",
}

# Key of each kind's array in a raw generation result, in concatenation order
RAW_KIND_KEYS = (
    (QuestionKind.MCQ, "mcqs"),
    (QuestionKind.FILL, "fill_in_the_blanks"),
    (QuestionKind.TRUE_FALSE, "true_false"),
    (QuestionKind.SHORT, "short_type"),
    (QuestionKind.LONG, "long_type"),
)


def _number_to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class _TextAnswerItem(BaseModel):
    """Raw item whose answer is free text; numeric answers are kept as text"""
    question: str
    answer: str

    @field_validator("answer", mode="before")
    @classmethod
    def _answer_as_text(cls, value: Any) -> Any:
        return _number_to_str(value)


class RawMCQ(_TextAnswerItem):
    options: List[str]
    explanation: Optional[str] = None

    @field_validator("options", mode="before")
    @classmethod
    def _options_as_text(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_number_to_str(option) for option in value]
        return value


class RawFillBlank(_TextAnswerItem):
    explanation: Optional[str] = None


class RawTrueFalse(BaseModel):
    question: str
    answer: bool
    explanation: Optional[str] = None


class RawShortAnswer(_TextAnswerItem):
    points: Optional[float] = None


class RawLongAnswer(_TextAnswerItem):
    points: Optional[float] = None


class RawGenerationResult(BaseModel):
    """
    Question set as returned by the generation service.
    Items are kept loosely typed here and validated per kind by the normalizer.
    """
    mcqs: List[Any] = Field(default_factory=list)
    fill_in_the_blanks: List[Any] = Field(default_factory=list)
    true_false: List[Any] = Field(default_factory=list)
    short_type: List[Any] = Field(default_factory=list)
    long_type: List[Any] = Field(default_factory=list)

    class Config:
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "mcqs": [
                    {
                        "question": "What is the powerhouse of the cell?",
                        "options": ["Nucleus", "Mitochondria", "Ribosome", "Golgi body"],
                        "answer": "Mitochondria"
                    }
                ],
                "fill_in_the_blanks": [],
                "true_false": [{"question": "DNA is double stranded.", "answer": True}],
                "short_type": [],
                "long_type": []
            }
        }

    def total(self) -> int:
        return (
            len(self.mcqs) + len(self.fill_in_the_blanks) + len(self.true_false)
            + len(self.short_type) + len(self.long_type)
        )


class Question(BaseModel):
    """
    Uniform question record stored in a session.
    True/false answers are stored as the strings "true" / "false".
    """
    id: str = Field(..., description="'{kindTag}_{index}', unique within one session")
    kind: QuestionKind
    prompt: str = Field(..., description="Question text")
    correct_answer: str = Field(..., description="Expected answer")
    options: Optional[List[str]] = None
    explanation: Optional[str] = None
    points: Optional[float] = None

    class Config:
        frozen = True


AnswerValue = Union[bool, str]
