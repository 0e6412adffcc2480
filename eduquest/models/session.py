"""
Quiz Session Models
Sessions own their normalized questions, the user's answers (one per
question) and an optional AI analysis
FILE: eduquest/models/session.py
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from eduquest.models.generation import GenerationConfig
from eduquest.models.question import AnswerValue, Question


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserAnswer(BaseModel):
    """A single response to a question; replaced, never appended"""
    question_id: str = Field(..., description="Question ID reference")
    value: AnswerValue = Field(..., description="Answer text, or a boolean for true/false")
    recorded_at: datetime = Field(default_factory=utcnow)


class SessionAnalysis(BaseModel):
    """AI grading of a session, created per 'submit for analysis' action"""
    raw_feedback: str
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)
    percentage: int = Field(..., description="score / total_questions as a rounded percentage")
    computed_at: datetime = Field(default_factory=utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "raw_feedback": "Score: 82. Good understanding overall...",
                "score": 82,
                "total_questions": 100,
                "percentage": 82,
                "computed_at": "2025-01-15T10:30:00Z"
            }
        }


class QuizSession(BaseModel):
    """Aggregate root: one generated quiz plus its answers and analysis"""
    id: str
    display_name: str
    description: Optional[str] = None
    topic: str
    generation_config: GenerationConfig = Field(default_factory=GenerationConfig)
    questions: List[Question] = Field(default_factory=list)
    answers: Dict[str, UserAnswer] = Field(default_factory=dict)
    completed: bool = False
    analysis: Optional[SessionAnalysis] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_accessed_at: datetime = Field(default_factory=utcnow)

    def questions_of_kind(self, kind) -> List[Question]:
        return [q for q in self.questions if q.kind == kind]


class SessionRecord(BaseModel):
    """Persisted layout of the session store"""
    sessions: List[QuizSession] = Field(default_factory=list)
    currentSessionId: Optional[str] = None
