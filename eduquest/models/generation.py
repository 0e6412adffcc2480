"""
Generation Models
Request/response models for question generation, analysis and upload
FILE: eduquest/models/generation.py
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from eduquest.models.question import RawGenerationResult


# Inclusive upper bound for each per-kind count
CONFIG_LIMITS = {
    "mcqs": 20,
    "fill_in_blanks": 20,
    "true_false": 20,
    "short_type": 10,
    "long_type": 5,
}


class GenerationConfig(BaseModel):
    """Number of questions requested per kind"""

    mcqs: int = Field(default=5, ge=0, le=20)
    fill_in_blanks: int = Field(default=5, ge=0, le=20, alias="fillInBlanks")
    true_false: int = Field(default=5, ge=0, le=20, alias="trueFalse")
    short_type: int = Field(default=3, ge=0, le=10, alias="shortType")
    long_type: int = Field(default=2, ge=0, le=5, alias="longType")

    class Config:
        populate_by_name = True

    def total(self) -> int:
        return self.mcqs + self.fill_in_blanks + self.true_false + self.short_type + self.long_type


def _names_by_key() -> Dict[str, str]:
    return {
        field.alias or name: name
        for name, field in GenerationConfig.model_fields.items()
    }


def clamped_config(config: Dict[str, Any]) -> GenerationConfig:
    """
    Build a config from a raw mapping without rejecting it.

    Counts outside their bounds are clamped into range and non-integer
    counts fall back to the field default.
    """
    aliases = _names_by_key()
    counts = {}
    for key, value in (config or {}).items():
        name = aliases.get(key, key)
        if name not in CONFIG_LIMITS or isinstance(value, bool) or not isinstance(value, int):
            continue
        counts[name] = min(max(value, 0), CONFIG_LIMITS[name])
    return GenerationConfig(**counts)


def config_violations(config: Dict[str, Any]) -> List[str]:
    """
    List the fields of a raw config mapping that fall outside their bounds.

    Accepts either the snake_case field names or the camelCase wire aliases.
    """
    aliases = _names_by_key()
    violations = []
    for key, value in (config or {}).items():
        name = aliases.get(key, key)
        if name not in CONFIG_LIMITS:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            violations.append(f"{key} must be an integer")
        elif value < 0 or value > CONFIG_LIMITS[name]:
            violations.append(f"{key} must be between 0 and {CONFIG_LIMITS[name]}")
    return violations


class GenerateQuestionsRequest(BaseModel):
    """Request model for text-only generation"""
    topic: str = Field(..., min_length=1, description="Topic or prompt")
    config: GenerationConfig = Field(default_factory=GenerationConfig)
    sessionId: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "topic": "Photosynthesis",
                "config": {"mcqs": 5, "fillInBlanks": 5, "trueFalse": 5, "shortType": 3, "longType": 2},
            }
        }


class GenerateQuestionsResponse(BaseModel):
    success: bool = True
    data: RawGenerationResult
    sessionId: str


class ContentExtraction(BaseModel):
    """Summary of one uploaded file that fed a multimodal generation"""
    filename: str
    fileType: str
    mainContent: str = ""
    error: Optional[str] = None


class GenerationWithContextData(BaseModel):
    questions: RawGenerationResult
    sessionId: str
    extractedContent: List[ContentExtraction] = Field(default_factory=list)


class GenerateWithContextResponse(BaseModel):
    success: bool = True
    data: GenerationWithContextData


class AnswerPair(BaseModel):
    question: str
    answer: str


class AnalyzeAnswersRequest(BaseModel):
    shortQuestions: List[AnswerPair] = Field(default_factory=list)
    longQuestions: List[AnswerPair] = Field(default_factory=list)


class AnalyzeAnswersResponse(BaseModel):
    success: bool = True
    feedback: str


class UploadResponse(BaseModel):
    success: bool = True
    text: str
    fileType: str
    filename: Optional[str] = None


class RandomQuestionResponse(BaseModel):
    success: bool = True
    question: Dict[str, Any]
