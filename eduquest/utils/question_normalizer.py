"""
Question Normalizer
Flattens a generated question set (five arrays keyed by kind) into one
ordered list of uniform Question records
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from eduquest.models.question import (
    KIND_TAGS,
    RAW_KIND_KEYS,
    Question,
    QuestionKind,
    RawFillBlank,
    RawGenerationResult,
    RawLongAnswer,
    RawMCQ,
    RawShortAnswer,
    RawTrueFalse,
)

logger = logging.getLogger(__name__)


RAW_ITEM_MODELS = {
    QuestionKind.MCQ: RawMCQ,
    QuestionKind.FILL: RawFillBlank,
    QuestionKind.TRUE_FALSE: RawTrueFalse,
    QuestionKind.SHORT: RawShortAnswer,
    QuestionKind.LONG: RawLongAnswer,
}


def question_id(kind: QuestionKind, index: int) -> str:
    return f"{KIND_TAGS[kind]}_{index}"


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _read_item(kind: QuestionKind, item: Any):
    """
    Validate one raw item against its kind's shape.

    Returns the parsed raw model, or None when the item is unusable.
    """
    if not isinstance(item, Mapping):
        return None

    data = dict(item)
    if kind == QuestionKind.TRUE_FALSE:
        coerced = _coerce_bool(data.get("answer"))
        if coerced is None:
            return None
        data["answer"] = coerced

    try:
        parsed = RAW_ITEM_MODELS[kind].model_validate(data)
    except ValidationError:
        return None

    if not parsed.question.strip():
        return None
    return parsed


def _to_question(kind: QuestionKind, index: int, raw) -> Question:
    if kind == QuestionKind.MCQ:
        return Question(
            id=question_id(kind, index),
            kind=kind,
            prompt=raw.question,
            correct_answer=raw.answer,
            options=list(raw.options),
            explanation=raw.explanation,
        )
    if kind == QuestionKind.TRUE_FALSE:
        return Question(
            id=question_id(kind, index),
            kind=kind,
            prompt=raw.question,
            correct_answer="true" if raw.answer else "false",
            explanation=raw.explanation,
        )
    if kind == QuestionKind.FILL:
        return Question(
            id=question_id(kind, index),
            kind=kind,
            prompt=raw.question,
            correct_answer=raw.answer,
            explanation=raw.explanation,
        )
    return Question(
        id=question_id(kind, index),
        kind=kind,
        prompt=raw.question,
        correct_answer=raw.answer,
        points=raw.points,
    )


def normalize(raw: Union[RawGenerationResult, Mapping[str, Any], None]) -> List[Question]:
    """
    Normalize a raw generation result into a flat list of questions

    Kinds are concatenated in the fixed order mcq, fill, true_false, short,
    long. Ids use the item's position in its raw array, so entries that fail
    validation are skipped without shifting the ids of the others.

    Args:
        raw: RawGenerationResult or a plain mapping with the five arrays

    Returns:
        Ordered list of Question records (empty for empty/absent input)

    Example:
        >>> normalize({"mcqs": [{"question": "Q1", "options": ["a", "b"], "answer": "a"}]})[0].id
        'mcq_0'
    """
    if raw is None:
        return []

    if isinstance(raw, RawGenerationResult):
        data: Dict[str, Any] = raw.model_dump()
    elif isinstance(raw, Mapping):
        data = dict(raw)
    else:
        logger.warning(f"⚠️ Cannot normalize question set of type {type(raw).__name__}")
        return []

    questions: List[Question] = []
    skipped = 0

    for kind, key in RAW_KIND_KEYS:
        items = data.get(key) or []
        if not isinstance(items, list):
            skipped += 1
            continue

        for index, item in enumerate(items):
            parsed = _read_item(kind, item)
            if parsed is None:
                skipped += 1
                continue
            questions.append(_to_question(kind, index, parsed))

    if skipped:
        logger.warning(f"⚠️ Skipped {skipped} malformed question entries")

    logger.debug(f"Normalized {len(questions)} questions")
    return questions
