"""Tests for score extraction, id generation and generation-config validation."""

import re

import pytest
from pydantic import ValidationError

from eduquest.models.generation import GenerationConfig, config_violations
from eduquest.utils.id_generator import generate_id
from eduquest.utils.score_extractor import FirstDigitsScoreExtractor, percentage_of


class TestScoreExtractor:
    def test_first_number_is_score(self):
        assert FirstDigitsScoreExtractor().extract("82 - well done, 3 minor issues") == 82

    def test_no_digits_scores_zero(self):
        assert FirstDigitsScoreExtractor().extract("Great work overall!") == 0

    def test_empty_feedback_scores_zero(self):
        assert FirstDigitsScoreExtractor().extract("") == 0

    def test_known_misfire_on_leading_question_number(self):
        # The heuristic reads the question number, not the score
        assert FirstDigitsScoreExtractor().extract("Question 1: partially correct. Score: 82") == 1


class TestPercentage:
    def test_rounds(self):
        assert percentage_of(2, 3) == 67

    def test_example_values(self):
        assert percentage_of(82, 100) == 82

    def test_no_questions_is_zero(self):
        assert percentage_of(5, 0) == 0


class TestGenerateId:
    def test_format(self):
        assert re.fullmatch(r"session_\d+_[0-9a-z]{9}", generate_id())

    def test_prefix(self):
        assert generate_id("req").startswith("req_")

    def test_distinct(self):
        assert len({generate_id() for _ in range(200)}) == 200


class TestGenerationConfig:
    def test_defaults(self):
        config = GenerationConfig()
        assert (config.mcqs, config.fill_in_blanks, config.true_false,
                config.short_type, config.long_type) == (5, 5, 5, 3, 2)
        assert config.total() == 20

    def test_wire_aliases(self):
        config = GenerationConfig.model_validate({"mcqs": 1, "fillInBlanks": 2, "trueFalse": 3,
                                                  "shortType": 4, "longType": 5})
        assert config.model_dump(by_alias=True) == {
            "mcqs": 1, "fillInBlanks": 2, "trueFalse": 3, "shortType": 4, "longType": 5
        }

    def test_bounds_enforced(self):
        with pytest.raises(ValidationError):
            GenerationConfig(long_type=6)

    def test_violations_enumerated(self):
        violations = config_violations({"mcqs": 21, "shortType": -1, "longType": 5})
        assert violations == [
            "mcqs must be between 0 and 20",
            "shortType must be between 0 and 10",
        ]

    def test_non_integer_reported(self):
        assert config_violations({"trueFalse": "many"}) == ["trueFalse must be an integer"]

    def test_valid_config_has_no_violations(self):
        assert config_violations({"mcqs": 0, "fill_in_blanks": 20}) == []
