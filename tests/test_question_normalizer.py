"""Tests for question normalization (pure, no I/O)."""

import pytest
from pydantic import ValidationError

from eduquest.models.question import QuestionKind, RawGenerationResult
from eduquest.utils.question_normalizer import normalize, question_id


class TestNormalize:
    def test_single_mcq_gets_first_id(self):
        questions = normalize({
            "mcqs": [{"question": "Q1", "options": ["a", "b", "c", "d"], "answer": "a"}],
            "fill_in_the_blanks": [],
            "true_false": [],
            "short_type": [],
            "long_type": [],
        })
        assert len(questions) == 1
        assert questions[0].id == "mcq_0"
        assert questions[0].kind == QuestionKind.MCQ
        assert questions[0].options == ["a", "b", "c", "d"]
        assert questions[0].correct_answer == "a"

    def test_kinds_concatenated_in_fixed_order(self, sample_questions):
        ids = [q.id for q in normalize(sample_questions)]
        assert ids == ["mcq_0", "mcq_1", "fill_0", "tf_0", "short_0", "long_0"]

    def test_true_false_answer_stringified(self):
        questions = normalize({"true_false": [
            {"question": "Sky is blue", "answer": True},
            {"question": "Fire is cold", "answer": False},
        ]})
        assert [q.correct_answer for q in questions] == ["true", "false"]

    def test_true_false_string_answers_accepted(self):
        questions = normalize({"true_false": [{"question": "S", "answer": "TRUE"}]})
        assert questions[0].correct_answer == "true"

    def test_numeric_answers_kept_as_text(self):
        questions = normalize({
            "mcqs": [{"question": "Year?", "options": [1990, "2000"], "answer": 2000}],
            "fill_in_the_blanks": [{"question": "2 + 2 = ___", "answer": 4}],
            "short_type": [{"question": "How many legs?", "answer": 8}],
            "long_type": [{"question": "Estimate pi", "answer": 3.14}],
        })
        by_id = {q.id: q for q in questions}

        assert list(by_id) == ["mcq_0", "fill_0", "short_0", "long_0"]
        assert by_id["mcq_0"].correct_answer == "2000"
        assert by_id["mcq_0"].options == ["1990", "2000"]
        assert by_id["fill_0"].correct_answer == "4"
        assert by_id["short_0"].correct_answer == "8"
        assert by_id["long_0"].correct_answer == "3.14"

    def test_boolean_answer_on_text_kind_dropped(self):
        assert normalize({"fill_in_the_blanks": [{"question": "Q", "answer": True}]}) == []

    def test_points_kept_for_written_kinds(self, sample_questions):
        by_id = {q.id: q for q in normalize(sample_questions)}
        assert by_id["short_0"].points == 5
        assert by_id["long_0"].points == 10

    def test_missing_arrays_treated_as_empty(self):
        assert normalize({}) == []
        assert normalize(None) == []

    def test_accepts_model_input(self, sample_questions):
        from_model = normalize(RawGenerationResult.model_validate(sample_questions))
        assert from_model == normalize(sample_questions)

    def test_deterministic(self, sample_questions):
        assert normalize(sample_questions) == normalize(sample_questions)

    def test_ids_unique(self, sample_questions):
        ids = [q.id for q in normalize(sample_questions)]
        assert len(ids) == len(set(ids))

    def test_question_id_helper(self):
        assert question_id(QuestionKind.TRUE_FALSE, 3) == "tf_3"


class TestMalformedItems:
    def test_mcq_without_options_dropped(self):
        questions = normalize({"mcqs": [
            {"question": "No options", "answer": "a"},
            {"question": "Good", "options": ["a", "b"], "answer": "b"},
        ]})
        assert [q.id for q in questions] == ["mcq_1"]

    def test_non_mapping_items_dropped(self):
        questions = normalize({"fill_in_the_blanks": ["just a string", 42]})
        assert questions == []

    def test_blank_question_text_dropped(self):
        questions = normalize({"short_type": [{"question": "   ", "answer": "x"}]})
        assert questions == []

    def test_uninterpretable_true_false_dropped(self):
        questions = normalize({"true_false": [{"question": "S", "answer": "maybe"}]})
        assert questions == []

    def test_non_list_kind_skipped(self):
        questions = normalize({
            "mcqs": {"question": "oops"},
            "fill_in_the_blanks": [{"question": "A _____", "answer": "b"}],
        })
        assert [q.id for q in questions] == ["fill_0"]


class TestQuestionRecord:
    def test_questions_are_immutable(self, sample_questions):
        question = normalize(sample_questions)[0]
        with pytest.raises(ValidationError):
            question.prompt = "changed"
