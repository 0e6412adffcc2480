"""Tests for LLM question-set parsing."""

import pytest

from eduquest.utils.quiz_parser import (
    InvalidJSONError,
    ValidationError,
    _clean_response,
    _strip_markdown,
    parse_question_set,
)


class TestStripMarkdown:
    def test_strips_json_fences(self):
        assert _strip_markdown("```json\n{\"a\": 1}\n```") == '{"a": 1}'

    def test_strips_bare_fences(self):
        assert _strip_markdown("```\n{\"b\": 2}\n```") == '{"b": 2}'

    def test_no_fences_unchanged(self):
        assert _strip_markdown('{"a": 1}') == '{"a": 1}'


class TestCleanResponse:
    def test_extracts_embedded_object(self):
        assert _clean_response('Here you go: {"mcqs": []} done.') == '{"mcqs": []}'

    def test_removes_trailing_commas(self):
        assert _clean_response('{"mcqs": [1, 2,],}') == '{"mcqs": [1, 2]}'

    def test_no_object_raises(self):
        with pytest.raises(InvalidJSONError):
            _clean_response("no json here")


class TestParseQuestionSet:
    def test_direct_json(self):
        result = parse_question_set(
            '{"mcqs": [{"question": "2+2?", "options": ["3", "4"], "answer": "4"}]}'
        )
        assert result.mcqs[0]["answer"] == "4"

    def test_missing_kinds_filled_with_empty_lists(self):
        result = parse_question_set('{"mcqs": []}')
        assert result.true_false == []
        assert result.long_type == []
        assert result.total() == 0

    def test_fenced_json_with_trailing_comma(self):
        raw = '```json\n{"true_false": [{"question": "S", "answer": true},]}\n```'
        result = parse_question_set(raw)
        assert result.true_false == [{"question": "S", "answer": True}]

    def test_empty_response_raises(self):
        with pytest.raises(InvalidJSONError):
            parse_question_set("   ")

    def test_unparseable_raises(self):
        with pytest.raises(InvalidJSONError):
            parse_question_set("{not: valid: json")

    def test_array_top_level_rejected(self):
        with pytest.raises(ValidationError):
            parse_question_set("[1, 2, 3]")

    def test_non_list_kind_rejected(self):
        with pytest.raises(ValidationError):
            parse_question_set('{"mcqs": "none"}')
