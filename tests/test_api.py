"""Tests for the HTTP routes with the LLM stubbed out."""

import json
import random

import pytest
from fastapi.testclient import TestClient

from eduquest.core.config import Settings
from eduquest.db.storage import MemoryStorage, set_storage
from eduquest.main import app
from eduquest.services import question_service as question_service_module
from eduquest.services.credit_service import CreditService, set_credit_service
from eduquest.services.llm_client import MissingAPIKeyError
from eduquest.services.question_service import QuestionService, set_question_service

from tests.conftest import SAMPLE_QUESTION_SET

HEADERS = {"x-api-key": "user-key", "user-agent": "pytest"}


class FakeLLM:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else json.dumps(SAMPLE_QUESTION_SET)
        self.error = error
        self.prompts = []

    async def __call__(self, prompt, media=None, api_key=None, provider=None, timeout=None, json_output=True):
        self.prompts.append((prompt, api_key, timeout))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(question_service_module, "generate_content", fake)
    return fake


@pytest.fixture
def client(llm):
    storage = MemoryStorage()
    set_storage(storage)
    set_question_service(QuestionService(storage=storage, archive_size=2, rng=random.Random(0)))
    set_credit_service(CreditService(storage, config=Settings(environment="test")))
    yield TestClient(app)
    set_storage(None)
    set_question_service(None)
    set_credit_service(None)


class TestRoot:
    def test_root(self, client):
        assert client.get("/").json()["message"] == "EduQuest API"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["components"]["storage"]["status"] == "healthy"
        assert "X-Process-Time-Ms" in response.headers


class TestGenerateQuestions:
    def test_success(self, client, llm):
        response = client.post("/api/generate-questions", headers=HEADERS,
                               json={"topic": "Cells", "config": {"mcqs": 2}, "sessionId": "session_x"})
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["sessionId"] == "session_x"
        assert len(body["data"]["mcqs"]) == 2
        assert llm.prompts[0][1] == "user-key"

    def test_validation_error_enumerates_fields(self, client):
        response = client.post("/api/generate-questions", headers=HEADERS,
                               json={"topic": "Cells", "config": {"mcqs": 50, "longType": 9}})
        body = response.json()

        assert response.status_code == 400
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        fields = " ".join(body["error"]["details"])
        assert "mcqs" in fields and "longType" in fields

    def test_missing_key_is_configuration_error(self, client, llm):
        llm.error = MissingAPIKeyError("No API key available for gemini")
        response = client.post("/api/generate-questions", json={"topic": "Cells"})
        assert response.status_code == 500
        assert response.json()["error"]["message"].startswith("AI service configuration error")

    def test_unparseable_llm_output(self, client, llm):
        llm.response = "I cannot help with that."
        response = client.post("/api/generate-questions", headers=HEADERS, json={"topic": "Cells"})
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "GENERATION_ERROR"


class TestGenerateWithContext:
    def test_text_file_context(self, client, llm):
        response = client.post(
            "/api/generate-with-context",
            headers=HEADERS,
            data={"prompt": "Focus on membranes", "config": json.dumps({"mcqs": 1})},
            files=[("files", ("notes.txt", b"Cell membranes regulate transport.", "text/plain"))],
        )
        body = response.json()

        assert response.status_code == 200
        assert body["data"]["sessionId"].startswith("session_")
        assert body["data"]["extractedContent"][0]["fileType"] == "text"
        assert "Cell membranes regulate transport." in llm.prompts[0][0]

    def test_no_content(self, client, llm):
        response = client.post("/api/generate-with-context", headers=HEADERS, data={"prompt": ""})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NO_CONTENT"
        assert llm.prompts == []

    def test_no_api_key(self, client, monkeypatch):
        monkeypatch.setattr("eduquest.api.generation.has_api_key", lambda api_key=None: False)
        response = client.post("/api/generate-with-context", data={"prompt": "Cells"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NO_API_KEY"

    def test_invalid_config(self, client):
        response = client.post("/api/generate-with-context", headers=HEADERS,
                               data={"prompt": "Cells", "config": json.dumps({"shortType": 11})})
        assert response.status_code == 400
        assert response.json()["error"]["details"] == ["shortType must be between 0 and 10"]

    def test_unsupported_file_type(self, client):
        response = client.post(
            "/api/generate-with-context",
            headers=HEADERS,
            files=[("files", ("app.exe", b"MZ....", "application/x-msdownload"))],
        )
        assert response.status_code == 400
        assert "not supported" in response.json()["error"]["message"]


class TestAnalyzeAnswers:
    def test_feedback(self, client, llm):
        llm.response = "82 - Solid answers."
        response = client.post("/api/analyze-answers", headers=HEADERS, json={
            "shortQuestions": [{"question": "Define osmosis.", "answer": "Water movement"}],
            "longQuestions": [],
        })
        assert response.json() == {"success": True, "feedback": "82 - Solid answers."}

    def test_empty_request(self, client):
        response = client.post("/api/analyze-answers", json={})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No questions provided for analysis"


class TestUpload:
    def test_text_upload(self, client):
        response = client.post("/api/upload", headers=HEADERS,
                               files={"file": ("notes.md", b"# Heading\nSome notes here", "text/markdown")})
        body = response.json()
        assert body["success"] is True
        assert body["fileType"] == "text"
        assert body["filename"] == "notes.md"

    def test_too_short_text(self, client):
        response = client.post("/api/upload", headers=HEADERS,
                               files={"file": ("a.txt", b"hi", "text/plain")})
        assert response.status_code == 400


class TestRandomQuestion:
    def test_none_generated(self, client):
        response = client.get("/api/random-question")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_after_generation(self, client):
        client.post("/api/generate-questions", headers=HEADERS, json={"topic": "Cells"})
        response = client.get("/api/random-question")
        question = response.json()["question"]
        assert question in SAMPLE_QUESTION_SET["mcqs"]

    def test_archive_keeps_newest_sets(self, client):
        for topic in ("A", "B", "C"):
            client.post("/api/generate-questions", headers=HEADERS, json={"topic": topic})
        archive = question_service_module.get_question_service().storage.peek("question-sets")
        assert len(archive) == 2


class TestCredits:
    def test_get_and_decrement(self, client):
        assert client.get("/api/session/credits", headers=HEADERS).json()["data"]["credits"] == 4
        response = client.post("/api/session/credits", headers=HEADERS, json={"action": "decrement"})
        assert response.json()["data"]["credits"] == 3

    def test_exhausted(self, client):
        for _ in range(4):
            client.post("/api/session/credits", headers=HEADERS, json={"action": "decrement"})
        response = client.post("/api/session/credits", headers=HEADERS, json={"action": "decrement"})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No credits remaining"

    def test_invalid_action(self, client):
        response = client.post("/api/session/credits", headers=HEADERS, json={"action": "steal"})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid action"
