"""Tests for the chat endpoint via FastAPI TestClient with a mocked pipeline."""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from app.core.exceptions import (
    CONFIG_MESSAGE,
    DATABASE_MESSAGE,
    GENERIC_MESSAGE,
    SECURITY_MESSAGE,
    InvalidInputError,
    MissingConfigurationError,
    SecurityViolationError,
    UpstreamRetrievalError,
)
from app.core.schemas_chat import ChatAnswer, RegulationImage
from app.graphs.chat_answer_graph import build_chat_pipeline
from app.main import app

client = TestClient(app)

URL = "/v1/building-regulations-chat"


def _pipeline(answer=None, error=None):
    pipeline = MagicMock()
    pipeline.answer = AsyncMock(return_value=answer, side_effect=error)
    pipeline.aclose = AsyncMock()
    return pipeline


def test_general_answer_response_shape():
    answer = ChatAnswer(
        response="Part L covers conservation of fuel and power.",
        images=[RegulationImage(url="https://img/1.png", title="Diagram 1", source="ADL")],
    )
    pipeline = _pipeline(answer)

    with patch("app.api.chat.build_chat_pipeline", return_value=pipeline):
        response = client.post(URL, json={"message": "What are Part L requirements?"})

    assert response.status_code == 200
    assert response.json() == {
        "response": "Part L covers conservation of fuel and power.",
        "images": [{"url": "https://img/1.png", "title": "Diagram 1", "source": "ADL"}],
    }
    pipeline.answer.assert_awaited_once_with("What are Part L requirements?", None)


def test_project_answer_uses_camel_case():
    answer = ChatAnswer(
        response="Your plan needs a second exit.",
        documents_analyzed=2,
        conversations_referenced="Available",
        project_id="p1",
    )
    context = {"id": "p1", "userId": "u1"}

    with patch("app.api.chat.build_chat_pipeline", return_value=_pipeline(answer)) as build:
        response = client.post(URL, json={"message": "Check my plan", "projectContext": context})

    body = response.json()
    assert response.status_code == 200
    assert body["documentsAnalyzed"] == 2
    assert body["conversationsReferenced"] == "Available"
    assert body["projectId"] == "p1"
    build.return_value.answer.assert_awaited_once_with("Check my plan", context)


def test_invalid_input_returns_400():
    with patch("app.api.chat.build_chat_pipeline") as build:
        response = client.post(URL, json={"message": ""})

    assert response.status_code == 400
    body = response.json()
    assert body["details"] == "invalid_input"
    assert body["images"] == []
    build.assert_not_called()


def test_invalid_message_is_rejected_before_configuration_check():
    with patch(
        "app.api.chat.build_chat_pipeline",
        side_effect=MissingConfigurationError(["PINECONE_API_KEY"]),
    ) as build:
        response = client.post(URL, json={"message": "   "})

    assert response.status_code == 400
    assert response.json()["details"] == "invalid_input"
    build.assert_not_called()


def test_pipeline_error_from_graph_keeps_its_status():
    with patch(
        "app.api.chat.build_chat_pipeline",
        return_value=_pipeline(error=InvalidInputError("bad scope shape")),
    ):
        response = client.post(URL, json={"message": "hi"})

    assert response.status_code == 400
    assert response.json()["details"] == "invalid_input"


def test_non_object_body_is_invalid_input():
    with patch("app.api.chat.build_chat_pipeline") as build:
        response = client.post(URL, json=["not", "an", "object"])

    assert response.status_code == 400
    assert response.json()["details"] == "invalid_input"
    build.assert_not_called()


def test_malformed_json_is_invalid_input():
    response = client.post(URL, content=b"{not json", headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json()["details"] == "invalid_input"


def test_security_violation_is_not_descriptive():
    error = SecurityViolationError("Document doc-9 does not belong to requested scope")

    with patch("app.api.chat.build_chat_pipeline", return_value=_pipeline(error=error)):
        response = client.post(URL, json={"message": "hi", "projectContext": {"id": "p1", "userId": "u1"}})

    body = response.json()
    assert response.status_code == 500
    assert body == {"error": SECURITY_MESSAGE, "details": "request_rejected", "images": []}
    assert "doc-9" not in response.text


def test_missing_configuration_message():
    with patch(
        "app.api.chat.build_chat_pipeline",
        side_effect=MissingConfigurationError(["PINECONE_API_KEY"]),
    ):
        response = client.post(URL, json={"message": "hi"})

    assert response.status_code == 500
    assert response.json()["error"] == CONFIG_MESSAGE
    assert "PINECONE_API_KEY" not in response.text


def test_retrieval_failure_uses_database_message():
    error = UpstreamRetrievalError("Pinecone query failed: 503 - upstream connect error")

    with patch("app.api.chat.build_chat_pipeline", return_value=_pipeline(error=error)):
        response = client.post(URL, json={"message": "hi"})

    assert response.status_code == 500
    assert response.json()["error"] == DATABASE_MESSAGE
    assert "503" not in response.text


def test_unexpected_error_is_generic():
    with patch("app.api.chat.build_chat_pipeline", return_value=_pipeline(error=KeyError("boom"))):
        response = client.post(URL, json={"message": "hi"})

    assert response.status_code == 500
    assert response.json() == {"error": GENERIC_MESSAGE, "details": "internal_error", "images": []}


def test_cors_preflight_allowed():
    response = client.options(
        URL,
        headers={
            "Origin": "https://app.eezybuild.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_pipeline_closed_after_answer():
    pipeline = _pipeline(ChatAnswer(response="Part A covers structure."))

    with patch("app.api.chat.build_chat_pipeline", return_value=pipeline):
        client.post(URL, json={"message": "Part A?"})

    pipeline.aclose.assert_awaited_once()


def test_pipeline_closed_after_failure():
    pipeline = _pipeline(error=UpstreamRetrievalError("Pinecone query failed: 503"))

    with patch("app.api.chat.build_chat_pipeline", return_value=pipeline):
        response = client.post(URL, json={"message": "Part A?"})

    assert response.status_code == 500
    pipeline.aclose.assert_awaited_once()


def test_live_pipeline_releases_http_client():
    built = []

    def _build(settings):
        pipeline = build_chat_pipeline(settings)
        pipeline.answer = AsyncMock(return_value=ChatAnswer(response="Part A covers structure."))
        built.append(pipeline)
        return pipeline

    with patch("app.graphs.chat_answer_graph.get_supabase", return_value=MagicMock()), patch(
        "app.api.chat.build_chat_pipeline", side_effect=_build
    ):
        response = client.post(URL, json={"message": "Part A?"})

    assert response.status_code == 200
    assert built[0]._index._http.is_closed
