"""Tests for the regulations chat answer graph with fake clients."""

import pytest

from app.context.prompt_blocks import NO_INFORMATION_RESPONSE
from app.core.conversation_summary import ConversationSummarizer
from app.core.document_processing import VisionAnalyzer, build_document_processor
from app.core.exceptions import (
    InvalidInputError,
    SecurityViolationError,
    UpstreamEmbeddingError,
    UpstreamGenerationError,
    UpstreamRetrievalError,
)
from app.graphs.chat_answer_graph import (
    ChatAnswerPipeline,
    build_regulations_context,
    collect_related_images,
    select_relevant_matches,
)
from tests.fakes.fake_clients import (
    FakeEmbedder,
    FakeIndex,
    FakeLLM,
    FakeProjectData,
    make_conversation,
    make_document,
    make_match,
    make_message,
)

VISION_TEXT = "Floor plan shows a single exit from the first floor bedroom."


class RoutingLLM(FakeLLM):
    """Answers vision requests with a fixed analysis and chat requests with a fixed reply."""

    async def complete(self, messages, model, temperature=0.3, max_tokens=1000) -> str:
        if isinstance(messages[-1]["content"], list):
            self.calls.append({"messages": messages, "model": model, "kind": "vision"})
            return VISION_TEXT
        return await super().complete(messages, model, temperature, max_tokens)


def _pipeline(
    index: FakeIndex,
    llm: FakeLLM | None = None,
    data: FakeProjectData | None = None,
    embedder: FakeEmbedder | None = None,
) -> ChatAnswerPipeline:
    llm = llm or FakeLLM()
    data = data or FakeProjectData()
    return ChatAnswerPipeline(
        embedder=embedder or FakeEmbedder(),
        index=index,
        llm=llm,
        data_source=data,
        document_processor=build_document_processor(data, VisionAnalyzer(llm)),
        summarizer=ConversationSummarizer(llm),
    )


def _chat_calls(llm: FakeLLM) -> list[dict]:
    return [c for c in llm.calls if c.get("kind") != "vision"]


# ──────────────────────────────────────────────────────────────────────
# Pure helpers
# ──────────────────────────────────────────────────────────────────────


class TestSelectRelevantMatches:
    def test_keeps_only_matches_above_threshold(self):
        matches = [make_match(0.8), make_match(0.25), make_match(0.3)]
        selected, used_fallback = select_relevant_matches(matches)

        assert [m.score for m in selected] == [0.8, 0.3]
        assert not used_fallback

    def test_falls_back_to_top_three(self):
        matches = [make_match(0.2), make_match(0.15), make_match(0.1), make_match(0.05)]
        selected, used_fallback = select_relevant_matches(matches)

        assert [m.score for m in selected] == [0.2, 0.15, 0.1]
        assert used_fallback

    def test_empty_matches(self):
        assert select_relevant_matches([]) == ([], True)


def test_regulations_context_skips_empty_texts():
    matches = [make_match(0.9, text="Part A"), make_match(0.8, text="  "), make_match(0.7, text="Part B")]
    assert build_regulations_context(matches) == "Part A\n\n---\n\nPart B"


def test_collect_related_images_fills_titles_and_sources():
    matches = [
        make_match(0.9, images=[{"url": "https://img/1.png", "page": 4}], source=None),
        make_match(0.8, images=[{"url": "https://img/2.png", "title": "Diagram 2.1"}]),
    ]
    images = collect_related_images(matches)

    assert images[0].title == "Building Regulation Diagram - Page 4"
    assert images[0].source == "UK Building Regulations"
    assert images[1].title == "Diagram 2.1"
    assert images[1].source == "Approved Document B"


# ──────────────────────────────────────────────────────────────────────
# Pipeline
# ──────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_general_question_has_no_project_fields():
    index = FakeIndex([make_match(0.82, text="Part L covers conservation of fuel and power.")])
    llm = FakeLLM(response="Part L sets U-value limits for new walls.")

    answer = await _pipeline(index, llm).answer("What are Part L requirements?")

    assert "Part L" in answer.response
    assert answer.project_id is None
    assert 0 <= len(answer.images) <= 5
    body = answer.to_response()
    assert "projectId" not in body
    assert "documentsAnalyzed" not in body
    assert "conversationsReferenced" not in body

    system_prompt = llm.calls[0]["messages"][0]["content"]
    assert "Part L covers conservation of fuel and power." in system_prompt
    assert llm.calls[0]["messages"][1] == {"role": "user", "content": "What are Part L requirements?"}
    assert llm.calls[0]["model"] == "gpt-4o-mini"
    assert llm.calls[0]["temperature"] == 0.3
    assert llm.calls[0]["max_tokens"] == 1000


@pytest.mark.asyncio
async def test_project_question_analyses_image_document():
    doc = make_document("plan.png", "image/png", project_id="p1", user_id="u1")
    data = FakeProjectData(documents=[doc], files={doc.file_path: b"\x89PNG"})
    llm = RoutingLLM(response=f"Your plan notes: {VISION_TEXT} Part B requires an escape window.")
    index = FakeIndex([make_match(0.6)])

    answer = await _pipeline(index, llm, data).answer(
        "Check my floor plan", {"id": "p1", "userId": "u1"}
    )

    assert answer.documents_analyzed == 1
    assert answer.project_id == "p1"
    assert answer.conversations_referenced == "None"
    assert VISION_TEXT in answer.response

    system_prompt = _chat_calls(llm)[0]["messages"][0]["content"]
    assert VISION_TEXT in system_prompt
    assert "[IMAGE ANALYSIS: plan.png | project p1 | user u1]" in system_prompt
    assert data.document_queries == [("p1", "u1")]


@pytest.mark.asyncio
async def test_foreign_document_aborts_before_generation():
    own = make_document("plan.png", "image/png", project_id="p1", user_id="u1")
    leaked = make_document("secret.txt", "text/plain", project_id="p2", user_id="u1", file_path="u1/p1/secret.txt")
    data = FakeProjectData(documents=[own, leaked], files={own.file_path: b"\x89PNG"})
    llm = RoutingLLM()
    index = FakeIndex([make_match(0.6)])

    with pytest.raises(SecurityViolationError):
        await _pipeline(index, llm, data).answer("Check my floor plan", {"id": "p1", "userId": "u1"})

    assert llm.calls == []
    assert data.downloads == []
    assert index.queries == []


@pytest.mark.asyncio
async def test_conversation_history_is_referenced():
    data = FakeProjectData(
        conversations=[make_conversation("conv-1", "Loft", project_id="p1", user_id="u1")],
        messages={"conv-1": [make_message("Fire doors in the loft?")]},
    )
    llm = FakeLLM(response="Summary or answer text.")

    answer = await _pipeline(FakeIndex([make_match(0.5)]), llm, data).answer(
        "Follow-up on fire doors", {"id": "p1", "userId": "u1"}
    )

    assert answer.conversations_referenced == "Available"
    assert answer.documents_analyzed == 0
    system_prompt = llm.calls[-1]["messages"][0]["content"]
    assert '--- CONVERSATION: "Loft"' in system_prompt


@pytest.mark.asyncio
async def test_low_scores_fall_back_to_top_three():
    matches = [
        make_match(0.1, text="Passage one about Part K."),
        make_match(0.2, text="Passage two about Part K."),
        make_match(0.15, text="Passage three about Part K."),
    ]
    llm = FakeLLM()

    answer = await _pipeline(FakeIndex(matches), llm).answer("Stair pitch?")

    assert answer.response == llm.response
    system_prompt = llm.calls[0]["messages"][0]["content"]
    assert "Passage one" in system_prompt
    assert "Passage two" in system_prompt
    assert "Passage three" in system_prompt


@pytest.mark.asyncio
async def test_no_matches_returns_no_information_answer():
    llm = FakeLLM()

    answer = await _pipeline(FakeIndex([]), llm).answer("What colour is the sky?")

    assert answer.response == NO_INFORMATION_RESPONSE
    assert answer.images == []
    assert llm.calls == []


@pytest.mark.asyncio
async def test_no_information_answer_keeps_project_id():
    answer = await _pipeline(FakeIndex([])).answer("Anything?", {"id": "p1", "userId": "u1"})

    assert answer.response == NO_INFORMATION_RESPONSE
    assert answer.project_id == "p1"


@pytest.mark.asyncio
async def test_images_capped_at_five():
    matches = [
        make_match(
            0.9 - i * 0.01,
            images=[{"url": f"https://img/{i}-a.png", "page": i}, {"url": f"https://img/{i}-b.png", "page": i}],
            match_id=f"m{i}",
        )
        for i in range(9)
    ]

    answer = await _pipeline(FakeIndex(matches)).answer("Show me Part M diagrams")

    assert len(answer.images) == 5
    assert answer.images[0].url == "https://img/0-a.png"


@pytest.mark.asyncio
async def test_vision_failure_still_answers():
    doc = make_document("photo.jpg", "image/jpeg", project_id="p1", user_id="u1")
    data = FakeProjectData(documents=[doc], files={doc.file_path: b"jpeg"})

    class VisionDownLLM(FakeLLM):
        async def complete(self, messages, model, temperature=0.3, max_tokens=1000):
            if isinstance(messages[-1]["content"], list):
                raise RuntimeError("vision model unavailable")
            return await super().complete(messages, model, temperature, max_tokens)

    llm = VisionDownLLM()
    answer = await _pipeline(FakeIndex([make_match(0.7)]), llm, data).answer(
        "Check my photo", {"id": "p1", "userId": "u1"}
    )

    assert answer.response == llm.response
    assert answer.documents_analyzed == 1
    assert "photo.jpg" in llm.calls[-1]["messages"][0]["content"]


@pytest.mark.asyncio
@pytest.mark.parametrize("message", [None, "", "   ", 42, ["hi"]])
async def test_invalid_message_rejected(message):
    index = FakeIndex([make_match(0.9)])

    with pytest.raises(InvalidInputError):
        await _pipeline(index).answer(message)

    assert index.queries == []


@pytest.mark.asyncio
async def test_malformed_project_context_rejected_before_data_access():
    data = FakeProjectData()

    with pytest.raises(SecurityViolationError):
        await _pipeline(FakeIndex(), data=data).answer("Hi", {"id": "p1"})

    assert data.document_queries == []


@pytest.mark.asyncio
async def test_embedding_failure_is_fatal():
    embedder = FakeEmbedder(error=RuntimeError("401 Unauthorized"))

    with pytest.raises(UpstreamEmbeddingError):
        await _pipeline(FakeIndex([make_match(0.9)]), embedder=embedder).answer("Part A?")


@pytest.mark.asyncio
async def test_retrieval_failure_is_fatal():
    index = FakeIndex(query_error=RuntimeError("index unavailable"))

    with pytest.raises(UpstreamRetrievalError):
        await _pipeline(index).answer("Part A?")


@pytest.mark.asyncio
async def test_generation_failure_is_fatal():
    llm = FakeLLM(error=RuntimeError("model overloaded"))

    with pytest.raises(UpstreamGenerationError):
        await _pipeline(FakeIndex([make_match(0.9)]), llm).answer("Part A?")


@pytest.mark.asyncio
async def test_retrieval_uses_top_eight():
    index = FakeIndex([make_match(0.9)])
    await _pipeline(index).answer("Part A?")

    assert index.queries[0][1] == 8
    assert len(index.queries[0][0]) == 1536


@pytest.mark.asyncio
async def test_aclose_releases_index():
    index = FakeIndex()
    await _pipeline(index).aclose()

    assert index.closed
