"""Regulations Chat Answer Graph.

LangGraph workflow that answers a Building Regulations question:
1. Validate the message and optional project scope
2. Gather project context (documents and previous conversations), if scoped
3. Embed the question
4. Retrieve regulation passages from the vector index
5. Select relevant matches (threshold, then top-3 fallback, else no-information reply)
6. Collect related diagram images
7. Compose the grounded system prompt
8. Generate the answer
9. Finalise the response
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4

from langgraph.graph import END, StateGraph

from app.context.prompt_blocks import NO_INFORMATION_RESPONSE
from app.context.prompt_compiler import build_system_prompt
from app.core.config import CHAT_REQUIRED_KEYS, Settings
from app.core.conversation_summary import (
    ConversationSummarizer,
    load_project_conversation_history,
)
from app.core.document_processing import (
    ProjectDocumentProcessor,
    VisionAnalyzer,
    build_document_processor,
)
from app.core.embeddings import EmbeddingClient
from app.core.exceptions import (
    InvalidInputError,
    MissingConfigurationError,
    RegsAssistantError,
    UpstreamEmbeddingError,
    UpstreamGenerationError,
    UpstreamRetrievalError,
)
from app.core.llm import ChatCompletionClient
from app.core.logging import get_logger, log_with_context
from app.core.schemas_chat import (
    ChatAnswer,
    DocumentAnalysis,
    ProjectDocument,
    ProjectScope,
    RegulationImage,
    RetrievalMatch,
)
from app.core.scope import parse_project_context
from app.core.vector_index import VectorIndexClient
from app.db.project_scope import ProjectDataGateway
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

TOP_K = 8
RELEVANCE_THRESHOLD = 0.25
FALLBACK_MATCH_COUNT = 3
MAX_IMAGES = 5
CONTEXT_SEPARATOR = "\n\n---\n\n"
DEFAULT_IMAGE_SOURCE = "UK Building Regulations"


class ProjectDataSource(Protocol):
    async def fetch_project_documents(self, project_id: str, user_id: str) -> list[ProjectDocument]: ...

    async def fetch_recent_conversations(self, project_id: str, user_id: str, limit: int = 5) -> list: ...

    async def fetch_messages(self, conversation_id: str) -> list: ...

    async def download_document(self, document: ProjectDocument, scope: ProjectScope) -> bytes: ...


@dataclass
class ChatAnswerState:
    """State for the chat answer graph."""

    # Input
    message: Any = None
    project_context: Any = None
    run_id: str = ""

    # Validated scope (None for general questions)
    scope: ProjectScope | None = None

    # Project context
    document_analyses: list[DocumentAnalysis] = field(default_factory=list)
    conversation_history: str = ""

    # Retrieval
    query_embedding: list[float] = field(default_factory=list)
    matches: list[RetrievalMatch] = field(default_factory=list)
    selected_matches: list[RetrievalMatch] = field(default_factory=list)
    used_fallback: bool = False
    regulations_context: str = ""
    images: list[RegulationImage] = field(default_factory=list)

    # Generation
    system_prompt: str = ""
    response_text: str = ""

    # Output
    answer: ChatAnswer | None = None


def select_relevant_matches(
    matches: list[RetrievalMatch],
) -> tuple[list[RetrievalMatch], bool]:
    """
    Keep matches scoring above the relevance threshold.

    If none qualify, fall back to the first three matches regardless of score.

    Returns:
        Tuple of (selected matches, whether the fallback was used)
    """
    relevant = [m for m in matches if m.score > RELEVANCE_THRESHOLD]
    if relevant:
        return relevant, False
    return matches[:FALLBACK_MATCH_COUNT], True


def build_regulations_context(matches: list[RetrievalMatch]) -> str:
    """Join the non-empty texts of the selected matches."""
    return CONTEXT_SEPARATOR.join(
        m.metadata.text for m in matches if m.metadata.text and m.metadata.text.strip()
    )


def collect_related_images(
    matches: list[RetrievalMatch],
    limit: int = MAX_IMAGES,
) -> list[RegulationImage]:
    """Gather diagram images attached to the selected matches, capped at ``limit``."""
    images: list[RegulationImage] = []
    for match in matches:
        for image in match.metadata.images:
            images.append(
                RegulationImage(
                    url=image.url,
                    title=image.title or f"Building Regulation Diagram - Page {image.page}",
                    source=match.metadata.source or DEFAULT_IMAGE_SOURCE,
                )
            )
    return images[:limit]


def validate_message(message: Any) -> str:
    """
    Raises:
        InvalidInputError: If message is not a non-empty string
    """
    if not isinstance(message, str) or not message.strip():
        raise InvalidInputError("Message is required and must be a non-empty string")
    return message


class ChatAnswerPipeline:
    """Composes retrieval, project context and generation into one answer."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: VectorIndexClient,
        llm: ChatCompletionClient,
        data_source: ProjectDataSource,
        document_processor: ProjectDocumentProcessor,
        summarizer: ConversationSummarizer,
        chat_model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ):
        self._embedder = embedder
        self._index = index
        self._llm = llm
        self._data_source = data_source
        self._document_processor = document_processor
        self._summarizer = summarizer
        self.chat_model = chat_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._graph = self._build_graph()

    # ── Nodes ──────────────────────────────────────────────────────

    async def validate_request(self, state: ChatAnswerState) -> dict[str, Any]:
        """Reject a bad message, then a bad scope, before any data access."""
        validate_message(state.message)
        scope = parse_project_context(state.project_context)

        log_with_context(
            logger,
            logging.INFO,
            "Validated chat request",
            run_id=state.run_id,
            stage="validate_request",
            scoped=scope is not None,
        )
        return {"scope": scope}

    async def gather_project_context(self, state: ChatAnswerState) -> dict[str, Any]:
        """Fetch, scope-check and extract project documents, then summarise history."""
        scope = state.scope
        if scope is None:
            return {}

        documents = await self._data_source.fetch_project_documents(scope.project_id, scope.user_id)
        analyses = await self._document_processor.process(documents, state.message, scope)

        history = await load_project_conversation_history(
            self._data_source,
            self._summarizer,
            scope.project_id,
            scope.user_id,
        )

        log_with_context(
            logger,
            logging.INFO,
            "Gathered project context",
            run_id=state.run_id,
            stage="gather_project_context",
            project_id=scope.project_id,
            documents=len(analyses),
            has_history=bool(history),
        )
        return {"document_analyses": analyses, "conversation_history": history}

    async def embed_query(self, state: ChatAnswerState) -> dict[str, Any]:
        try:
            embedding = await self._embedder.embed_query(state.message)
        except RegsAssistantError:
            raise
        except Exception as e:
            raise UpstreamEmbeddingError(f"Query embedding failed: {e}") from e

        log_with_context(
            logger,
            logging.DEBUG,
            "Embedded query",
            run_id=state.run_id,
            stage="embed_query",
            dimension=len(embedding),
        )
        return {"query_embedding": embedding}

    async def retrieve_passages(self, state: ChatAnswerState) -> dict[str, Any]:
        try:
            matches = await self._index.query(state.query_embedding, top_k=TOP_K)
        except RegsAssistantError:
            raise
        except Exception as e:
            raise UpstreamRetrievalError(f"Regulation retrieval failed: {e}") from e

        return {"matches": matches}

    async def select_matches(self, state: ChatAnswerState) -> dict[str, Any]:
        selected, used_fallback = select_relevant_matches(state.matches)
        context = build_regulations_context(selected)

        log_with_context(
            logger,
            logging.INFO,
            "Selected regulation matches",
            run_id=state.run_id,
            stage="select_matches",
            retrieved=len(state.matches),
            selected=len(selected),
            used_fallback=used_fallback,
            context_chars=len(context),
        )
        return {
            "selected_matches": selected,
            "used_fallback": used_fallback,
            "regulations_context": context,
        }

    async def no_information(self, state: ChatAnswerState) -> dict[str, Any]:
        log_with_context(
            logger,
            logging.INFO,
            "No regulation context found, returning no-information reply",
            run_id=state.run_id,
            stage="no_information",
        )
        return {"answer": self._make_answer(state, NO_INFORMATION_RESPONSE, images=[])}

    async def collect_images(self, state: ChatAnswerState) -> dict[str, Any]:
        return {"images": collect_related_images(state.selected_matches)}

    async def compose_prompt(self, state: ChatAnswerState) -> dict[str, Any]:
        prompt = build_system_prompt(
            state.regulations_context,
            scope=state.scope,
            conversation_history=state.conversation_history,
            document_analyses=state.document_analyses,
        )
        return {"system_prompt": prompt}

    async def generate_answer(self, state: ChatAnswerState) -> dict[str, Any]:
        messages = [
            {"role": "system", "content": state.system_prompt},
            {"role": "user", "content": state.message},
        ]
        try:
            response_text = await self._llm.complete(
                messages,
                model=self.chat_model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            raise UpstreamGenerationError(f"OpenAI chat completion failed: {e}") from e

        log_with_context(
            logger,
            logging.INFO,
            "Generated answer",
            run_id=state.run_id,
            stage="generate_answer",
            response_chars=len(response_text),
        )
        return {"response_text": response_text}

    async def finalize(self, state: ChatAnswerState) -> dict[str, Any]:
        return {"answer": self._make_answer(state, state.response_text, images=state.images)}

    # ── Wiring ─────────────────────────────────────────────────────

    def _make_answer(
        self,
        state: ChatAnswerState,
        response: str,
        images: list[RegulationImage],
    ) -> ChatAnswer:
        """projectId (and the project counters) appear only for scoped requests."""
        scope = state.scope
        if scope is None:
            return ChatAnswer(response=response, images=images[:MAX_IMAGES])

        return ChatAnswer(
            response=response,
            images=images[:MAX_IMAGES],
            documents_analyzed=len(state.document_analyses),
            conversations_referenced="Available" if state.conversation_history else "None",
            project_id=scope.project_id,
        )

    @staticmethod
    def _route_after_selection(state: ChatAnswerState) -> str:
        if not state.regulations_context.strip():
            return "no_context"
        return "continue"

    def _build_graph(self):
        workflow = StateGraph(ChatAnswerState)

        workflow.add_node("validate_request", self.validate_request)
        workflow.add_node("gather_project_context", self.gather_project_context)
        workflow.add_node("embed_query", self.embed_query)
        workflow.add_node("retrieve_passages", self.retrieve_passages)
        workflow.add_node("select_matches", self.select_matches)
        workflow.add_node("no_information", self.no_information)
        workflow.add_node("collect_images", self.collect_images)
        workflow.add_node("compose_prompt", self.compose_prompt)
        workflow.add_node("generate_answer", self.generate_answer)
        workflow.add_node("finalize", self.finalize)

        workflow.set_entry_point("validate_request")
        workflow.add_edge("validate_request", "gather_project_context")
        workflow.add_edge("gather_project_context", "embed_query")
        workflow.add_edge("embed_query", "retrieve_passages")
        workflow.add_edge("retrieve_passages", "select_matches")
        workflow.add_conditional_edges(
            "select_matches",
            self._route_after_selection,
            {"continue": "collect_images", "no_context": "no_information"},
        )
        workflow.add_edge("no_information", END)
        workflow.add_edge("collect_images", "compose_prompt")
        workflow.add_edge("compose_prompt", "generate_answer")
        workflow.add_edge("generate_answer", "finalize")
        workflow.add_edge("finalize", END)

        return workflow.compile()

    async def answer(self, message: Any, project_context: Any = None) -> ChatAnswer:
        """
        Answer a Building Regulations question.

        Args:
            message: The user's question
            project_context: Optional raw projectContext ({id, userId, ...})

        Returns:
            ChatAnswer

        Raises:
            InvalidInputError: Empty or non-string message
            SecurityViolationError: Bad scope, or any out-of-scope record
            DataAccessError: Project data could not be read
            UpstreamEmbeddingError / UpstreamRetrievalError / UpstreamGenerationError
        """
        run_id = str(uuid4())
        initial_state = ChatAnswerState(
            message=message,
            project_context=project_context,
            run_id=run_id,
        )

        result = await self._graph.ainvoke(initial_state)

        # LangGraph returns a dict of channel values, not the dataclass
        answer = result["answer"] if isinstance(result, dict) else result.answer
        if answer is None:
            raise RuntimeError("Chat answer graph finished without an answer")
        return answer

    async def aclose(self) -> None:
        """Release the index client's connection pool."""
        await self._index.aclose()


def build_chat_pipeline(settings: Settings) -> ChatAnswerPipeline:
    """
    Construct the pipeline with live OpenAI, Pinecone and Supabase clients.

    Raises:
        MissingConfigurationError: If any required credential is empty
    """
    missing = settings.missing_keys(CHAT_REQUIRED_KEYS)
    if missing:
        raise MissingConfigurationError(missing)

    llm = ChatCompletionClient.from_settings(settings)
    gateway = ProjectDataGateway(
        get_supabase(),
        bucket=settings.PROJECT_DOCUMENTS_BUCKET,
    )
    analyzer = VisionAnalyzer(
        llm,
        model=settings.VISION_MODEL,
        max_tokens=settings.VISION_MAX_TOKENS,
    )

    return ChatAnswerPipeline(
        embedder=EmbeddingClient.from_settings(settings),
        index=VectorIndexClient.from_settings(settings),
        llm=llm,
        data_source=gateway,
        document_processor=build_document_processor(gateway, analyzer),
        summarizer=ConversationSummarizer(
            llm,
            model=settings.SUMMARY_MODEL,
            max_tokens=settings.SUMMARY_MAX_TOKENS,
        ),
        chat_model=settings.CHAT_MODEL,
        temperature=settings.CHAT_TEMPERATURE,
        max_tokens=settings.CHAT_MAX_TOKENS,
    )
