"""Summaries of a project's previous conversations for reuse as chat context."""

from datetime import datetime
from typing import Protocol

from app.core.exceptions import UpstreamSummarizationError
from app.core.llm import ChatCompletionClient
from app.core.logging import get_logger
from app.core.schemas_chat import ConversationMessage, ConversationRecord, ProjectScope
from app.core.scope import assert_conversation_in_scope

logger = get_logger(__name__)

SUMMARY_SYSTEM_PROMPT = """You summarise past conversations between a user and a UK Building Regulations assistant.

Write a concise executive summary of the conversation below covering:
- Topics discussed
- Decisions made
- Compliance issues identified (cite Building Regulations Parts by letter where mentioned)
- Recommendations given
- Unresolved questions or follow-ups

Use British English. Do not copy the transcript verbatim."""


class ConversationSource(Protocol):
    async def fetch_recent_conversations(
        self, project_id: str, user_id: str, limit: int = 5
    ) -> list[ConversationRecord]: ...

    async def fetch_messages(self, conversation_id: str) -> list[ConversationMessage]: ...


def format_transcript(messages: list[ConversationMessage]) -> str:
    """Render messages as a role-tagged transcript."""
    return "\n\n".join(f"{message.role.upper()}: {message.content}" for message in messages)


def format_conversation_date(created_at: str) -> str:
    try:
        return datetime.fromisoformat(created_at.replace("Z", "+00:00")).strftime("%d %B %Y")
    except ValueError:
        return created_at[:10]


class ConversationSummarizer:
    def __init__(self, llm: ChatCompletionClient, model: str = "gpt-4o-mini", max_tokens: int = 500):
        self._llm = llm
        self.model = model
        self.max_tokens = max_tokens

    async def summarize(self, transcript: str, title: str) -> str:
        """
        Summarise one conversation transcript.

        Returns:
            Summary text, or "" if the model call fails
        """
        messages = [
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {"role": "user", "content": f'Conversation title: "{title}"\n\n{transcript}'},
        ]
        try:
            summary = await self._llm.complete(
                messages,
                model=self.model,
                temperature=0.2,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.warning(
                f"Failed to summarise conversation '{title}': {e}",
                extra={"code": UpstreamSummarizationError.code},
            )
            return ""
        return summary.strip()


async def load_project_conversation_history(
    source: ConversationSource,
    summarizer: ConversationSummarizer,
    project_id: str,
    user_id: str,
    limit: int = 5,
) -> str:
    """
    Summarise the project's most recent conversations into one context block.

    Conversations with no messages or a failed summary are left out.

    Raises:
        SecurityViolationError: If the source returns an out-of-scope conversation
        DataAccessError: If a read fails
    """
    conversations = await source.fetch_recent_conversations(project_id, user_id, limit=limit)
    scope = ProjectScope(project_id=project_id, user_id=user_id)
    for conversation in conversations:
        assert_conversation_in_scope(conversation, scope)

    entries: list[str] = []
    for conversation in conversations[:limit]:
        messages = await source.fetch_messages(conversation.id)
        if not messages:
            continue

        summary = await summarizer.summarize(format_transcript(messages), conversation.title)
        if not summary:
            continue

        date = format_conversation_date(conversation.created_at)
        entries.append(f'--- CONVERSATION: "{conversation.title}" ({date}) ---\n{summary}')

    logger.info(
        f"Summarised {len(entries)} of {len(conversations)} previous conversations",
        extra={"project_id": project_id},
    )
    return "\n\n".join(entries)
