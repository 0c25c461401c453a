"""Assembles the grounded system prompt for a regulations chat answer.

Order when scoped: project scope guard, previous conversation summaries,
project document analyses, retrieved regulation text.
"""

from app.context.prompt_blocks import (
    BLOCK_CONVERSATIONS,
    BLOCK_DOCUMENTS,
    BLOCK_GUIDELINES,
    BLOCK_PROJECT_SCOPE,
    BLOCK_REGULATIONS,
    PROJECT_CLAUSE,
)
from app.core.schemas_chat import DocumentAnalysis, ProjectScope

DOCUMENT_SEPARATOR = "\n\n"


def _project_details(scope: ProjectScope) -> str:
    details = [
        f"{label}: {value}\n"
        for label, value in (
            ("Project name", scope.name),
            ("Description", scope.description),
            ("Label", scope.label),
            ("Status", scope.status),
        )
        if value
    ]
    return "".join(details)


def build_system_prompt(
    regulations_context: str,
    scope: ProjectScope | None = None,
    conversation_history: str = "",
    document_analyses: list[DocumentAnalysis] | None = None,
) -> str:
    """
    Build the system prompt for answer generation.

    Args:
        regulations_context: Retrieved regulation passages
        scope: Project scope, or None for a general question
        conversation_history: Summaries of previous project conversations
        document_analyses: Extracted content of project documents

    Returns:
        System prompt text
    """
    if scope is None:
        return BLOCK_GUIDELINES.format(project_clause="") + BLOCK_REGULATIONS.format(
            regulations_context=regulations_context
        )

    parts = [
        BLOCK_GUIDELINES.format(project_clause=PROJECT_CLAUSE),
        BLOCK_PROJECT_SCOPE.format(
            project_id=scope.project_id,
            user_id=scope.user_id,
            project_details=_project_details(scope),
        ),
    ]

    if conversation_history:
        parts.append(BLOCK_CONVERSATIONS.format(conversation_history=conversation_history))

    if document_analyses:
        parts.append(
            BLOCK_DOCUMENTS.format(
                document_count=len(document_analyses),
                document_analyses=DOCUMENT_SEPARATOR.join(a.content for a in document_analyses),
            )
        )

    parts.append(BLOCK_REGULATIONS.format(regulations_context=regulations_context))
    return "".join(parts)
