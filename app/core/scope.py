"""Project/user scope checks.

A record outside the requested (project, user) pair is a breach, not a data
quality issue: every check here raises instead of filtering.
"""

from typing import Any

from app.core.exceptions import SecurityViolationError
from app.core.logging import get_logger
from app.core.schemas_chat import ConversationRecord, ProjectDocument, ProjectScope

logger = get_logger(__name__)

SCOPE_FIELDS = ("name", "description", "label", "status")


def parse_project_context(project_context: Any) -> ProjectScope | None:
    """
    Validate the optional projectContext of a chat request.

    Args:
        project_context: Raw value from the request body (dict, ProjectScope or None)

    Returns:
        ProjectScope, or None for an unscoped request

    Raises:
        SecurityViolationError: If the context is present but lacks a string
            ``id`` or ``userId``
    """
    if project_context is None:
        return None

    if isinstance(project_context, ProjectScope):
        return project_context

    if not isinstance(project_context, dict):
        logger.warning("Rejected projectContext that is not an object")
        raise SecurityViolationError("projectContext must be an object")

    project_id = project_context.get("id")
    user_id = project_context.get("userId")

    if not isinstance(project_id, str) or not project_id:
        logger.warning("Rejected projectContext without a valid project id")
        raise SecurityViolationError("projectContext.id missing or not a string")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Rejected projectContext without a valid user id")
        raise SecurityViolationError("projectContext.userId missing or not a string")

    descriptive = {
        key: value
        for key in SCOPE_FIELDS
        if isinstance(value := project_context.get(key), str)
    }
    return ProjectScope(project_id=project_id, user_id=user_id, **descriptive)


def assert_document_in_scope(document: ProjectDocument, scope: ProjectScope) -> None:
    """
    Check a document row against the requested scope and storage prefix.

    Raises:
        SecurityViolationError: On any mismatch
    """
    if document.project_id != scope.project_id or document.user_id != scope.user_id:
        logger.error(
            "Document outside requested scope",
            extra={"document_id": document.id, "project_id": scope.project_id},
        )
        raise SecurityViolationError(f"Document {document.id} does not belong to requested scope")

    if not document.file_path.startswith(scope.storage_prefix):
        logger.error(
            "Document storage path outside requested scope",
            extra={"document_id": document.id, "project_id": scope.project_id},
        )
        raise SecurityViolationError(f"Document {document.id} storage path outside scope")


def assert_conversation_in_scope(conversation: ConversationRecord, scope: ProjectScope) -> None:
    """
    Check a conversation row against the requested scope.

    Raises:
        SecurityViolationError: On mismatch
    """
    if conversation.project_id != scope.project_id or conversation.user_id != scope.user_id:
        logger.error(
            "Conversation outside requested scope",
            extra={"conversation_id": conversation.id, "project_id": scope.project_id},
        )
        raise SecurityViolationError(
            f"Conversation {conversation.id} does not belong to requested scope"
        )
