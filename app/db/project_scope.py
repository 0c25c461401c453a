"""Access-scoped reads of project documents and conversation history.

This is the only path by which the chat pipeline reads tenant data. Every
row returned is checked against the requested (project, user) pair; a row
that does not match raises SecurityViolationError rather than being dropped.
"""

import asyncio
from typing import Any

from pydantic import ValidationError
from supabase import Client

from app.core.exceptions import DataAccessError
from app.core.logging import get_logger
from app.core.schemas_chat import (
    ConversationMessage,
    ConversationRecord,
    ProjectDocument,
    ProjectScope,
)
from app.core.scope import assert_conversation_in_scope, assert_document_in_scope

logger = get_logger(__name__)

DOCUMENT_COLUMNS = "id, file_name, file_path, file_type, file_size, user_id, project_id"
CONVERSATION_COLUMNS = "id, title, created_at, project_id, user_id"
MESSAGE_COLUMNS = "content, role, created_at"

RECENT_CONVERSATION_LIMIT = 5


class ProjectDataGateway:
    """Read-only Supabase access bound to one storage bucket."""

    def __init__(self, client: Client, bucket: str = "project-documents"):
        self._client = client
        self.bucket = bucket

    def _select_documents(self, project_id: str, user_id: str) -> list[dict[str, Any]]:
        response = (
            self._client.table("project_documents")
            .select(DOCUMENT_COLUMNS)
            .eq("project_id", project_id)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    def _select_conversations(self, project_id: str, user_id: str, limit: int) -> list[dict[str, Any]]:
        response = (
            self._client.table("conversations")
            .select(CONVERSATION_COLUMNS)
            .eq("project_id", project_id)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []

    def _select_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        response = (
            self._client.table("messages")
            .select(MESSAGE_COLUMNS)
            .eq("conversation_id", conversation_id)
            .order("created_at", desc=False)
            .execute()
        )
        return response.data or []

    async def fetch_project_documents(self, project_id: str, user_id: str) -> list[ProjectDocument]:
        """
        Fetch every document of a project owned by the user.

        Raises:
            SecurityViolationError: If any row falls outside the scope
            DataAccessError: If the query fails or a row is malformed
        """
        try:
            rows = await asyncio.to_thread(self._select_documents, project_id, user_id)
            documents = [ProjectDocument.model_validate(row) for row in rows]
        except ValidationError as e:
            raise DataAccessError(f"Malformed project_documents row: {e}") from e
        except Exception as e:
            logger.error(f"Failed to fetch project documents: {e}")
            raise DataAccessError(f"project_documents query failed: {e}") from e

        scope = ProjectScope(project_id=project_id, user_id=user_id)
        for document in documents:
            assert_document_in_scope(document, scope)

        logger.info(
            f"Fetched {len(documents)} project documents",
            extra={"project_id": project_id},
        )
        return documents

    async def fetch_recent_conversations(
        self,
        project_id: str,
        user_id: str,
        limit: int = RECENT_CONVERSATION_LIMIT,
    ) -> list[ConversationRecord]:
        """
        Fetch the most recent conversations for a project and user.

        Raises:
            SecurityViolationError: If any row falls outside the scope
            DataAccessError: If the query fails or a row is malformed
        """
        try:
            rows = await asyncio.to_thread(self._select_conversations, project_id, user_id, limit)
            conversations = [ConversationRecord.model_validate(row) for row in rows]
        except ValidationError as e:
            raise DataAccessError(f"Malformed conversations row: {e}") from e
        except Exception as e:
            logger.error(f"Failed to fetch conversations: {e}")
            raise DataAccessError(f"conversations query failed: {e}") from e

        scope = ProjectScope(project_id=project_id, user_id=user_id)
        for conversation in conversations:
            assert_conversation_in_scope(conversation, scope)

        return conversations[:limit]

    async def fetch_messages(self, conversation_id: str) -> list[ConversationMessage]:
        """
        Fetch a conversation's messages, oldest first.

        Raises:
            DataAccessError: If the query fails or a row is malformed
        """
        try:
            rows = await asyncio.to_thread(self._select_messages, conversation_id)
            messages = [ConversationMessage.model_validate(row) for row in rows]
        except ValidationError as e:
            raise DataAccessError(f"Malformed messages row: {e}") from e
        except Exception as e:
            logger.error(f"Failed to fetch messages for {conversation_id}: {e}")
            raise DataAccessError(f"messages query failed: {e}") from e

        return sorted(messages, key=lambda m: m.created_at)

    async def download_document(self, document: ProjectDocument, scope: ProjectScope) -> bytes:
        """
        Download a document's bytes from storage.

        The document is re-checked against the scope before anything is read.

        Raises:
            SecurityViolationError: If the document falls outside the scope
            DataAccessError: If the download fails or returns nothing
        """
        assert_document_in_scope(document, scope)

        try:
            content = await asyncio.to_thread(
                self._client.storage.from_(self.bucket).download, document.file_path
            )
        except Exception as e:
            raise DataAccessError(f"Download failed for {document.file_name}: {e}") from e

        if not content:
            raise DataAccessError(f"Empty download for {document.file_name}")
        return content
