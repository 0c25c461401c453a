"""Turns a project's documents into text context for the chat prompt."""

from typing import Protocol

from app.core.document_processing.base import BaseExtractor, detect_content_kind
from app.core.exceptions import ExtractionError, SecurityViolationError
from app.core.logging import get_logger
from app.core.schemas_chat import DocumentAnalysis, ProjectDocument, ProjectScope
from app.core.scope import assert_document_in_scope

logger = get_logger(__name__)


class DocumentDownloader(Protocol):
    async def download_document(self, document: ProjectDocument, scope: ProjectScope) -> bytes: ...


def extraction_failure_placeholder(file_name: str) -> str:
    return (
        f"[DOCUMENT: {file_name}] This document could not be processed automatically "
        "but is available in the project for reference."
    )


class ProjectDocumentProcessor:
    """Dispatches each document to the extractor for its content kind."""

    def __init__(self, downloader: DocumentDownloader, extractors: list[BaseExtractor]):
        self._downloader = downloader
        self._extractors = extractors

    def get_extractor(self, document: ProjectDocument) -> BaseExtractor:
        kind = detect_content_kind(document.file_type, document.file_name)
        for extractor in self._extractors:
            if extractor.can_handle(kind):
                return extractor
        raise ExtractionError(
            f"No extractor for {document.file_name} (type {document.file_type!r})"
        )

    async def extract(
        self,
        document: ProjectDocument,
        user_message: str,
        scope: ProjectScope,
    ) -> str:
        """
        Produce content for a single scope-checked document.

        Raises:
            SecurityViolationError: If the document falls outside the scope
            Exception: Any extraction failure, for the caller to isolate
        """
        assert_document_in_scope(document, scope)

        extractor = self.get_extractor(document)
        file_bytes = None
        if extractor.needs_bytes:
            file_bytes = await self._downloader.download_document(document, scope)

        return await extractor.extract(file_bytes, document, user_message, scope)

    async def process(
        self,
        documents: list[ProjectDocument],
        user_message: str,
        scope: ProjectScope,
    ) -> list[DocumentAnalysis]:
        """
        Extract content for every document, sequentially.

        All documents are scope-checked before any content is read. A failure
        on one document degrades to a placeholder for that document only.

        Raises:
            SecurityViolationError: If any document falls outside the scope
        """
        for document in documents:
            assert_document_in_scope(document, scope)

        analyses: list[DocumentAnalysis] = []
        for document in documents:
            try:
                content = await self.extract(document, user_message, scope)
                degraded = False
            except SecurityViolationError:
                raise
            except Exception as e:
                logger.warning(
                    f"Extraction failed for {document.file_name}: {e}",
                    extra={"project_id": scope.project_id, "document_id": document.id},
                )
                content = extraction_failure_placeholder(document.file_name)
                degraded = True

            analyses.append(
                DocumentAnalysis(
                    document_id=document.id,
                    file_name=document.file_name,
                    content=content,
                    degraded=degraded,
                )
            )

        logger.info(
            f"Processed {len(analyses)} project documents",
            extra={"project_id": scope.project_id},
        )
        return analyses
