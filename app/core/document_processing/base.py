"""Base extractor interface and MIME-type dispatch for project documents.

Defines the contract every extractor implements plus the mapping from a
stored document's MIME type (or file extension) to the kind of content
extraction it gets.
"""

from abc import ABC, abstractmethod
from enum import Enum

from app.core.schemas_chat import ProjectDocument, ProjectScope


class ContentKind(Enum):
    """How a document's content is produced."""
    TEXT = "text"          # decoded verbatim
    IMAGE = "image"        # vision model analysis
    OFFICE = "office"      # fixed placeholder, no parsing


# MIME type to ContentKind mapping
MIME_TYPE_MAP: dict[str, ContentKind] = {
    # Plain text
    "text/plain": ContentKind.TEXT,
    "text/csv": ContentKind.TEXT,
    "text/markdown": ContentKind.TEXT,
    # PDF
    "application/pdf": ContentKind.OFFICE,
    # Word
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ContentKind.OFFICE,
    "application/msword": ContentKind.OFFICE,
    # Excel
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ContentKind.OFFICE,
    "application/vnd.ms-excel": ContentKind.OFFICE,
}

# File extension fallback when the stored MIME type is missing or generic
EXTENSION_MAP: dict[str, ContentKind] = {
    ".txt": ContentKind.TEXT,
    ".csv": ContentKind.TEXT,
    ".md": ContentKind.TEXT,
    ".pdf": ContentKind.OFFICE,
    ".docx": ContentKind.OFFICE,
    ".doc": ContentKind.OFFICE,
    ".xlsx": ContentKind.OFFICE,
    ".xls": ContentKind.OFFICE,
    ".png": ContentKind.IMAGE,
    ".jpg": ContentKind.IMAGE,
    ".jpeg": ContentKind.IMAGE,
    ".webp": ContentKind.IMAGE,
    ".gif": ContentKind.IMAGE,
}


def get_extension(filename: str) -> str:
    """Extract lowercase file extension (with dot) from filename."""
    if "." in filename:
        return "." + filename.rsplit(".", 1)[-1].lower()
    return ""


def detect_content_kind(mime_type: str | None, filename: str) -> ContentKind | None:
    """Resolve the content kind of a document, or None if unsupported."""
    mime = (mime_type or "").split(";")[0].strip().lower()

    if mime.startswith("image/"):
        return ContentKind.IMAGE
    if mime in MIME_TYPE_MAP:
        return MIME_TYPE_MAP[mime]

    return EXTENSION_MAP.get(get_extension(filename))


class BaseExtractor(ABC):
    """Base class for project document extractors."""

    kind: ContentKind

    # Office placeholders are built from the row alone; nothing is downloaded
    needs_bytes: bool = True

    def can_handle(self, kind: ContentKind | None) -> bool:
        return kind is self.kind

    @abstractmethod
    async def extract(
        self,
        file_bytes: bytes | None,
        document: ProjectDocument,
        user_message: str,
        scope: ProjectScope,
    ) -> str:
        """Produce text content for one document.

        Args:
            file_bytes: Raw file content (None when ``needs_bytes`` is False)
            document: Scope-checked document row
            user_message: The question being answered, to focus analysis
            scope: Requesting project/user scope

        Returns:
            Text to include as project context

        Raises:
            ExtractionError: If content cannot be produced
        """
