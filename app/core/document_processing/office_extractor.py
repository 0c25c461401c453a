"""Placeholder content for PDF, Word and Excel documents.

These formats are not parsed. The placeholder tells the model the document
exists and what it may hold, so answers can point the user back to it.
"""

from app.core.document_processing.base import BaseExtractor, ContentKind, get_extension
from app.core.schemas_chat import ProjectDocument, ProjectScope

FORMAT_LABELS = {
    ".pdf": "PDF document",
    ".doc": "Word document",
    ".docx": "Word document",
    ".xls": "Excel spreadsheet",
    ".xlsx": "Excel spreadsheet",
}


def _format_label(document: ProjectDocument) -> str:
    label = FORMAT_LABELS.get(get_extension(document.file_name))
    if label:
        return label

    file_type = document.file_type.lower()
    if "pdf" in file_type:
        return "PDF document"
    if "word" in file_type:
        return "Word document"
    if "excel" in file_type or "spreadsheet" in file_type:
        return "Excel spreadsheet"
    return "Document"


def _format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{max(size_bytes, 0) / 1024:.1f} KB"


class OfficeDocumentExtractor(BaseExtractor):
    kind = ContentKind.OFFICE
    needs_bytes = False

    async def extract(
        self,
        file_bytes: bytes | None,
        document: ProjectDocument,
        user_message: str,
        scope: ProjectScope,
    ) -> str:
        return (
            f"[DOCUMENT: {document.file_name}] {_format_label(document)} "
            f"({_format_size(document.file_size)}) uploaded to this project. "
            "This document may contain architectural plans, specifications, schedules "
            "or other technical details relevant to a Building Regulations compliance "
            "review. Its text has not been extracted automatically, so refer the user "
            "to the document itself for exact figures."
        )
