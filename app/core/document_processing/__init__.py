"""Project document content extraction.

This package provides:
- MIME-type dispatch to a content kind (text, image, office)
- Verbatim text decoding, vision analysis for images, placeholders for office formats
- A processor that scope-checks and extracts a whole project's documents

Usage:
    from app.core.document_processing import build_document_processor

    processor = build_document_processor(gateway, vision_analyzer)
    analyses = await processor.process(documents, message, scope)
"""

from app.core.document_processing.base import (
    BaseExtractor,
    ContentKind,
    detect_content_kind,
)
from app.core.document_processing.image_extractor import (
    ImageExtractor,
    VisionAnalyzer,
    normalize_image_format,
)
from app.core.document_processing.office_extractor import OfficeDocumentExtractor
from app.core.document_processing.processor import (
    DocumentDownloader,
    ProjectDocumentProcessor,
)
from app.core.document_processing.text_extractor import TextExtractor, decode_bytes


def build_document_processor(
    downloader: DocumentDownloader,
    analyzer: VisionAnalyzer,
) -> ProjectDocumentProcessor:
    """Processor wired with the text, image and office extractors."""
    return ProjectDocumentProcessor(
        downloader,
        [TextExtractor(), ImageExtractor(analyzer), OfficeDocumentExtractor()],
    )


__all__ = [
    "BaseExtractor",
    "ContentKind",
    "detect_content_kind",
    "ImageExtractor",
    "VisionAnalyzer",
    "normalize_image_format",
    "OfficeDocumentExtractor",
    "DocumentDownloader",
    "ProjectDocumentProcessor",
    "TextExtractor",
    "decode_bytes",
    "build_document_processor",
]
