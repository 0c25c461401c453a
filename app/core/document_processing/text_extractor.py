"""Verbatim text extraction for plain text, CSV and markdown documents."""

from app.core.document_processing.base import BaseExtractor, ContentKind
from app.core.exceptions import ExtractionError
from app.core.schemas_chat import ProjectDocument, ProjectScope


def decode_bytes(raw_bytes: bytes) -> tuple[str, str]:
    """
    Attempt to decode bytes using fallback chain.

    Returns:
        Tuple of (decoded_text, encoding_name)

    Raises:
        ExtractionError: If no encoding works
    """
    # Check for UTF-8 BOM first
    if raw_bytes.startswith(b"\xef\xbb\xbf"):
        try:
            return raw_bytes.decode("utf-8-sig"), "utf-8-sig"
        except UnicodeDecodeError:
            pass

    for encoding in ("utf-8", "latin-1"):
        try:
            return raw_bytes.decode(encoding), encoding
        except UnicodeDecodeError:
            continue

    raise ExtractionError(
        "Unable to decode file content. Supported encodings: UTF-8, UTF-8-BOM, Latin-1."
    )


class TextExtractor(BaseExtractor):
    kind = ContentKind.TEXT

    async def extract(
        self,
        file_bytes: bytes | None,
        document: ProjectDocument,
        user_message: str,
        scope: ProjectScope,
    ) -> str:
        if file_bytes is None:
            raise ExtractionError(f"No content downloaded for {document.file_name}")

        text, _ = decode_bytes(file_bytes)
        return text
