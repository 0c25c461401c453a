"""Image document analysis using an OpenAI vision model.

Analyses drawings, plans and site photos for Building Regulations concerns.
Analysis is best-effort: any failure degrades to a placeholder string.
"""

import base64

from app.core.document_processing.base import BaseExtractor, ContentKind
from app.core.exceptions import UpstreamVisionError
from app.core.llm import ChatCompletionClient
from app.core.logging import get_logger
from app.core.schemas_chat import ProjectDocument, ProjectScope

logger = get_logger(__name__)

# Normalised image subtypes accepted by the vision endpoint
SUPPORTED_IMAGE_FORMATS = {"jpeg", "png", "gif", "webp"}
IMAGE_FORMAT_ALIASES = {"jpg": "jpeg", "pjpeg": "jpeg"}

VISION_SYSTEM_PROMPT = """You are a UK Building Regulations specialist analysing an image uploaded to a single project.

SCOPE: This image belongs to project "{project_id}" owned by user "{user_id}". Analyse ONLY this image.
Do not refer to, assume or invent details about any other project, user or document.

Analyse the image for Building Regulations compliance and describe:
1. What the image shows (floor plan, elevation, section, site photo, detail drawing, etc.)
2. Room layout, dimensions and labels that are legible
3. Means of escape: exits, escape routes, travel distances, protected stairs (Part B)
4. Accessibility: door widths, level access, ramps, WC provision (Part M)
5. Structural cues: openings, lintels, load-bearing walls, foundations (Part A)
6. Ventilation and daylight: windows, extract fans, trickle vents (Part F)
7. Any visible non-compliance or items that need checking

Use British English spelling and UK units (metres, millimetres). Be specific and concise.
The user's question is: "{user_message}"
"""


def normalize_image_format(mime_type: str | None) -> str:
    """Map a MIME type to one of jpeg/png/gif/webp, defaulting to jpeg."""
    subtype = (mime_type or "").split(";")[0].strip().lower()
    if "/" in subtype:
        subtype = subtype.split("/", 1)[1]
    subtype = IMAGE_FORMAT_ALIASES.get(subtype, subtype)
    return subtype if subtype in SUPPORTED_IMAGE_FORMATS else "jpeg"


def image_analysis_placeholder(file_name: str) -> str:
    return (
        f"[IMAGE: {file_name}] Automated image analysis is currently unavailable. "
        "The image is stored in this project and can be reviewed manually."
    )


class VisionAnalyzer:
    """Sends one image plus a scope-restating prompt to a vision model."""

    def __init__(self, llm: ChatCompletionClient, model: str = "gpt-4o-mini", max_tokens: int = 1000):
        self._llm = llm
        self.model = model
        self.max_tokens = max_tokens

    async def analyze_image(
        self,
        image_bytes: bytes,
        file_name: str,
        user_message: str,
        project_id: str,
        user_id: str,
        mime_type: str | None = None,
    ) -> str:
        """
        Analyse an image and return tagged free-text analysis.

        Never raises: on any failure the error is logged and a placeholder
        naming the file is returned instead.
        """
        image_format = normalize_image_format(mime_type)
        image_data = base64.standard_b64encode(image_bytes).decode("utf-8")

        messages = [
            {
                "role": "system",
                "content": VISION_SYSTEM_PROMPT.format(
                    project_id=project_id,
                    user_id=user_id,
                    user_message=user_message,
                ),
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": f"Analyse the uploaded image '{file_name}'."},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/{image_format};base64,{image_data}"},
                    },
                ],
            },
        ]

        try:
            analysis = await self._llm.complete(
                messages,
                model=self.model,
                temperature=0.2,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.warning(
                f"Vision analysis failed for {file_name}: {e}",
                extra={"project_id": project_id, "code": UpstreamVisionError.code},
            )
            return image_analysis_placeholder(file_name)

        logger.info(f"Analysed image {file_name}", extra={"project_id": project_id})
        return (
            f"[IMAGE ANALYSIS: {file_name} | project {project_id} | user {user_id}]\n"
            f"{analysis.strip()}"
        )


class ImageExtractor(BaseExtractor):
    kind = ContentKind.IMAGE

    def __init__(self, analyzer: VisionAnalyzer):
        self._analyzer = analyzer

    async def extract(
        self,
        file_bytes: bytes | None,
        document: ProjectDocument,
        user_message: str,
        scope: ProjectScope,
    ) -> str:
        if not file_bytes:
            return image_analysis_placeholder(document.file_name)

        return await self._analyzer.analyze_image(
            file_bytes,
            document.file_name,
            user_message,
            scope.project_id,
            scope.user_id,
            mime_type=document.file_type,
        )
