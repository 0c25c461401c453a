"""API endpoint for the building regulations assistant chat."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.exceptions import GENERIC_MESSAGE, InvalidInputError, RegsAssistantError
from app.core.logging import get_logger
from app.core.schemas_chat import ChatErrorResponse
from app.graphs.chat_answer_graph import build_chat_pipeline, validate_message

logger = get_logger(__name__)

router = APIRouter()


def _error_response(message: str, code: str, status_code: int) -> JSONResponse:
    body = ChatErrorResponse(error=message, details=code)
    return JSONResponse(content=body.model_dump(), status_code=status_code)


@router.post("/building-regulations-chat")
async def building_regulations_chat(request: Request) -> JSONResponse:
    """
    Answer a building regulations question, optionally scoped to a project.

    Body:
        message: The user's question
        projectContext: Optional {id, userId, name, description, label, status}

    Returns:
        ChatAnswer on success (including "no information" answers), or
        {error, details, images: []} where details is the stable error code
    """
    pipeline = None
    try:
        try:
            payload = await request.json()
        except ValueError as e:
            raise InvalidInputError("Request body is not valid JSON") from e
        if not isinstance(payload, dict):
            raise InvalidInputError("Request body must be a JSON object")

        message = validate_message(payload.get("message"))

        pipeline = build_chat_pipeline(get_settings())
        answer = await pipeline.answer(message, payload.get("projectContext"))
        return JSONResponse(content=answer.to_response(), status_code=200)

    except RegsAssistantError as e:
        logger.error(f"Chat request failed [{e.code}]: {e}")
        return _error_response(e.user_message, e.code, e.status_code)
    except Exception as e:
        logger.exception(f"Unexpected chat failure: {e}")
        return _error_response(GENERIC_MESSAGE, RegsAssistantError.code, 500)
    finally:
        if pipeline is not None:
            await pipeline.aclose()
