"""Error taxonomy for the chat and ingestion pipelines.

Every error carries a stable ``code`` (safe to return to callers), a polite
``user_message`` and the HTTP status the API layer responds with. The
exception's own ``str()`` is diagnostic detail for logs only.
"""

CONFIG_MESSAGE = (
    "I apologise, but the system configuration is incomplete. "
    "Please ensure all required keys are properly configured."
)
DATABASE_MESSAGE = (
    "I apologise, but there seems to be an issue connecting to the Building "
    "Regulations database. Please try again shortly."
)
SERVICE_MESSAGE = (
    "I apologise, but there seems to be an issue with the service. "
    "Please try again shortly."
)
GENERIC_MESSAGE = (
    "I apologise, but I encountered an error processing your request. Please try again."
)
SECURITY_MESSAGE = (
    "I apologise, but this request could not be completed. "
    "Please contact support if the problem persists."
)


class RegsAssistantError(Exception):
    """Base class for all pipeline errors."""

    code = "internal_error"
    user_message = GENERIC_MESSAGE
    status_code = 500
    fatal = True


class InvalidInputError(RegsAssistantError):
    """Request body has the wrong shape."""

    code = "invalid_input"
    user_message = "Message is required and must be a non-empty string."
    status_code = 400


class SecurityViolationError(RegsAssistantError):
    """Project/user scope is missing or a record falls outside it."""

    code = "request_rejected"
    user_message = SECURITY_MESSAGE


class MissingConfigurationError(RegsAssistantError):
    """Required credentials are not configured."""

    code = "missing_configuration"
    user_message = CONFIG_MESSAGE

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class DataAccessError(RegsAssistantError):
    """Supabase read or storage download failed."""

    code = "data_access_failure"
    user_message = DATABASE_MESSAGE


class UpstreamEmbeddingError(RegsAssistantError):
    code = "upstream_embedding_failure"
    user_message = SERVICE_MESSAGE


class UpstreamRetrievalError(RegsAssistantError):
    code = "upstream_retrieval_failure"
    user_message = DATABASE_MESSAGE


class UpstreamIndexWriteError(RegsAssistantError):
    code = "upstream_index_write_failure"
    user_message = DATABASE_MESSAGE


class UpstreamGenerationError(RegsAssistantError):
    code = "upstream_generation_failure"
    user_message = SERVICE_MESSAGE


class UpstreamCrawlError(RegsAssistantError):
    code = "upstream_crawl_failure"
    user_message = SERVICE_MESSAGE


class IngestionError(RegsAssistantError):
    """Ingestion run produced nothing that can be indexed."""

    code = "ingestion_failure"


class UpstreamVisionError(RegsAssistantError):
    code = "upstream_vision_failure"
    fatal = False


class UpstreamSummarizationError(RegsAssistantError):
    code = "upstream_summarization_failure"
    fatal = False


class ExtractionError(RegsAssistantError):
    """Content of a single project document could not be produced."""

    code = "extraction_failure"
    fatal = False
