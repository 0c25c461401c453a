"""Run log for the regulations index refresh (building_regs_updates table)."""

from datetime import datetime, timezone  # noqa: UP035
from typing import Any

from supabase import Client

from app.core.logging import get_logger
from app.core.schemas_regulations import RefreshResult, RegulationUpdateRecord

logger = get_logger(__name__)

TABLE = "building_regs_updates"


def _utc_now_iso() -> str:
    """Get current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()  # noqa: UP017


class RegulationUpdateLog:
    """Durable record of each refresh run.

    Writes are best-effort: a failure to log is itself logged and never
    replaces the outcome of the run being recorded.
    """

    def __init__(self, client: Client):
        self._client = client

    def _insert(self, record: dict[str, Any]) -> None:
        try:
            self._client.table(TABLE).insert(record).execute()
        except Exception as e:
            logger.error(f"Error logging regulations update: {e}")

    def record_completed(self, result: RefreshResult) -> None:
        self._insert(
            {
                "update_date": _utc_now_iso(),
                "pages_crawled": result.pages_crawled,
                "chunks_processed": result.chunks_processed,
                "vectors_created": result.vectors_created,
                "status": "completed",
            }
        )

    def record_failed(self, error_message: str) -> None:
        self._insert(
            {
                "update_date": _utc_now_iso(),
                "status": "failed",
                "error_message": error_message,
            }
        )

    def list_recent(self, limit: int = 10) -> list[RegulationUpdateRecord]:
        """
        Most recent runs, newest first.

        Raises:
            Exception: If the query fails
        """
        response = (
            self._client.table(TABLE)
            .select("id, update_date, pages_crawled, chunks_processed, vectors_created, status, error_message")
            .order("update_date", desc=True)
            .limit(limit)
            .execute()
        )
        return [RegulationUpdateRecord.model_validate(row) for row in response.data or []]
