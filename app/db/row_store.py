"""Thin CRUD layer over Supabase tables.

Only insert, select and update are used. No transactions, no joins.
"""

from typing import Any

from supabase import Client

from app.core.errors import PersistenceFailed
from app.core.logging import get_logger

logger = get_logger(__name__)

REPORTS_TABLE = "assessment_reports"
FEEDBACK_TABLE = "report_feedback"


class RowStore:
    """Named-collection CRUD. Every failure surfaces as ``PersistenceFailed``."""

    def __init__(self, client: Client | None):
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _require_client(self) -> Client:
        if self.client is None:
            raise PersistenceFailed("Row store is not configured")
        return self.client

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert one row.

        Args:
            table: Table name
            row: Column values

        Returns:
            The inserted row as returned by the store

        Raises:
            PersistenceFailed: If the store is unconfigured or the write fails
        """
        client = self._require_client()
        try:
            response = client.table(table).insert(row).execute()
        except Exception as e:
            raise PersistenceFailed(f"Insert into {table} failed: {e}") from e

        if not response.data:
            raise PersistenceFailed(f"Insert into {table} returned no row")
        logger.debug(f"Inserted row into {table}", extra={"table": table})
        return response.data[0]

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """Equality-filtered select. Newest first when ``order_by`` is given."""
        client = self._require_client()
        try:
            query = client.table(table).select("*")
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            if order_by:
                query = query.order(order_by, desc=True)
            if limit:
                query = query.limit(limit)
            response = query.execute()
        except Exception as e:
            raise PersistenceFailed(f"Select from {table} failed: {e}") from e
        return response.data or []

    def update(
        self, table: str, filters: dict[str, Any], patch: dict[str, Any]
    ) -> list[dict[str, Any]]:
        client = self._require_client()
        if not filters:
            raise PersistenceFailed(f"Refusing unfiltered update on {table}")
        try:
            query = client.table(table).update(patch)
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.execute()
        except Exception as e:
            raise PersistenceFailed(f"Update on {table} failed: {e}") from e
        return response.data or []
