"""In-memory stand-ins for the OpenAI-compatible and Supabase clients."""

from itertools import count
from types import SimpleNamespace
from typing import Any, Dict, List


# =============================================================================
# Chat completions
# =============================================================================


def chat_response(text: str, citations: List[str] | None = None) -> SimpleNamespace:
    """Build an object shaped like an OpenAI chat completion."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        citations=citations or [],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=20, total_tokens=30),
    )


class FakeChatClient:
    """Returns queued responses in order; an Exception in the queue is raised."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if not self.responses:
            raise RuntimeError("No fake response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


# =============================================================================
# Supabase tables
# =============================================================================


class _Query:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.payload: Any = None
        self.filters: List[tuple[str, Any]] = []
        self.order_column: str | None = None
        self.order_desc = False
        self.limit_count: int | None = None

    def select(self, *_columns: str) -> "_Query":
        self.action = "select"
        return self

    def insert(self, row: Dict[str, Any]) -> "_Query":
        self.action = "insert"
        self.payload = row
        return self

    def update(self, patch: Dict[str, Any]) -> "_Query":
        self.action = "update"
        self.payload = patch
        return self

    def eq(self, column: str, value: Any) -> "_Query":
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "_Query":
        self.order_column = column
        self.order_desc = desc
        return self

    def limit(self, n: int) -> "_Query":
        self.limit_count = n
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(str(row.get(col)) == str(val) for col, val in self.filters)

    def execute(self) -> SimpleNamespace:
        if self.db.fail:
            raise RuntimeError("database unavailable")

        rows = self.db.tables.setdefault(self.table_name, [])
        if self.action == "insert":
            row = {"id": str(next(self.db.ids)), **self.payload}
            rows.append(row)
            return SimpleNamespace(data=[row])

        matched = [r for r in rows if self._matches(r)]
        if self.action == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=matched)

        if self.order_column:
            matched.sort(key=lambda r: str(r.get(self.order_column)), reverse=self.order_desc)
        if self.limit_count is not None:
            matched = matched[: self.limit_count]
        return SimpleNamespace(data=[dict(r) for r in matched])


class FakeSupabase:
    """Just enough of ``supabase.Client`` for table CRUD."""

    def __init__(self, fail: bool = False):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.ids = count(1)
        self.fail = fail

    def table(self, name: str) -> _Query:
        return _Query(self, name)
