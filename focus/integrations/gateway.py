"""
RemoteGateway - PostgREST-shaped access to the remote record store.

Handles fetching, creating, updating and deleting rows by table name via the
REST API. Uses httpx for HTTP calls. Filters are PostgREST query parameters
("column=op.value") and may repeat, so they travel as lists of pairs.
"""

import logging
from datetime import date

import httpx

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
DEFAULT_TIMEOUT = 30.0

TIME_BLOCKS_TABLE = "time_blocks"
MEETINGS_TABLE = "projects_meeting"
TODOS_TABLE = "personal_todos"
SKIPS_TABLE = "focus_skipped_tasks"

# Backing kind -> table that owns its writes
TABLE_BY_KIND = {
    "timeblock": TIME_BLOCKS_TABLE,
    "todo": TODOS_TABLE,
    "meeting": MEETINGS_TABLE,
}

Filters = list[tuple[str, str]]


class GatewayError(Exception):
    """A remote request failed in transport, status, or decoding."""

    def __init__(self, table: str, method: str, status: int | None = None, detail: str = ""):
        self.table = table
        self.method = method
        self.status = status
        self.detail = detail
        status_text = f" {status}" if status is not None else ""
        message = f"{method} {table} failed{status_text}"
        super().__init__(f"{message}: {detail}" if detail else message)


def table_for_kind(kind: str) -> str:
    """Route a backing kind to its table. Raises KeyError for unknown kinds."""
    return TABLE_BY_KIND[str(kind)]


def eq(column: str, value) -> tuple[str, str]:
    return column, f"eq.{_literal(value)}"


def gte(column: str, value) -> tuple[str, str]:
    return column, f"gte.{_literal(value)}"


def lte(column: str, value) -> tuple[str, str]:
    return column, f"lte.{_literal(value)}"


def _literal(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class RemoteGateway:
    """Read and write rows in the remote record store."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        """
        Initialize RemoteGateway.

        Args:
            base_url: Store root, e.g. "https://project.example.co"
            api_key: Sent as both the apikey header and a bearer token
            timeout: Per-request timeout in seconds
            client: Pre-built httpx client (tests pass a MockTransport one)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RemoteGateway":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _url(self, table: str) -> str:
        return f"{self.base_url}{REST_PATH}/{table}"

    def _headers(self, prefer_minimal: bool = False) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if prefer_minimal:
            headers["Prefer"] = "return=minimal"
        return headers

    def _request(
        self,
        method: str,
        table: str,
        params: Filters | None = None,
        json_data: dict | None = None,
        prefer_minimal: bool = False,
    ) -> httpx.Response:
        try:
            response = self._client.request(
                method,
                self._url(table),
                params=params,
                json=json_data,
                headers=self._headers(prefer_minimal),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise GatewayError(table, method, detail=str(e)) from e

        if response.status_code >= 400:
            raise GatewayError(table, method, response.status_code, response.text[:200])
        return response

    # -------------------------------------------------------------------------
    # Generic operations
    # -------------------------------------------------------------------------

    def fetch(self, table: str, filters: Filters | None = None) -> list[dict]:
        """
        Fetch rows matching PostgREST filters.

        Returns:
            Decoded rows

        Raises:
            GatewayError on transport failure, HTTP error, or a non-list body
        """
        params = [("select", "*")] + list(filters or [])
        response = self._request("GET", table, params=params)
        try:
            rows = response.json()
        except ValueError as e:
            raise GatewayError(table, "GET", response.status_code, f"invalid JSON: {e}") from e
        if not isinstance(rows, list):
            raise GatewayError(table, "GET", response.status_code, "expected a JSON array")
        logger.debug(f"Fetched {len(rows)} rows from {table}")
        return rows

    def create(self, table: str, row: dict) -> None:
        """Insert one full record."""
        self._request("POST", table, json_data=row, prefer_minimal=True)
        logger.info(f"Created row in {table}")

    def update(self, table: str, record_id, fields: dict) -> None:
        """Patch fields on one record by id."""
        self._request(
            "PATCH", table, params=[eq("id", record_id)], json_data=fields, prefer_minimal=True
        )
        logger.info(f"Updated {table} {record_id}: {sorted(fields)}")

    def delete(self, table: str, record_id) -> None:
        """Delete one record by id."""
        self.delete_where(table, [eq("id", record_id)])

    def delete_where(self, table: str, filters: Filters) -> None:
        """Delete every record matching filters. Refuses an empty filter."""
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        self._request("DELETE", table, params=list(filters), prefer_minimal=True)
        logger.info(f"Deleted from {table} where {filters}")

    # -------------------------------------------------------------------------
    # Source queries
    # -------------------------------------------------------------------------

    def fetch_blocks_in_range(self, user_id: int, start: date, end: date) -> list[dict]:
        return self.fetch(
            TIME_BLOCKS_TABLE, [eq("user_id", user_id), gte("date", start), lte("date", end)]
        )

    def fetch_recurring_blocks(self, user_id: int) -> list[dict]:
        return self.fetch(TIME_BLOCKS_TABLE, [eq("user_id", user_id), eq("is_recurring", True)])

    def fetch_meetings(self, user_id: int, start: date, end: date) -> list[dict]:
        """Meetings the user owns or attends. Access is re-checked client-side."""
        return self.fetch(
            MEETINGS_TABLE,
            [
                ("or", f"(user_id.eq.{user_id},attendee_ids.cs.{{{user_id}}})"),
                gte("date", start),
                lte("date", end),
            ],
        )

    def fetch_todos(self, user_id) -> list[dict]:
        return self.fetch(TODOS_TABLE, [eq("user_id", user_id)])

    def fetch_skips(self, user_id: int) -> list[dict]:
        return self.fetch(SKIPS_TABLE, [eq("user_id", user_id)])

    def delete_skip(self, user_id: int, task_id: str) -> None:
        self.delete_where(SKIPS_TABLE, [eq("user_id", user_id), eq("task_id", task_id)])
