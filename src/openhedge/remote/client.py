"""HTTP client for the remote relational store (PostgREST dialect)."""

import logging
from typing import Any

import httpx

from ..config import Config

log = logging.getLogger(__name__)

# Characters that would break a PostgREST logic tree like or=(a.ilike.x,b.ilike.y)
_RESERVED = str.maketrans("", "", ',()"\\')


class RemoteError(Exception):
    """A query against the remote store failed."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _quote(value: Any) -> str:
    text = str(value).replace('"', '\\"')
    return f'"{text}"'


def _like_pattern(term: str) -> str:
    """Turn a user term into a substring pattern (PostgREST uses * for %)."""
    return f"*{term.translate(_RESERVED).replace('*', '')}*"


class Query:
    """A chainable read or write against one table.

    Mirrors the fluent builder of the hosted client libraries:

        client.from_("funds").select("id, company_name").eq("company_name", name)
              .order("report_date", ascending=False).range(0, 49).execute()
    """

    def __init__(self, client: "RestClient", table: str) -> None:
        self._client = client
        self.table = table
        self.method = "GET"
        self.columns = "*"
        self.filters: list[tuple[str, str]] = []
        self.orders: list[str] = []
        self.limit_count: int | None = None
        self.offset: int | None = None
        self.body: Any = None
        self._single = False
        self._maybe_single = False

    # -- shape -------------------------------------------------------------

    def select(self, columns: str = "*") -> "Query":
        # PostgREST rejects whitespace inside embedded resource selects
        self.columns = "".join(columns.split())
        return self

    def insert(self, row: dict | list[dict]) -> "Query":
        self.method = "POST"
        self.body = row
        return self

    def update(self, values: dict) -> "Query":
        self.method = "PATCH"
        self.body = values
        return self

    # -- filters -----------------------------------------------------------

    def eq(self, column: str, value: Any) -> "Query":
        self.filters.append((column, f"eq.{value}"))
        return self

    def ilike(self, column: str, pattern: str) -> "Query":
        """Case-insensitive LIKE. ``%`` wildcards are accepted as in SQL."""
        self.filters.append((column, f"ilike.{pattern.replace('%', '*')}"))
        return self

    def in_(self, column: str, values: list[Any]) -> "Query":
        joined = ",".join(_quote(v) for v in values)
        self.filters.append((column, f"in.({joined})"))
        return self

    def or_(self, expression: str) -> "Query":
        self.filters.append(("or", f"({expression})"))
        return self

    def ilike_any(self, columns: list[str], term: str) -> "Query":
        """Substring match of ``term`` against any of ``columns``."""
        pattern = _like_pattern(term)
        return self.or_(",".join(f"{c}.ilike.{pattern}" for c in columns))

    # -- ordering and paging ----------------------------------------------

    def order(self, column: str, ascending: bool = True) -> "Query":
        self.orders.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def limit(self, count: int) -> "Query":
        self.limit_count = count
        return self

    def range(self, start: int, end: int) -> "Query":
        """Inclusive row range, as used for page-based pagination."""
        self.offset = start
        self.limit_count = end - start + 1
        return self

    def single(self) -> "Query":
        self._single = True
        return self

    def maybe_single(self) -> "Query":
        self._maybe_single = True
        return self

    # -- execution ---------------------------------------------------------

    def params(self) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if self.method == "GET" or self.body is not None:
            params.append(("select", self.columns))
        params.extend(self.filters)
        if self.orders:
            params.append(("order", ",".join(self.orders)))
        if self.limit_count is not None:
            params.append(("limit", str(self.limit_count)))
        if self.offset is not None:
            params.append(("offset", str(self.offset)))
        return params

    def execute(self) -> Any:
        headers = {}
        if self.method in ("POST", "PATCH"):
            headers["Prefer"] = "return=representation"

        data = self._client.request(
            self.method, f"/{self.table}", params=self.params(), json=self.body, headers=headers
        )

        if self._single or self._maybe_single:
            rows = data or []
            if len(rows) > 1 or (self._single and not rows):
                raise RemoteError(
                    f"Expected a single row from {self.table}, got {len(rows)}",
                    status_code=406,
                    code="PGRST116",
                )
            return rows[0] if rows else None
        return data


class RestClient:
    """HTTP client for the remote store's table and RPC endpoints."""

    def __init__(self, config: Config, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._api_key = config.supabase_key
        self._client = httpx.Client(
            base_url=f"{config.supabase_url}/rest/v1",
            headers={
                "apikey": config.supabase_key,
                "Authorization": f"Bearer {config.supabase_key}",
                "Accept": "application/json",
            },
            timeout=config.http_timeout,
            transport=transport,
        )

    def set_access_token(self, token: str | None) -> None:
        """Authenticate subsequent requests as the signed-in user (or anon)."""
        self._client.headers["Authorization"] = f"Bearer {token or self._api_key}"

    def from_(self, table: str) -> Query:
        return Query(self, table)

    def rpc(self, function: str, params: dict | None = None) -> Any:
        """Call a server-side stored procedure."""
        return self.request("POST", f"/rpc/{function}", json=params or {})

    def request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            RemoteError: On transport failures and HTTP error statuses
        """
        log.debug("%s %s %s", method, path, params)
        try:
            response = self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = payload.get("message") if isinstance(payload, dict) else None
            code = payload.get("code") if isinstance(payload, dict) else None
            raise RemoteError(
                message or f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                code=code,
            )

        if not response.content:
            return None
        return response.json()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "RestClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
