"""Shared fixtures: an in-memory remote store behind httpx.MockTransport."""

import json
import re
import time
from typing import Any, Callable

import httpx
import pytest

from openhedge.app import create_app
from openhedge.config import Config


class ManualScheduler:
    """Scheduler whose tasks only run when the test says so."""

    class Handle:
        def __init__(self, scheduler: "ManualScheduler", delay: float, fn: Callable) -> None:
            self.scheduler = scheduler
            self.delay = delay
            self.fn = fn
            self.cancelled = False

        def cancel(self) -> None:
            self.cancelled = True

    def __init__(self) -> None:
        self.handles: list[ManualScheduler.Handle] = []

    def call_later(self, delay: float, fn: Callable) -> "ManualScheduler.Handle":
        handle = self.Handle(self, delay, fn)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list["ManualScheduler.Handle"]:
        return [h for h in self.handles if not h.cancelled]

    def run_all(self) -> int:
        """Run every pending task (including ones scheduled while running)."""
        ran = 0
        while self.pending:
            handles, self.handles = self.pending, []
            for h in handles:
                h.fn()
                ran += 1
        return ran

    def join(self, timeout: float | None = None) -> None:
        self.run_all()


def _like(pattern: str) -> re.Pattern:
    parts = [re.escape(p) for p in pattern.split("*")]
    return re.compile(".*".join(parts), re.IGNORECASE | re.DOTALL)


def _split_top(expr: str) -> list[str]:
    return [p for p in expr.split(",") if p]


def _matches(row: dict, column: str, op_value: str) -> bool:
    op, _, value = op_value.partition(".")
    actual = row.get(column)
    if op == "eq":
        return actual is not None and str(actual) == value
    if op == "ilike":
        return actual is not None and bool(_like(value).fullmatch(str(actual)))
    if op == "in":
        values = [v.strip().strip('"') for v in value.strip("()").split(",")]
        return str(actual) in values
    raise AssertionError(f"unsupported filter {op_value}")


class FakeBackend:
    """Just enough PostgREST and GoTrue to drive the clients.

    Tables are lists of dicts. Rows are returned whole (``select`` is
    recorded, not applied), so embedded resources are stored pre-joined.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.rpcs: dict[str, Callable[[dict], Any]] = {}
        self.failures: dict[tuple[str, str], int] = {}
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.user = {"id": "user-1", "email": "pm@example.com"}

    # -- setup -------------------------------------------------------------

    def table(self, name: str, rows: list[dict] | None = None) -> list[dict]:
        if rows is not None:
            self.tables[name] = [dict(r) for r in rows]
        return self.tables.setdefault(name, [])

    def fail(self, method: str, table: str, status: int = 500) -> None:
        self.failures[(method, table)] = status

    def requests_to(self, table: str, method: str = "GET") -> list[httpx.Request]:
        path = f"/rest/v1/{table}"
        return [r for r in self.requests if r.url.path == path and r.method == method]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # -- dispatch ----------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])
        if path.startswith("/rest/v1/rpc/"):
            fn = path[len("/rest/v1/rpc/"):]
            if ("POST", f"rpc/{fn}") in self.failures:
                return httpx.Response(self.failures[("POST", f"rpc/{fn}")], json={"message": "rpc failed"})
            body = json.loads(request.content or b"{}")
            return httpx.Response(200, json=self.rpcs[fn](body))
        if path.startswith("/rest/v1/"):
            return self._rest(request, path[len("/rest/v1/"):])
        return httpx.Response(404)

    def _filter(self, rows: list[dict], params: list[tuple[str, str]]) -> list[dict]:
        for key, value in params:
            if key in ("select", "order", "limit", "offset"):
                continue
            if key == "or":
                terms = []
                for term in _split_top(value.strip("()")):
                    column, _, op_value = term.partition(".")
                    terms.append((column, op_value))
                rows = [r for r in rows if any(_matches(r, c, ov) for c, ov in terms)]
            else:
                rows = [r for r in rows if _matches(r, key, value)]
        return rows

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        status = self.failures.get((request.method, table))
        if status:
            return httpx.Response(status, json={"message": f"{table} unavailable", "code": "XX000"})

        params = list(request.url.params.multi_items())
        rows = self.tables.setdefault(table, [])

        if request.method == "POST":
            body = json.loads(request.content)
            new = body if isinstance(body, list) else [body]
            rows.extend(dict(r) for r in new)
            return httpx.Response(201, json=new)

        matched = self._filter(rows, params)

        if request.method == "PATCH":
            body = json.loads(request.content)
            for r in matched:
                r.update(body)
            return httpx.Response(200, json=matched)

        lookup = dict(params)
        if "order" in lookup:
            for clause in reversed(lookup["order"].split(",")):
                column, _, direction = clause.partition(".")
                matched = sorted(
                    matched,
                    key=lambda r: (r.get(column) is not None, r.get(column)),
                    reverse=direction == "desc",
                )
        offset = int(lookup.get("offset", 0))
        limit = int(lookup["limit"]) if "limit" in lookup else None
        matched = matched[offset: offset + limit if limit is not None else None]
        return httpx.Response(200, json=matched)

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        if endpoint == "logout":
            return httpx.Response(204)
        if endpoint == "token":
            if self.token_status >= 400:
                return httpx.Response(self.token_status, json={"error_description": "invalid grant"})
            return httpx.Response(
                200,
                json={
                    "access_token": f"access-{len(self.requests)}",
                    "refresh_token": "refresh-token",
                    "expires_at": int(time.time()) + 3600,
                    "user": self.user,
                },
            )
        return httpx.Response(404)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        base_dir=tmp_path / "home",
        supabase_url="http://supabase.test",
        supabase_key="anon-key",
        alpha_vantage_key="demo",
    )


@pytest.fixture
def market_payloads() -> dict[str, dict]:
    """Alpha Vantage responses keyed by function name."""
    return {}


@pytest.fixture
def app(config, backend, scheduler, market_payloads):
    def market(request: httpx.Request) -> httpx.Response:
        function = request.url.params["function"]
        return httpx.Response(200, json=market_payloads.get(function, {"Note": "rate limited"}))

    application = create_app(
        config,
        transport=backend.transport,
        market_transport=httpx.MockTransport(market),
        scheduler=scheduler,
    )
    yield application
    application.close()


@pytest.fixture
def signed_in(app, backend):
    """Sign the app in through the OAuth code exchange."""
    backend.table("profiles")
    _, verifier = app.session.begin_sign_in(app.config.oauth_redirect_url)
    return app.session.complete_sign_in("auth-code", verifier)
