"""
Tests for the remote gateway.

HTTP is exercised through httpx.MockTransport; nothing leaves the process.
"""

import json
from datetime import date

import httpx
import pytest

from focus.integrations.gateway import (
    GatewayError,
    RemoteGateway,
    table_for_kind,
)

BASE = "https://store.example.co"


def make_gateway(handler) -> tuple[RemoteGateway, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(record))
    return RemoteGateway(BASE, api_key="secret", client=client), seen


def ok_rows(rows):
    return lambda request: httpx.Response(200, json=rows)


class TestReads:
    def test_blocks_in_range_query(self):
        gw, seen = make_gateway(ok_rows([{"id": "a"}]))
        rows = gw.fetch_blocks_in_range(42, date(2025, 5, 28), date(2025, 6, 11))
        assert rows == [{"id": "a"}]

        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/time_blocks"
        assert request.url.params.get_list("user_id") == ["eq.42"]
        assert request.url.params.get_list("date") == ["gte.2025-05-28", "lte.2025-06-11"]

    def test_recurring_query(self):
        gw, seen = make_gateway(ok_rows([]))
        gw.fetch_recurring_blocks(42)
        params = seen[0].url.params
        assert params["user_id"] == "eq.42"
        assert params["is_recurring"] == "eq.true"

    def test_meeting_query_includes_attendees(self):
        gw, seen = make_gateway(ok_rows([]))
        gw.fetch_meetings(42, date(2025, 5, 5), date(2025, 9, 2))
        request = seen[0]
        assert request.url.path == "/rest/v1/projects_meeting"
        assert request.url.params["or"] == "(user_id.eq.42,attendee_ids.cs.{42})"
        assert request.url.params.get_list("date") == ["gte.2025-05-05", "lte.2025-09-02"]

    def test_todos_and_skips_queries(self):
        gw, seen = make_gateway(ok_rows([]))
        gw.fetch_todos(42)
        gw.fetch_skips(42)
        assert [r.url.path for r in seen] == ["/rest/v1/personal_todos", "/rest/v1/focus_skipped_tasks"]
        assert all(r.url.params["user_id"] == "eq.42" for r in seen)

    def test_auth_headers(self):
        gw, seen = make_gateway(ok_rows([]))
        gw.fetch_todos(42)
        headers = seen[0].headers
        assert headers["apikey"] == "secret"
        assert headers["authorization"] == "Bearer secret"

    def test_http_error_raises_gateway_error(self):
        gw, _ = make_gateway(lambda r: httpx.Response(503, text="down"))
        with pytest.raises(GatewayError) as exc:
            gw.fetch_todos(42)
        assert exc.value.status == 503
        assert exc.value.table == "personal_todos"
        assert exc.value.method == "GET"

    def test_non_list_body_raises(self):
        gw, _ = make_gateway(ok_rows({"message": "nope"}))
        with pytest.raises(GatewayError, match="expected a JSON array"):
            gw.fetch_todos(42)

    def test_invalid_json_raises(self):
        gw, _ = make_gateway(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(GatewayError, match="invalid JSON"):
            gw.fetch_todos(42)

    def test_transport_error_raises(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        gw, _ = make_gateway(boom)
        with pytest.raises(GatewayError) as exc:
            gw.fetch_skips(42)
        assert exc.value.status is None


class TestWrites:
    def test_patch_single_field(self):
        gw, seen = make_gateway(lambda r: httpx.Response(204))
        gw.update("personal_todos", "t1", {"completed": True})
        request = seen[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.t1"
        assert request.headers["prefer"] == "return=minimal"
        assert json.loads(request.content) == {"completed": True}

    def test_post_full_record(self):
        gw, seen = make_gateway(lambda r: httpx.Response(201))
        gw.create("time_blocks", {"id": "x", "title": "New"})
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"id": "x", "title": "New"}

    def test_delete_by_id(self):
        gw, seen = make_gateway(lambda r: httpx.Response(204))
        gw.delete("time_blocks", "blk-1")
        assert seen[0].method == "DELETE"
        assert seen[0].url.params["id"] == "eq.blk-1"

    def test_delete_skip_by_user_and_task(self):
        gw, seen = make_gateway(lambda r: httpx.Response(204))
        gw.delete_skip(42, "todo-t1")
        params = seen[0].url.params
        assert seen[0].url.path == "/rest/v1/focus_skipped_tasks"
        assert params["user_id"] == "eq.42"
        assert params["task_id"] == "eq.todo-t1"

    def test_unfiltered_delete_refused(self):
        gw, seen = make_gateway(lambda r: httpx.Response(204))
        with pytest.raises(ValueError):
            gw.delete_where("time_blocks", [])
        assert seen == []

    def test_write_failure(self):
        gw, _ = make_gateway(lambda r: httpx.Response(409, text="conflict"))
        with pytest.raises(GatewayError) as exc:
            gw.create("time_blocks", {"id": "x"})
        assert exc.value.status == 409
        assert "conflict" in str(exc.value)


class TestRouting:
    def test_table_for_kind(self):
        assert table_for_kind("timeblock") == "time_blocks"
        assert table_for_kind("todo") == "personal_todos"
        assert table_for_kind("meeting") == "projects_meeting"

    def test_unknown_kind(self):
        with pytest.raises(KeyError):
            table_for_kind("journal")
