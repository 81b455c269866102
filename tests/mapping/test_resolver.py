"""Tests for cmdlet argument resolution."""

from __future__ import annotations

from typing import Any

from xdray.mapping.resolver import (
    argument_name,
    compose_request,
    infer_arguments,
    resolve_arguments,
    resolve_source,
)
from tests.conftest import PORTAL, make_rule


def _request(
    url: str = f"{PORTAL}/mtp/devices/42",
    body: Any = None,
    headers: dict[str, str] | None = None,
    method: str = "PUT",
) -> dict[str, Any]:
    return compose_request(method, url, headers or {}, body)


class TestResolveSource:
    def test_fixed_literal(self) -> None:
        assert resolve_source("fixed:Endpoint", _request()) == "Endpoint"

    def test_fixed_keeps_colons(self) -> None:
        assert resolve_source("fixed:a:b", _request()) == "a:b"

    def test_header_is_case_insensitive(self) -> None:
        request = _request(headers={"X-Tid": "tenant-1"})
        assert resolve_source("header:x-TID", request) == "tenant-1"

    def test_missing_header(self) -> None:
        assert resolve_source("header:x-tid", _request()) is None

    def test_dotted_body_path(self) -> None:
        request = _request(body={"device": {"id": 42}})
        assert resolve_source("body.device.id", request) == 42

    def test_list_index(self) -> None:
        request = _request(body={"ids": ["a", "b"]})
        assert resolve_source("body.ids.1", request) == "b"
        assert resolve_source("body.ids.5", request) is None

    def test_top_level_fields(self) -> None:
        assert resolve_source("method", _request()) == "PUT"
        assert resolve_source("url", _request()) == f"{PORTAL}/mtp/devices/42"

    def test_missing_intermediate(self) -> None:
        assert resolve_source("body.device.id", _request(body={})) is None
        assert resolve_source("body.device.id", _request(body=None)) is None
        assert resolve_source("body.device.id", _request(body={"device": None})) is None

    def test_path_into_string_yields_nothing(self) -> None:
        assert resolve_source("url.pathname", _request()) is None
        assert resolve_source("body.id", _request(body="foo=bar")) is None


class TestInferArguments:
    def test_query_parameters(self) -> None:
        request = _request(url=f"{PORTAL}/mtp/alerts?pageSize=20&sortOrder=desc&empty=")
        assert infer_arguments(request) == {
            "PageSize": "20",
            "SortOrder": "desc",
            "Empty": "",
        }

    def test_body_scalars_only(self) -> None:
        body = {"name": "x", "count": 3, "enabled": False, "nested": {"a": 1}, "items": [1], "gone": None}
        assert infer_arguments(_request(body=body)) == {
            "Name": "x",
            "Count": 3,
            "Enabled": False,
        }

    def test_non_object_body_is_ignored(self) -> None:
        assert infer_arguments(_request(body=[{"a": 1}])) == {}
        assert infer_arguments(_request(body="raw text")) == {}

    def test_body_overrides_query_with_same_name(self) -> None:
        request = _request(url=f"{PORTAL}/mtp/alerts?id=1", body={"id": 2})
        assert infer_arguments(request) == {"Id": 2}


class TestResolveArguments:
    def test_explicit_specs(self) -> None:
        rule = make_rule(
            f"{PORTAL}/mtp/devices/{{id}}",
            "Set-Device",
            {"Id": "body.id", "Tenant": "header:x-tid", "Kind": "fixed:Endpoint", "Missing": "body.nope"},
        )
        request = _request(body={"id": 42}, headers={"X-TID": "t1"})

        assert resolve_arguments(rule, request) == {"Id": 42, "Tenant": "t1", "Kind": "Endpoint"}

    def test_explicit_specs_disable_heuristics(self) -> None:
        rule = make_rule(f"{PORTAL}/mtp/alerts", "Get-Alert", {"Top": "body.top"})
        request = _request(url=f"{PORTAL}/mtp/alerts?pageSize=20", body={"other": 1})

        assert resolve_arguments(rule, request) == {}

    def test_empty_specs_disable_heuristics(self) -> None:
        rule = make_rule(f"{PORTAL}/mtp/alerts", "Get-Alert", {})
        request = _request(url=f"{PORTAL}/mtp/alerts?pageSize=20")

        assert resolve_arguments(rule, request) == {}

    def test_absent_specs_use_heuristics(self) -> None:
        rule = make_rule(f"{PORTAL}/mtp/alerts", "Get-Alert")
        request = _request(url=f"{PORTAL}/mtp/alerts?pageSize=20", body={"title": "x"})

        assert resolve_arguments(rule, request) == {"PageSize": "20", "Title": "x"}

    def test_spec_order_is_kept(self) -> None:
        rule = make_rule(f"{PORTAL}/x", "Do-It", {"B": "fixed:2", "A": "fixed:1"})
        assert list(resolve_arguments(rule, _request())) == ["B", "A"]


def test_argument_name() -> None:
    assert argument_name("deviceId") == "DeviceId"
    assert argument_name("ID") == "ID"
    assert argument_name("") == ""


def test_compose_request_lowercases_headers() -> None:
    request = compose_request("GET", "https://x", {"X-Tid": "1"}, None)
    assert request == {"method": "GET", "url": "https://x", "headers": {"x-tid": "1"}, "body": None}
