"""Shared test fixtures for xdray tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from xdray.formats.capture_record import (
    BodyResponse,
    CapturedRequestRecord,
    CommandMappingRule,
    Header,
)

PORTAL = "https://security.microsoft.com/apiproxy"


def make_rule(
    template: str, cmdlet: str, parameters: dict[str, str] | None = None
) -> CommandMappingRule:
    """Build a rule the way it appears in the JSON table."""
    data: dict[str, Any] = {"ApiUri": template, "Cmdlet": cmdlet}
    if parameters is not None:
        data["Parameters"] = parameters
    return CommandMappingRule.model_validate(data)


def make_record(
    command_name: str = "Invoke-XdrRestMethod",
    method: str = "GET",
    url: str = f"{PORTAL}/mtp/things",
    body: Any = None,
    resolved_arguments: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> CapturedRequestRecord:
    """Helper to create a CapturedRequestRecord with minimal boilerplate."""
    return CapturedRequestRecord(
        method=method,
        url=url,
        headers=headers or {},
        command_name=command_name,
        resolved_arguments=resolved_arguments,
        body=body,
        observed_at="2026-01-01T00:00:00+00:00",
    )


def make_har_entry(
    method: str,
    url: str,
    started: str = "2026-01-01T00:00:00.000Z",
    body: str | None = None,
    params: list[dict[str, str]] | None = None,
    headers: list[Header] | None = None,
    cookies: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    """Helper to create a HAR entry dict."""
    request: dict[str, Any] = {
        "method": method,
        "url": url,
        "headers": [h.model_dump() for h in headers or []],
        "cookies": cookies or [],
    }
    if body is not None or params is not None:
        post_data: dict[str, Any] = {"mimeType": "application/json"}
        if body is not None:
            post_data["text"] = body
        if params is not None:
            post_data["mimeType"] = "application/x-www-form-urlencoded"
            post_data["params"] = params
        request["postData"] = post_data
    return {
        "startedDateTime": started,
        "request": request,
        "response": {"status": 200, "headers": [], "content": {}},
    }


class StaticBodySource:
    """Body source returning a fixed response, recording the URLs asked for."""

    def __init__(self, response: BodyResponse) -> None:
        self.response = response
        self.urls: list[str] = []

    async def fetch(self, url: str) -> BodyResponse:
        self.urls.append(url)
        return self.response


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sample_rules() -> list[CommandMappingRule]:
    return [
        make_rule(f"{PORTAL}/mtp/devices/{{id}}/tags", "Set-DeviceTag", {"Tags": "body.Tags"}),
        make_rule(f"{PORTAL}/mtp/devices/{{id}}", "Set-Device", {"Id": "body.id"}),
        make_rule(f"{PORTAL}/mtp/devices", "Get-Device"),
        make_rule(
            f"{PORTAL}/mtp/hunting/query",
            "Invoke-HuntingQuery",
            {
                "Query": "body.QueryText",
                "Tenant": "header:X-Tid",
                "Source": "fixed:Portal",
            },
        ),
    ]


@pytest.fixture
def rules_file(tmp_path: Path, sample_rules: list[CommandMappingRule]) -> Path:
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps([r.model_dump(by_alias=True, exclude_none=True) for r in sample_rules])
    )
    return path
