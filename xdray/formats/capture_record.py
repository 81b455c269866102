"""Pydantic models for captured requests, mapping rules and channel messages."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

FALLBACK_COMMAND = "Invoke-XdrRestMethod"


class Header(BaseModel):
    name: str
    value: str


class PendingBody(BaseModel):
    """A request body captured before send, waiting for its completion event."""

    url: str
    body: str | None = None
    method: str
    captured_at: float
    retrieved: bool = False


class CommandMappingRule(BaseModel):
    """One row of the static rule table: URL template -> cmdlet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    uri_template: str = Field(alias="ApiUri")
    command_name: str = Field(alias="Cmdlet")
    parameter_specs: dict[str, str] | None = Field(default=None, alias="Parameters")


class FinishedRequest(BaseModel):
    """The request-finished signal: metadata only, no request body."""

    url: str
    method: str
    headers: list[Header] = Field(default_factory=list)


class CapturedRequestRecord(BaseModel):
    """A fully correlated request, ready for rendering.

    Header keys are stored lower-cased; use ``header()`` for lookups.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    command_name: str = FALLBACK_COMMAND
    resolved_arguments: dict[str, Any] | None = None
    body: Any = None
    observed_at: str
    body_error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.command_name == FALLBACK_COMMAND

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


class BodyRequest(BaseModel):
    id: str
    type: Literal["GET_REQUEST_BODY"] = "GET_REQUEST_BODY"
    url: str


class BodyResponse(BaseModel):
    id: str
    success: bool
    body: str | None = None
    method: str | None = None
    error: str | None = None
