"""Pydantic models for the two nango.yaml dialects.

v1 keys operations directly under each integration::

    integrations:
      github:
        issues:
          runs: every half hour
          returns: [GithubIssue]

v2 groups operations under ``syncs`` and ``actions``::

    integrations:
      github:
        syncs:
          issues:
            runs: every half hour
            endpoint: GET /issues
            output: GithubIssue
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

StrOrList = str | list[str]


def _none_as_empty(value: Any) -> Any:
    return {} if value is None else value


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator("version", mode="before", check_fields=False)
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        # YAML reads `version: 1.0` as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class V1Operation(_StrictModel):
    """An operation declared directly under a v1 integration."""

    type: Literal["sync", "action"] = Field(default="sync")
    runs: str | None = None
    returns: StrOrList | None = None
    input: str | None = None
    track_deletes: bool = False
    auto_start: bool = True
    description: str | None = None
    scopes: StrOrList | None = None
    version: str | None = None
    webhook_subscriptions: StrOrList | None = Field(
        default=None,
        alias="webhook-subscriptions",
    )

    @model_validator(mode="after")
    def _webhooks_only_on_syncs(self) -> V1Operation:
        if self.type == "action" and self.webhook_subscriptions:
            msg = "webhook-subscriptions are not allowed on an action"
            raise ValueError(msg)
        return self


class V2Sync(_StrictModel):
    """A sync declared under ``syncs:`` in a v2 integration."""

    type: Literal["sync"] = Field(default="sync")
    runs: str | None = None
    endpoint: StrOrList = Field(description="Endpoint(s) exposing the synced records")
    output: StrOrList | None = None
    input: str | None = None
    sync_type: Literal["full", "incremental"] | None = None
    track_deletes: bool = False
    auto_start: bool = True
    description: str | None = None
    scopes: StrOrList | None = None
    version: str | None = None
    webhook_subscriptions: StrOrList | None = Field(
        default=None,
        alias="webhook-subscriptions",
    )

    @field_validator("endpoint")
    @classmethod
    def _endpoint_not_empty(cls, value: StrOrList) -> StrOrList:
        endpoints = [value] if isinstance(value, str) else value
        if not endpoints or not all(endpoint.strip() for endpoint in endpoints):
            msg = "a sync must declare at least one non-empty endpoint"
            raise ValueError(msg)
        return value


class V2Action(_StrictModel):
    """An action declared under ``actions:`` in a v2 integration."""

    type: Literal["action"] = Field(default="action")
    endpoint: StrOrList | None = None
    output: StrOrList | None = None
    input: str | None = None
    description: str | None = None
    scopes: StrOrList | None = None
    version: str | None = None

    @model_validator(mode="after")
    def _endpoint_required_with_io(self) -> V2Action:
        if (self.output or self.input) and not self.endpoint:
            msg = "an action declaring input or output must declare an endpoint"
            raise ValueError(msg)
        return self


class V2Integration(_StrictModel):
    syncs: dict[str, V2Sync] = Field(default_factory=dict)
    actions: dict[str, V2Action] = Field(default_factory=dict)

    @field_validator("syncs", "actions", mode="before")
    @classmethod
    def _empty_section(cls, value: Any) -> Any:
        return _none_as_empty(value)


class DialectV1(_StrictModel):
    integrations: dict[str, dict[str, V1Operation]]
    models: dict[str, Any] = Field(default_factory=dict)

    @field_validator("models", mode="before")
    @classmethod
    def _empty_models(cls, value: Any) -> Any:
        return _none_as_empty(value)

    @field_validator("integrations", mode="before")
    @classmethod
    def _empty_integrations(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {name: _none_as_empty(body) for name, body in value.items()}
        return value


class DialectV2(_StrictModel):
    integrations: dict[str, V2Integration]
    models: dict[str, Any] = Field(default_factory=dict)

    @field_validator("models", mode="before")
    @classmethod
    def _empty_models(cls, value: Any) -> Any:
        return _none_as_empty(value)

    @field_validator("integrations", mode="before")
    @classmethod
    def _empty_integrations(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {name: _none_as_empty(body) for name, body in value.items()}
        return value


RawDocument = DialectV1 | DialectV2


__all__ = [
    "DialectV1",
    "DialectV2",
    "RawDocument",
    "V1Operation",
    "V2Action",
    "V2Integration",
    "V2Sync",
]
