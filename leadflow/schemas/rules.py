"""Validation rule condition/action payloads stored as JSON on rules."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class RuleCondition(BaseModel):
    field: str = Field(min_length=1)
    operator: str = Field(min_length=1)
    value: Any = None


class RuleConditions(BaseModel):
    type: Literal["AND", "OR"] = "AND"
    rules: list[RuleCondition] = Field(default_factory=list)


class RulePassAction(BaseModel):
    message: str = "Validation passed"


class RuleFailAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Validation failed"
    suggested_action: str | None = Field(default=None, alias="suggestedAction")
    action_url: str | None = Field(default=None, alias="actionUrl")


class RuleActions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    on_pass: RulePassAction = Field(default_factory=RulePassAction, alias="onPass")
    on_fail: RuleFailAction = Field(default_factory=RuleFailAction, alias="onFail")
