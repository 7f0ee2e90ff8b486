"""Transition request/option schemas for route handlers and UIs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from leadflow.schemas.teams import TeamSummary

DEFAULT_TRANSITION_EVENT = "MANUAL_TRANSITION"
SYSTEM_ACTOR = "system"


class StateTransitionRequest(BaseModel):
    lead_id: str = Field(min_length=1)
    target_stage_id: str = Field(min_length=1)
    event: str = Field(default=DEFAULT_TRANSITION_EVENT, min_length=1, max_length=150)
    context: dict[str, Any] | None = None
    triggered_by: str = Field(min_length=1, max_length=120)


class TransitionOption(BaseModel):
    stage_id: str
    stage_name: str | None = None
    stage_color: str | None = None
    assigned_teams: list[TeamSummary] = Field(default_factory=list)
    can_transition: bool = True
    message: str = ""
