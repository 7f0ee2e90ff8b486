"""Team snapshots embedded in transition metadata and API responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TeamMemberSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    name: str
    email: str | None = None
    role: str | None = None


class TeamSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    pipeline_stage_ids: list[str] = Field(default_factory=list)
    members: list[TeamMemberSummary] = Field(default_factory=list, validation_alias="active_members")

    @field_validator("pipeline_stage_ids", mode="before")
    @classmethod
    def _default_stage_ids(cls, value):
        return list(value or [])
