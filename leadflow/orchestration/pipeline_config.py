"""Frozen snapshots of tenant pipeline configuration.

Cached machines outlive the session that loaded them, so they hold these
plain values instead of ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from leadflow.models import PipelineStage, SLAConfig, ValidationRule


@dataclass(frozen=True)
class StageConfig:
    id: str
    name: str
    order: int
    color: str
    description: str | None = None
    is_active: bool = True
    is_initial_state: bool = False
    is_final_state: bool = False
    allowed_transitions: tuple[str, ...] = ()

    @classmethod
    def from_model(cls, stage: PipelineStage) -> "StageConfig":
        return cls(
            id=stage.id,
            name=stage.name,
            order=stage.order,
            color=stage.color,
            description=stage.description,
            is_active=stage.is_active,
            is_initial_state=stage.is_initial_state,
            is_final_state=stage.is_final_state,
            allowed_transitions=tuple(stage.allowed_transitions or ()),
        )


@dataclass(frozen=True)
class ValidationRuleConfig:
    id: str
    name: str
    conditions: dict[str, Any]
    actions: dict[str, Any]
    severity: str = "error"
    enabled: bool = True
    order: int = 0
    description: str | None = None
    pipeline_stage_id: str | None = None

    @classmethod
    def from_model(cls, rule: ValidationRule) -> "ValidationRuleConfig":
        return cls(
            id=rule.id,
            name=rule.name,
            conditions=dict(rule.conditions or {}),
            actions=dict(rule.actions or {}),
            severity=rule.severity,
            enabled=rule.enabled,
            order=rule.order,
            description=rule.description,
            pipeline_stage_id=rule.pipeline_stage_id,
        )

    def applies_to(self, stage_id: str) -> bool:
        return self.pipeline_stage_id is None or self.pipeline_stage_id == stage_id


@dataclass(frozen=True)
class SLAConfigSpec:
    id: str
    name: str
    pipeline_stage_id: str
    timeframe: int
    time_unit: str
    enabled: bool = True
    escalation_rules: dict[str, Any] = field(default_factory=dict)
    notification_rules: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_model(cls, sla: SLAConfig) -> "SLAConfigSpec":
        return cls(
            id=sla.id,
            name=sla.name,
            pipeline_stage_id=sla.pipeline_stage_id,
            timeframe=sla.timeframe,
            time_unit=sla.time_unit,
            enabled=sla.enabled,
            escalation_rules=dict(sla.escalation_rules or {}),
            notification_rules=dict(sla.notification_rules or {}),
        )
