"""Pipeline configuration service: stages, rules, SLAs and teams."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from leadflow.core.exceptions import ConfigurationError, NotFoundError
from leadflow.core.logging import LogContext, log_extra
from leadflow.models import PipelineStage, RuleSeverity, SLAConfig, Team, TeamMember, TimeUnit, ValidationRule
from leadflow.schemas.rules import RuleActions, RuleConditions
from leadflow.services.base_service import BaseService
from leadflow.services.state_machine_service import StateMachineService

logger = logging.getLogger(__name__)


class PipelineConfigService(BaseService):
    """Writes tenant pipeline configuration.

    Every mutation commits and then drops the tenant's cached machine so the
    next transition runs against the new configuration.
    """

    def create_stage(
        self,
        tenant_id: str,
        name: str,
        order: int,
        color: str = "#6B7280",
        description: str | None = None,
        is_initial_state: bool = False,
        is_final_state: bool = False,
        allowed_transitions: Iterable[str] = (),
    ) -> PipelineStage:
        targets = list(allowed_transitions)
        self._require_tenant_stages(tenant_id, targets)
        stage = PipelineStage(
            tenant_id=tenant_id,
            name=name,
            description=description,
            order=order,
            color=color,
            is_initial_state=is_initial_state,
            is_final_state=is_final_state,
            allowed_transitions=targets,
        )
        self.db.add(stage)
        return self._save(tenant_id, stage, "pipeline.config.stage_created")

    def set_allowed_transitions(self, stage_id: str, target_stage_ids: Iterable[str]) -> PipelineStage:
        stage = self._get_stage(stage_id)
        targets = list(target_stage_ids)
        self._require_tenant_stages(stage.tenant_id, targets)
        stage.allowed_transitions = targets
        return self._save(stage.tenant_id, stage, "pipeline.config.transitions_updated")

    def set_stage_active(self, stage_id: str, is_active: bool) -> PipelineStage:
        stage = self._get_stage(stage_id)
        stage.is_active = is_active
        return self._save(stage.tenant_id, stage, "pipeline.config.stage_updated")

    def create_validation_rule(
        self,
        tenant_id: str,
        name: str,
        conditions: dict[str, Any],
        actions: dict[str, Any],
        severity: str = RuleSeverity.ERROR.value,
        order: int = 0,
        pipeline_stage_id: str | None = None,
        description: str | None = None,
        enabled: bool = True,
    ) -> ValidationRule:
        RuleSeverity(severity)
        # Malformed rules are rejected here rather than at evaluation time.
        RuleConditions.model_validate(conditions)
        RuleActions.model_validate(actions)
        if pipeline_stage_id is not None:
            self._require_tenant_stages(tenant_id, [pipeline_stage_id])
        rule = ValidationRule(
            tenant_id=tenant_id,
            name=name,
            description=description,
            conditions=conditions,
            actions=actions,
            severity=severity,
            order=order,
            pipeline_stage_id=pipeline_stage_id,
            enabled=enabled,
        )
        self.db.add(rule)
        return self._save(tenant_id, rule, "pipeline.config.rule_created")

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> ValidationRule:
        rule = self.db.get(ValidationRule, rule_id)
        if rule is None:
            raise NotFoundError(f"Validation rule {rule_id} not found")
        rule.enabled = enabled
        return self._save(rule.tenant_id, rule, "pipeline.config.rule_updated")

    def create_sla_config(
        self,
        tenant_id: str,
        pipeline_stage_id: str,
        name: str,
        timeframe: int,
        time_unit: str = TimeUnit.HOURS.value,
        description: str | None = None,
        escalation_rules: dict | None = None,
        notification_rules: dict | None = None,
    ) -> SLAConfig:
        TimeUnit(time_unit)
        if timeframe <= 0:
            raise ConfigurationError("SLA timeframe must be positive")
        self._require_tenant_stages(tenant_id, [pipeline_stage_id])
        sla = SLAConfig(
            tenant_id=tenant_id,
            pipeline_stage_id=pipeline_stage_id,
            name=name,
            description=description,
            timeframe=timeframe,
            time_unit=time_unit,
            escalation_rules=escalation_rules,
            notification_rules=notification_rules,
        )
        self.db.add(sla)
        return self._save(tenant_id, sla, "pipeline.config.sla_created")

    def create_team(
        self,
        tenant_id: str,
        name: str,
        description: str | None = None,
        pipeline_stage_ids: Iterable[str] = (),
    ) -> Team:
        stage_ids = list(pipeline_stage_ids)
        self._require_tenant_stages(tenant_id, stage_ids)
        team = Team(tenant_id=tenant_id, name=name, description=description, pipeline_stage_ids=stage_ids)
        self.db.add(team)
        return self._save(tenant_id, team, "pipeline.config.team_created")

    def add_team_member(
        self,
        team_id: str,
        user_id: str,
        name: str,
        email: str | None = None,
        role: str | None = None,
    ) -> TeamMember:
        team = self._get_team(team_id)
        member = TeamMember(team_id=team.id, user_id=user_id, name=name, email=email, role=role)
        team.members.append(member)
        return self._save(team.tenant_id, member, "pipeline.config.member_added")

    def assign_team_stages(self, team_id: str, pipeline_stage_ids: Iterable[str]) -> Team:
        team = self._get_team(team_id)
        stage_ids = list(pipeline_stage_ids)
        self._require_tenant_stages(team.tenant_id, stage_ids)
        team.pipeline_stage_ids = stage_ids
        return self._save(team.tenant_id, team, "pipeline.config.team_stages_updated")

    def _get_stage(self, stage_id: str) -> PipelineStage:
        stage = self.repository.find_pipeline_stage(stage_id)
        if stage is None:
            raise NotFoundError(f"Pipeline stage {stage_id} not found")
        return stage

    def _get_team(self, team_id: str) -> Team:
        team = self.db.get(Team, team_id)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")
        return team

    def _require_tenant_stages(self, tenant_id: str, stage_ids: list[str]) -> None:
        for stage_id in stage_ids:
            stage = self.repository.find_pipeline_stage(stage_id)
            if stage is None or stage.tenant_id != tenant_id:
                raise ConfigurationError(f"Stage {stage_id} does not belong to tenant {tenant_id}")

    def _save(self, tenant_id: str, record: Any, event: str) -> Any:
        self.commit()
        self.db.refresh(record)
        StateMachineService.clear_cache(tenant_id)
        logger.info(event, extra=log_extra(event, LogContext(tenant_id=tenant_id), record_id=record.id))
        return record
