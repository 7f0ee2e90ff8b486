"""Team-aware transition validation, execution and team resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from leadflow.core.exceptions import ConcurrentModificationError
from leadflow.core.logging import LogContext, log_extra
from leadflow.models import Lead, PipelineStage, StateTransition, Team, TeamMember
from leadflow.orchestration.state_machine import apply_sla_timers
from leadflow.schemas.teams import TeamSummary
from leadflow.schemas.transitions import SYSTEM_ACTOR, StateTransitionRequest, TransitionOption
from leadflow.services.base_service import BaseService
from leadflow.services.state_machine_service import StateMachineService
from leadflow.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class TransitionValidation:
    is_valid: bool
    message: str
    team_info: Team | None = None


@dataclass
class TeamPermissionCheck:
    can_transition: bool
    message: str
    assigned_team: Team | None = None
    team_members: list[TeamMember] = field(default_factory=list)


@dataclass
class StateTransitionResult:
    success: bool
    message: str
    lead: Lead | None = None
    transition: StateTransition | None = None
    assigned_team: Team | None = None


@dataclass
class TeamWithStages:
    team: Team
    assigned_stages: list[PipelineStage] = field(default_factory=list)


class TeamAwareStateMachineService(BaseService):
    """Transition path that enforces team ownership of the target stage.

    The public entry points never raise: every failure, including storage
    errors, resolves to a denial or a failed result carrying a message that
    can be shown to the user.
    """

    def __init__(self, db: Session | None = None, machines: StateMachineService | None = None) -> None:
        super().__init__(db)
        self.machines = machines or StateMachineService(db=self.db)

    def validate_transition_with_teams(
        self,
        current_stage_id: str | None,
        target_stage_id: str,
        tenant_id: str,
        user_id: str | None = None,
    ) -> TransitionValidation:
        try:
            basic = self.validate_basic_transition(current_stage_id, target_stage_id, tenant_id)
            if not basic.is_valid:
                return basic

            permission = self.check_team_permissions(target_stage_id, tenant_id, user_id)
            if not permission.can_transition:
                return TransitionValidation(is_valid=False, message=permission.message)

            return TransitionValidation(
                is_valid=True,
                message="Valid transition with team permissions",
                team_info=permission.assigned_team,
            )
        except Exception:
            logger.exception(
                "pipeline.validation.failed",
                extra=log_extra("pipeline.validation.failed", LogContext(tenant_id=tenant_id, user_id=user_id)),
            )
            return TransitionValidation(is_valid=False, message="Error validating transition")

    def validate_basic_transition(
        self,
        current_stage_id: str | None,
        target_stage_id: str,
        tenant_id: str,
    ) -> TransitionValidation:
        try:
            target = self.repository.find_pipeline_stage(target_stage_id)
            if target is None:
                return TransitionValidation(is_valid=False, message="Target stage not found")
            if target.tenant_id != tenant_id:
                return TransitionValidation(
                    is_valid=False,
                    message="Target stage does not belong to the current tenant",
                )

            if current_stage_id is None:
                if not target.is_initial_state:
                    return TransitionValidation(
                        is_valid=False,
                        message="Can only transition to initial stages from no stage",
                    )
                return TransitionValidation(is_valid=True, message="Valid initial transition")

            current = self.repository.find_pipeline_stage(current_stage_id)
            if current is None or current.tenant_id != tenant_id:
                return TransitionValidation(is_valid=False, message="Current stage not found")

            if current.is_final_state:
                return TransitionValidation(is_valid=False, message="Cannot transition from final states")

            if target_stage_id not in (current.allowed_transitions or []):
                return TransitionValidation(
                    is_valid=False,
                    message=f"Transition from {current.name} to {target.name} is not allowed",
                )

            return TransitionValidation(is_valid=True, message="Valid transition")
        except Exception:
            logger.exception(
                "pipeline.validation.basic_failed",
                extra=log_extra("pipeline.validation.basic_failed", LogContext(tenant_id=tenant_id, stage_id=target_stage_id)),
            )
            return TransitionValidation(is_valid=False, message="Error validating transition")

    def check_team_permissions(
        self,
        stage_id: str,
        tenant_id: str,
        user_id: str | None = None,
    ) -> TeamPermissionCheck:
        try:
            teams = self.get_teams_for_stage(stage_id, tenant_id)
            if not teams:
                return TeamPermissionCheck(can_transition=True, message="No team restrictions for this stage")

            if not user_id:
                return TeamPermissionCheck(
                    can_transition=True,
                    assigned_team=teams[0],
                    team_members=teams[0].active_members,
                    message="Team assigned but no user validation required",
                )

            user_teams = [team for team in teams if team.has_active_member(user_id)]
            if not user_teams:
                return TeamPermissionCheck(
                    can_transition=False,
                    assigned_team=teams[0],
                    team_members=teams[0].active_members,
                    message="User is not a member of teams assigned to this stage: "
                    + ", ".join(team.name for team in teams),
                )

            return TeamPermissionCheck(
                can_transition=True,
                assigned_team=user_teams[0],
                team_members=user_teams[0].active_members,
                message="User has team permissions for this stage",
            )
        except Exception:
            logger.exception(
                "pipeline.team_permission.failed",
                extra=log_extra(
                    "pipeline.team_permission.failed",
                    LogContext(tenant_id=tenant_id, user_id=user_id, stage_id=stage_id),
                ),
            )
            return TeamPermissionCheck(can_transition=False, message="Error checking team permissions")

    def execute_transition(self, request: StateTransitionRequest) -> StateTransitionResult:
        context = LogContext(lead_id=request.lead_id, user_id=request.triggered_by, stage_id=request.target_stage_id)
        # Callers must name the actor; an explicit "system" skips team membership.
        user_id = None if request.triggered_by == SYSTEM_ACTOR else request.triggered_by
        try:
            lead = self.repository.find_lead(request.lead_id)
            if lead is None:
                return StateTransitionResult(success=False, message="Lead not found")

            validation = self.validate_transition_with_teams(
                lead.current_stage_id,
                request.target_stage_id,
                lead.tenant_id,
                user_id,
            )
            if not validation.is_valid:
                logger.info(
                    "pipeline.transition.denied",
                    extra=log_extra("pipeline.transition.denied", context, reason=validation.message),
                )
                return StateTransitionResult(success=False, message=validation.message)

            now = utcnow()
            tenant_id = lead.tenant_id
            from_stage_id = lead.current_stage_id
            sla_timers = apply_sla_timers(
                (lead.state_metadata or {}).get("sla_timers"),
                from_stage_id,
                request.target_stage_id,
                now,
            )
            team_info = (
                TeamSummary.model_validate(validation.team_info).model_dump(mode="json")
                if validation.team_info is not None
                else None
            )

            updated = self.repository.update_lead(
                lead.id,
                current_stage_id=request.target_stage_id,
                state_context=request.context if request.context is not None else lead.state_context,
                state_metadata={"sla_timers": sla_timers, "last_transition": now.isoformat()},
                last_modified=now,
            )
            transition = self.repository.create_state_transition(
                lead_id=lead.id,
                tenant_id=lead.tenant_id,
                from_stage_id=from_stage_id,
                to_stage_id=request.target_stage_id,
                event=request.event,
                context=request.context,
                triggered_by=request.triggered_by,
                transition_metadata={"team_info": team_info, "timestamp": now.isoformat(), "sla_timers": sla_timers},
                triggered_at=now,
            )
            self.commit()
        except ConcurrentModificationError:
            self.rollback()
            logger.warning("pipeline.transition.conflict", extra=log_extra("pipeline.transition.conflict", context))
            return StateTransitionResult(
                success=False,
                message="Lead was modified concurrently; reload it and retry the transition",
            )
        except Exception:
            self.rollback()
            logger.exception("pipeline.transition.failed", extra=log_extra("pipeline.transition.failed", context))
            return StateTransitionResult(success=False, message="Unable to execute transition")

        logger.info(
            "pipeline.transition.executed",
            extra=log_extra(
                "pipeline.transition.executed",
                LogContext(
                    tenant_id=tenant_id,
                    lead_id=request.lead_id,
                    user_id=request.triggered_by,
                    stage_id=request.target_stage_id,
                ),
                from_stage_id=from_stage_id,
                transition_event=request.event,
            ),
        )
        self._notify_stage_change(tenant_id, request.lead_id, from_stage_id, request.target_stage_id)
        return StateTransitionResult(
            success=True,
            message="Transition executed successfully",
            lead=updated,
            transition=transition,
            assigned_team=validation.team_info,
        )

    def get_teams_for_stage(self, stage_id: str, tenant_id: str) -> list[Team]:
        return self.repository.list_teams(tenant_id, active_only=True, stage_id=stage_id)

    def get_teams_with_stages(self, tenant_id: str) -> list[TeamWithStages]:
        teams = self.repository.list_teams(tenant_id, active_only=True)
        stages = self.repository.list_pipeline_stages(tenant_id, active_only=True)
        return [
            TeamWithStages(team=team, assigned_stages=[stage for stage in stages if team.owns_stage(stage.id)])
            for team in teams
        ]

    def auto_assign_to_team(self, lead_id: str, stage_id: str) -> Team | None:
        """Pick the owning team for a lead entering ``stage_id``.

        First match in fetch order; there is no load balancing or rotation.
        """
        try:
            lead = self.repository.find_lead(lead_id)
            if lead is None:
                return None
            teams = self.get_teams_for_stage(stage_id, lead.tenant_id)
            return teams[0] if teams else None
        except Exception:
            logger.exception(
                "pipeline.team_assignment.failed",
                extra=log_extra("pipeline.team_assignment.failed", LogContext(lead_id=lead_id, stage_id=stage_id)),
            )
            return None

    def get_available_transitions_with_teams(
        self,
        lead_id: str,
        user_id: str | None = None,
    ) -> list[TransitionOption]:
        try:
            lead = self.repository.find_lead(lead_id)
            if lead is None or lead.current_stage is None:
                return []

            options: list[TransitionOption] = []
            for target_stage_id in lead.current_stage.allowed_transitions or []:
                validation = self.validate_transition_with_teams(
                    lead.current_stage_id,
                    target_stage_id,
                    lead.tenant_id,
                    user_id,
                )
                if not validation.is_valid:
                    continue
                target = self.repository.find_pipeline_stage(target_stage_id)
                teams = self.get_teams_for_stage(target_stage_id, lead.tenant_id)
                options.append(
                    TransitionOption(
                        stage_id=target_stage_id,
                        stage_name=target.name if target else None,
                        stage_color=target.color if target else None,
                        assigned_teams=[TeamSummary.model_validate(team) for team in teams],
                        can_transition=True,
                        message=validation.message,
                    )
                )
            return options
        except Exception:
            logger.exception(
                "pipeline.available_transitions.failed",
                extra=log_extra("pipeline.available_transitions.failed", LogContext(lead_id=lead_id, user_id=user_id)),
            )
            return []

    def _notify_stage_change(
        self,
        tenant_id: str,
        lead_id: str,
        from_stage_id: str | None,
        to_stage_id: str,
    ) -> None:
        try:
            self.machines.notify_stage_change(tenant_id, lead_id, from_stage_id, to_stage_id)
        except Exception:
            logger.exception(
                "pipeline.notification.failed",
                extra=log_extra("pipeline.notification.failed", LogContext(tenant_id=tenant_id, lead_id=lead_id)),
            )
