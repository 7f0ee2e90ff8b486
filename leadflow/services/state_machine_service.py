"""Per-tenant state machine generation, caching and machine-level transitions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any

from sqlalchemy.orm import Session

from leadflow.core.exceptions import ConcurrentModificationError, LeadFlowException
from leadflow.core.logging import LogContext, log_extra
from leadflow.models import Lead
from leadflow.orchestration.pipeline_config import SLAConfigSpec, StageConfig, ValidationRuleConfig
from leadflow.orchestration.rules import RuleEvaluator
from leadflow.orchestration.state_machine import LeadMachine, MachineContext, build_lead_machine
from leadflow.schemas.transitions import SYSTEM_ACTOR
from leadflow.services.base_service import BaseService
from leadflow.services.validation_engine import ValidationEngine
from leadflow.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

ActionHandler = Callable[[str, MachineContext], None]


@dataclass
class MachineTransitionResult:
    success: bool
    new_state: str | None = None
    errors: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)


class StateMachineService(BaseService):
    """Builds tenant machines and applies events on the machine-only path.

    Machines are cached process-wide per tenant. Nothing watches the
    configuration tables: code that edits stages, rules or SLAs must call
    ``clear_cache`` or transitions keep running against the old machine.

    ``execute_transition`` applies machine semantics only. It does not check
    team ownership; ``TeamAwareStateMachineService.execute_transition`` does.
    """

    _machines: dict[str, LeadMachine] = {}
    _lock = Lock()

    def __init__(
        self,
        db: Session | None = None,
        evaluator: RuleEvaluator | None = None,
        action_handler: ActionHandler | None = None,
    ) -> None:
        super().__init__(db)
        self.evaluator = evaluator or ValidationEngine()
        self.action_handler = action_handler or self._log_action

    def get_state_machine(self, tenant_id: str) -> LeadMachine:
        with self._lock:
            cached = self._machines.get(tenant_id)
        if cached is not None:
            return cached

        # Generation runs outside the lock; a concurrent build for the same
        # tenant is harmless and the last one installed wins.
        machine = self.generate_state_machine(tenant_id)
        with self._lock:
            self._machines[tenant_id] = machine
        return machine

    def generate_state_machine(self, tenant_id: str) -> LeadMachine:
        stages = [StageConfig.from_model(stage) for stage in self.repository.list_pipeline_stages(tenant_id)]
        rules = [ValidationRuleConfig.from_model(rule) for rule in self.repository.list_validation_rules(tenant_id)]
        slas = [SLAConfigSpec.from_model(sla) for sla in self.repository.list_sla_configs(tenant_id)]

        machine = build_lead_machine(tenant_id, stages, rules, slas, evaluator=self.evaluator)
        logger.info(
            "pipeline.machine.generated",
            extra=log_extra(
                "pipeline.machine.generated",
                LogContext(tenant_id=tenant_id),
                state_count=len(machine.states),
                initial_state=machine.initial,
            ),
        )
        return machine

    @classmethod
    def clear_cache(cls, tenant_id: str) -> None:
        with cls._lock:
            cls._machines.pop(tenant_id, None)

    @classmethod
    def clear_all_cache(cls) -> None:
        with cls._lock:
            cls._machines.clear()

    @classmethod
    def is_cached(cls, tenant_id: str) -> bool:
        with cls._lock:
            return tenant_id in cls._machines

    def execute_transition(
        self,
        lead_id: str,
        event: str,
        data: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> MachineTransitionResult:
        context = LogContext(lead_id=lead_id, user_id=user_id)
        try:
            lead = self.repository.find_lead(lead_id)
            if lead is None:
                return MachineTransitionResult(success=False, errors=["Lead not found"])

            machine = self.get_state_machine(lead.tenant_id)
            metadata = lead.state_metadata or {}
            current = machine.resolve_state(
                lead.current_stage_id,
                MachineContext(
                    lead_id=lead.id,
                    tenant_id=lead.tenant_id,
                    lead_data=dict(lead.state_context or {}),
                    sla_timers=dict(metadata.get("sla_timers") or {}),
                ),
            )

            now = utcnow()
            next_state = machine.transition(current, event, data=data, now=now)
            if next_state.changed:
                self._persist(lead, next_state.value, next_state.context, event, user_id, now)
                self.commit()
                self._dispatch(next_state.actions, next_state.context)
                return MachineTransitionResult(
                    success=True,
                    new_state=next_state.value,
                    actions=next_state.actions,
                )
            if next_state.handled and not next_state.context.validation_errors:
                self._dispatch(next_state.actions, next_state.context)
                return MachineTransitionResult(
                    success=True,
                    new_state=next_state.value,
                    actions=next_state.actions,
                )
            return MachineTransitionResult(
                success=False,
                new_state=current.value,
                errors=next_state.context.validation_errors or ["Invalid transition"],
            )
        except ConcurrentModificationError as exc:
            self.rollback()
            logger.warning("pipeline.machine.transition_conflict", extra=log_extra("pipeline.machine.transition_conflict", context))
            return MachineTransitionResult(success=False, errors=[str(exc)])
        except LeadFlowException as exc:
            self.rollback()
            logger.warning(
                "pipeline.machine.transition_rejected",
                extra=log_extra("pipeline.machine.transition_rejected", context, reason=str(exc)),
            )
            return MachineTransitionResult(success=False, errors=[str(exc)])
        except Exception:
            self.rollback()
            logger.exception("pipeline.machine.transition_failed", extra=log_extra("pipeline.machine.transition_failed", context))
            return MachineTransitionResult(success=False, errors=["Unable to execute transition"])

    def notify_stage_change(
        self,
        tenant_id: str,
        lead_id: str,
        from_stage_id: str | None,
        to_stage_id: str,
    ) -> list[str]:
        """Dispatch exit/entry actions for a stage change persisted elsewhere."""
        machine = self.get_state_machine(tenant_id)
        actions: list[str] = []
        if from_stage_id in machine.states:
            actions.extend(machine.states[from_stage_id].exit)
        if to_stage_id in machine.states:
            actions.extend(machine.states[to_stage_id].entry)
        self._dispatch(actions, MachineContext(lead_id=lead_id, tenant_id=tenant_id))
        return actions

    def get_available_transitions(self, lead_id: str) -> list[str]:
        lead = self.repository.find_lead(lead_id)
        if lead is None or lead.current_stage is None or lead.current_stage.is_final_state:
            return []
        return list(lead.current_stage.allowed_transitions or [])

    def can_transition(self, lead_id: str, target_stage_id: str) -> bool:
        return target_stage_id in self.get_available_transitions(lead_id)

    def _persist(
        self,
        lead: Lead,
        new_stage_id: str,
        context: MachineContext,
        event: str,
        user_id: str | None,
        now: datetime,
    ) -> None:
        from_stage_id = lead.current_stage_id
        self.repository.update_lead(
            lead.id,
            current_stage_id=new_stage_id,
            state_context=context.lead_data,
            state_metadata={"sla_timers": context.sla_timers, "last_transition": now.isoformat()},
            last_modified=now,
        )
        self.repository.create_state_transition(
            lead_id=lead.id,
            tenant_id=lead.tenant_id,
            from_stage_id=from_stage_id,
            to_stage_id=new_stage_id,
            event=event,
            triggered_by=user_id or SYSTEM_ACTOR,
            context=context.lead_data,
            transition_metadata={"timestamp": now.isoformat(), "sla_timers": context.sla_timers},
            triggered_at=now,
        )

    def _dispatch(self, actions: list[str], context: MachineContext) -> None:
        # Runs after commit; a failing handler must not report the transition as lost.
        for action in actions:
            try:
                self.action_handler(action, context)
            except Exception:
                logger.exception(
                    "pipeline.action.failed",
                    extra=log_extra(
                        "pipeline.action.failed",
                        LogContext(tenant_id=context.tenant_id, lead_id=context.lead_id),
                        action=action,
                    ),
                )

    @staticmethod
    def _log_action(action: str, context: MachineContext) -> None:
        logger.info(
            "pipeline.action.dispatched",
            extra=log_extra(
                "pipeline.action.dispatched",
                LogContext(tenant_id=context.tenant_id, lead_id=context.lead_id),
                action=action,
            ),
        )
