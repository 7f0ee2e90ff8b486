"""Executable per-tenant lead state machine.

A machine is built once from a tenant's pipeline configuration and then only
read. ``LeadMachine.transition`` is a pure function of a snapshot and an event:
it reports the next state, the actions to dispatch and the updated context,
and leaves persistence to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from leadflow.core.exceptions import ConfigurationError, InvalidTransitionError
from leadflow.orchestration.pipeline_config import SLAConfigSpec, StageConfig, ValidationRuleConfig
from leadflow.orchestration.rules import RuleEvaluator
from leadflow.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

TRANSITION_EVENT_PREFIX = "TRANSITION_TO_"
SLA_BREACH_EVENT = "SLA_BREACH"
VALIDATION_FAILED_EVENT = "VALIDATION_FAILED"
ASSIGN_SLA_TIMER_ACTION = "assignSLATimer"
TRANSITION_ACTIONS = ("logTransition", "recordStateTransition")


def transition_event(stage_id: str) -> str:
    return f"{TRANSITION_EVENT_PREFIX}{stage_id}"


def guard_name(stage_id: str) -> str:
    return f"canTransitionTo_{stage_id}"


def apply_sla_timers(
    timers: Mapping[str, str] | None,
    exited_stage_id: str | None,
    entered_stage_id: str | None,
    now: datetime,
) -> dict[str, str]:
    """Clear the exited stage's timer and start one for the entered stage."""
    updated = dict(timers or {})
    if exited_stage_id is not None:
        updated.pop(exited_stage_id, None)
    if entered_stage_id is not None:
        updated[entered_stage_id] = now.isoformat()
    return updated


@dataclass(frozen=True)
class TransitionDefinition:
    event: str
    target: str | None = None
    guard: str | None = None
    actions: tuple[str, ...] = ()


@dataclass(frozen=True)
class StateDefinition:
    id: str
    name: str
    order: int
    color: str
    description: str | None = None
    entry: tuple[str, ...] = ()
    exit: tuple[str, ...] = ()
    on: Mapping[str, TransitionDefinition] = field(default_factory=dict)
    is_final: bool = False
    sla_config_ids: tuple[str, ...] = ()


@dataclass
class MachineContext:
    lead_id: str = ""
    tenant_id: str = ""
    lead_data: dict[str, Any] = field(default_factory=dict)
    validation_errors: list[str] = field(default_factory=list)
    sla_timers: dict[str, str] = field(default_factory=dict)


@dataclass
class MachineSnapshot:
    """Machine state for one lead. ``value`` is None before the pipeline."""

    value: str | None
    context: MachineContext
    changed: bool = False
    handled: bool = False
    actions: list[str] = field(default_factory=list)


# A guard returns the reasons it rejects a transition; an empty list passes.
Guard = Callable[[MachineContext, TransitionDefinition], list[str]]


class LeadMachine:
    """Finite state machine over a tenant's pipeline stages."""

    def __init__(
        self,
        machine_id: str,
        tenant_id: str,
        initial: str,
        states: Mapping[str, StateDefinition],
        guards: Mapping[str, Guard] | None = None,
    ) -> None:
        if initial not in states:
            raise ConfigurationError(f"Initial state {initial} is not a machine state")
        self.id = machine_id
        self.tenant_id = tenant_id
        self.initial = initial
        self.states = dict(states)
        self._guards = dict(guards or {})

    def resolve_state(self, value: str | None, context: MachineContext) -> MachineSnapshot:
        if value is not None and value not in self.states:
            raise InvalidTransitionError(f"State {value} is not part of the tenant pipeline")
        return MachineSnapshot(value=value, context=context)

    def transition(
        self,
        snapshot: MachineSnapshot,
        event: str,
        data: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> MachineSnapshot:
        now = now or utcnow()
        context = replace(
            snapshot.context,
            lead_data={**snapshot.context.lead_data, **(data or {})},
            validation_errors=[],
            sla_timers=dict(snapshot.context.sla_timers),
        )
        definition = self._lookup(snapshot.value, event)
        if definition is None:
            return MachineSnapshot(value=snapshot.value, context=context)

        if definition.guard is not None:
            errors = self._run_guard(definition, context)
            if errors:
                context.validation_errors = errors
                return MachineSnapshot(value=snapshot.value, context=context, handled=True)

        if definition.target is None:
            return MachineSnapshot(
                value=snapshot.value,
                context=context,
                handled=True,
                actions=list(definition.actions),
            )

        actions: list[str] = []
        if snapshot.value is not None:
            actions.extend(self.states[snapshot.value].exit)
        actions.extend(definition.actions)
        actions.extend(self.states[definition.target].entry)
        context.sla_timers = apply_sla_timers(context.sla_timers, snapshot.value, definition.target, now)
        return MachineSnapshot(
            value=definition.target,
            context=context,
            changed=True,
            handled=True,
            actions=actions,
        )

    def can_transition(self, current: str | None, target: str) -> bool:
        definition = self._lookup(current, transition_event(target))
        return definition is not None and definition.target == target

    def assert_transition(self, current: str | None, target: str) -> None:
        if not self.can_transition(current=current, target=target):
            raise InvalidTransitionError(f"Transition not allowed: {current} -> {target}")

    def available_events(self, value: str | None) -> list[str]:
        if value is None:
            return [transition_event(self.initial)]
        return list(self.states[value].on)

    def _lookup(self, value: str | None, event: str) -> TransitionDefinition | None:
        if value is None:
            if event != transition_event(self.initial):
                return None
            return TransitionDefinition(
                event=event,
                target=self.initial,
                guard=guard_name(self.initial),
                actions=TRANSITION_ACTIONS,
            )
        state = self.states.get(value)
        if state is None:
            return None
        return state.on.get(event)

    def _run_guard(self, definition: TransitionDefinition, context: MachineContext) -> list[str]:
        guard = self._guards.get(definition.guard)
        if guard is None:
            return []
        return guard(context, definition)


def _rule_guard(rules: Sequence[ValidationRuleConfig], evaluator: RuleEvaluator) -> Guard:
    def guard(context: MachineContext, definition: TransitionDefinition) -> list[str]:
        documents = context.lead_data.get("documents") or []
        errors = []
        for rule in rules:
            outcome = evaluator.evaluate_rule(rule, context.lead_data, documents)
            if outcome.blocking:
                errors.append(outcome.message or f"Validation rule '{rule.name}' failed")
        return errors

    return guard


def _build_state(
    stage: StageConfig,
    stage_slas: Sequence[SLAConfigSpec],
    known_stage_ids: set[str],
) -> StateDefinition:
    entry = (
        ASSIGN_SLA_TIMER_ACTION,
        *(f"startSLATimer_{sla.id}" for sla in stage_slas),
        f"notifyStageEntry_{stage.id}",
    )
    exit_actions = (
        *(f"clearSLATimer_{sla.id}" for sla in stage_slas),
        f"notifyStageExit_{stage.id}",
    )

    on: dict[str, TransitionDefinition] = {}
    if not stage.is_final_state:
        for target_id in stage.allowed_transitions:
            if target_id not in known_stage_ids:
                logger.warning(
                    "pipeline.machine.unknown_target",
                    extra={"event": "pipeline.machine.unknown_target", "stage_id": stage.id, "target": target_id},
                )
                continue
            event = transition_event(target_id)
            on[event] = TransitionDefinition(
                event=event,
                target=target_id,
                guard=guard_name(target_id),
                actions=("logTransition", f"validateTransition_{target_id}", "recordStateTransition"),
            )
        on[SLA_BREACH_EVENT] = TransitionDefinition(
            event=SLA_BREACH_EVENT,
            actions=("handleSLABreach", "notifySLABreach"),
        )
        on[VALIDATION_FAILED_EVENT] = TransitionDefinition(
            event=VALIDATION_FAILED_EVENT,
            actions=("handleValidationFailure", "notifyValidationFailure"),
        )

    return StateDefinition(
        id=stage.id,
        name=stage.name,
        order=stage.order,
        color=stage.color,
        description=stage.description,
        entry=entry,
        exit=exit_actions,
        on=on,
        is_final=stage.is_final_state,
        sla_config_ids=tuple(sla.id for sla in stage_slas),
    )


def build_lead_machine(
    tenant_id: str,
    stages: Sequence[StageConfig],
    rules: Sequence[ValidationRuleConfig] = (),
    slas: Sequence[SLAConfigSpec] = (),
    evaluator: RuleEvaluator | None = None,
) -> LeadMachine:
    """Generate a tenant machine from its active stages, rules and SLAs.

    The initial state is the first stage flagged ``is_initial_state`` or, when
    none is flagged, the first stage by order.
    """
    if not stages:
        raise ConfigurationError(f"No pipeline stages found for tenant {tenant_id}")

    ordered = sorted(stages, key=lambda stage: stage.order)
    initial = next((stage for stage in ordered if stage.is_initial_state), ordered[0])
    known_stage_ids = {stage.id for stage in ordered}

    states: dict[str, StateDefinition] = {}
    guards: dict[str, Guard] = {}
    for stage in ordered:
        stage_slas = [sla for sla in slas if sla.pipeline_stage_id == stage.id]
        states[stage.id] = _build_state(stage, stage_slas, known_stage_ids)
        if evaluator is not None:
            stage_rules = [rule for rule in rules if rule.enabled and rule.applies_to(stage.id)]
            if stage_rules:
                guards[guard_name(stage.id)] = _rule_guard(stage_rules, evaluator)

    return LeadMachine(
        machine_id=f"lead-workflow-{tenant_id}",
        tenant_id=tenant_id,
        initial=initial.id,
        states=states,
        guards=guards,
    )
