"""SLA timing: time-in-stage, breach classification and per-stage turnaround."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from leadflow.core.config import get_config
from leadflow.core.logging import LogContext, log_extra
from leadflow.models import Lead, SLAStatus, StateTransition, TimeUnit
from leadflow.orchestration.state_machine import SLA_BREACH_EVENT
from leadflow.services.base_service import BaseService
from leadflow.services.state_machine_service import MachineTransitionResult, StateMachineService
from leadflow.utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

TIME_UNIT_DELTAS = {
    TimeUnit.MINUTES.value: timedelta(minutes=1),
    TimeUnit.HOURS.value: timedelta(hours=1),
    TimeUnit.DAYS.value: timedelta(days=1),
}
TIME_UNIT_SUFFIXES = {
    TimeUnit.MINUTES.value: "m",
    TimeUnit.HOURS.value: "h",
    TimeUnit.DAYS.value: "d",
}


def sla_duration(sla: Any) -> timedelta:
    """Unknown units count as minutes."""
    return TIME_UNIT_DELTAS.get(sla.time_unit, TIME_UNIT_DELTAS[TimeUnit.MINUTES.value]) * sla.timeframe


def format_sla(sla: Any) -> str:
    return f"{sla.timeframe}{TIME_UNIT_SUFFIXES.get(sla.time_unit, 'm')}"


def format_duration(delta: timedelta) -> str:
    total_hours = int(delta.total_seconds() // 3600)
    return f"{total_hours // 24}d {total_hours % 24}h"


def classify_sla(elapsed: timedelta, limit: timedelta, warning_ratio: float = 0.8) -> SLAStatus:
    if elapsed > limit:
        return SLAStatus.OVERDUE
    if elapsed > limit * warning_ratio:
        return SLAStatus.WARNING
    return SLAStatus.NORMAL


@dataclass
class LeadSLAStatus:
    lead_id: str
    stage_id: str | None
    time_in_stage: timedelta
    status: SLAStatus
    sla_label: str = "N/A"
    sla_config_id: str | None = None

    @property
    def time_in_stage_label(self) -> str:
        return format_duration(self.time_in_stage)

    @property
    def breached(self) -> bool:
        return self.status is SLAStatus.OVERDUE


class SLAService(BaseService):
    """Measures leads against the SLA configured for their current stage."""

    def __init__(self, db: Session | None = None, warning_ratio: float | None = None) -> None:
        super().__init__(db)
        self.warning_ratio = warning_ratio if warning_ratio is not None else get_config().SLA_WARNING_RATIO

    def list_state_transitions(self, lead_id: str) -> list[StateTransition]:
        return self.repository.list_state_transitions(lead_id)

    def time_in_stage(self, lead: Lead, now: datetime | None = None) -> timedelta:
        now = as_utc(now or utcnow())
        history = self.repository.list_state_transitions(lead.id)
        entered_at = history[0].triggered_at if history else lead.created_at
        return now - as_utc(entered_at)

    def evaluate_lead(self, lead_id: str, now: datetime | None = None) -> LeadSLAStatus | None:
        lead = self.repository.find_lead(lead_id)
        if lead is None:
            return None
        slas = {sla.pipeline_stage_id: sla for sla in reversed(self.repository.list_sla_configs(lead.tenant_id))}
        return self._evaluate(lead, slas, now)

    def find_breaches(self, tenant_id: str, now: datetime | None = None) -> list[LeadSLAStatus]:
        """Overdue leads sitting in non-final stages."""
        stages = {stage.id: stage for stage in self.repository.list_pipeline_stages(tenant_id, active_only=False)}
        slas = {sla.pipeline_stage_id: sla for sla in reversed(self.repository.list_sla_configs(tenant_id))}
        breaches = []
        for lead in self.repository.list_leads(tenant_id):
            stage = stages.get(lead.current_stage_id)
            if stage is None or stage.is_final_state:
                continue
            status = self._evaluate(lead, slas, now)
            if status.breached:
                breaches.append(status)
        return breaches

    def escalate_breaches(
        self,
        tenant_id: str,
        now: datetime | None = None,
        machines: StateMachineService | None = None,
    ) -> list[MachineTransitionResult]:
        """Send ``SLA_BREACH`` through the machine for every overdue lead."""
        machines = machines or StateMachineService(db=self.db)
        results = []
        for breach in self.find_breaches(tenant_id, now):
            logger.warning(
                "pipeline.sla.breached",
                extra=log_extra(
                    "pipeline.sla.breached",
                    LogContext(tenant_id=tenant_id, lead_id=breach.lead_id, stage_id=breach.stage_id),
                    time_in_stage=breach.time_in_stage_label,
                    sla=breach.sla_label,
                ),
            )
            results.append(machines.execute_transition(breach.lead_id, SLA_BREACH_EVENT))
        return results

    def stage_turnaround(self, lead_id: str, now: datetime | None = None) -> dict[str, timedelta]:
        """Total dwell time per stage, rebuilt from the transition history."""
        lead = self.repository.find_lead(lead_id)
        if lead is None:
            return {}
        now = as_utc(now or utcnow())
        history = list(reversed(self.repository.list_state_transitions(lead_id)))
        turnaround: dict[str, timedelta] = {}
        for index, transition in enumerate(history):
            if index + 1 < len(history):
                left_at = as_utc(history[index + 1].triggered_at)
            elif lead.current_stage is not None and not lead.current_stage.is_final_state:
                left_at = now
            else:
                continue
            dwell = left_at - as_utc(transition.triggered_at)
            turnaround[transition.to_stage_id] = turnaround.get(transition.to_stage_id, timedelta()) + dwell
        return turnaround

    def _evaluate(self, lead: Lead, slas: dict[str, Any], now: datetime | None) -> LeadSLAStatus:
        elapsed = self.time_in_stage(lead, now)
        sla = slas.get(lead.current_stage_id)
        if sla is None:
            return LeadSLAStatus(
                lead_id=lead.id,
                stage_id=lead.current_stage_id,
                time_in_stage=elapsed,
                status=SLAStatus.NORMAL,
            )
        return LeadSLAStatus(
            lead_id=lead.id,
            stage_id=lead.current_stage_id,
            time_in_stage=elapsed,
            status=classify_sla(elapsed, sla_duration(sla), self.warning_ratio),
            sla_label=format_sla(sla),
            sla_config_id=sla.id,
        )
