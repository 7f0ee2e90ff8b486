"""SQLAlchemy persistence contract consumed by the pipeline engine.

Writes flush but never commit: the calling service owns the transaction so a
lead update and its history row land together or not at all.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from leadflow.core.exceptions import ConcurrentModificationError, NotFoundError, PersistenceError
from leadflow.models import (
    Lead,
    PipelineStage,
    SLAConfig,
    StateTransition,
    Team,
    ValidationRule,
)
from leadflow.utils.timeutils import utcnow


class PipelineRepository:
    """Read/write access to leads, pipeline configuration and history."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_lead(self, lead_id: str) -> Lead | None:
        return self.db.get(Lead, lead_id)

    def list_leads(self, tenant_id: str, stage_id: str | None = None) -> list[Lead]:
        stmt = select(Lead).where(Lead.tenant_id == tenant_id, Lead.deleted_at.is_(None))
        if stage_id is not None:
            stmt = stmt.where(Lead.current_stage_id == stage_id)
        return list(self.db.scalars(stmt.order_by(Lead.created_at.asc())))

    def update_lead(self, lead_id: str, **fields: Any) -> Lead:
        lead = self.find_lead(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        for key, value in fields.items():
            setattr(lead, key, value)
        self._flush()
        return lead

    def find_pipeline_stage(self, stage_id: str) -> PipelineStage | None:
        return self.db.get(PipelineStage, stage_id)

    def list_pipeline_stages(self, tenant_id: str, active_only: bool = True) -> list[PipelineStage]:
        stmt = select(PipelineStage).where(PipelineStage.tenant_id == tenant_id)
        if active_only:
            stmt = stmt.where(PipelineStage.is_active.is_(True))
        stmt = stmt.order_by(PipelineStage.order.asc())
        return list(self.db.scalars(stmt))

    def list_validation_rules(self, tenant_id: str, enabled_only: bool = True) -> list[ValidationRule]:
        stmt = select(ValidationRule).where(ValidationRule.tenant_id == tenant_id)
        if enabled_only:
            stmt = stmt.where(ValidationRule.enabled.is_(True))
        stmt = stmt.order_by(ValidationRule.order.asc())
        return list(self.db.scalars(stmt))

    def list_sla_configs(self, tenant_id: str, enabled_only: bool = True) -> list[SLAConfig]:
        stmt = select(SLAConfig).where(SLAConfig.tenant_id == tenant_id)
        if enabled_only:
            stmt = stmt.where(SLAConfig.enabled.is_(True))
        stmt = stmt.order_by(SLAConfig.created_at.asc(), SLAConfig.id.asc())
        return list(self.db.scalars(stmt))

    def list_teams(
        self,
        tenant_id: str,
        active_only: bool = True,
        stage_id: str | None = None,
    ) -> list[Team]:
        stmt = (
            select(Team)
            .where(Team.tenant_id == tenant_id)
            .options(selectinload(Team.members))
            .order_by(Team.created_at.asc())
        )
        if active_only:
            stmt = stmt.where(Team.is_active.is_(True))
        teams = list(self.db.scalars(stmt))
        # Stage ownership lives in a JSON list, filtered here to stay portable.
        if stage_id is not None:
            teams = [team for team in teams if team.owns_stage(stage_id)]
        return teams

    def create_state_transition(self, **fields: Any) -> StateTransition:
        fields.setdefault("triggered_at", utcnow())
        transition = StateTransition(**fields)
        self.db.add(transition)
        self._flush()
        return transition

    def list_state_transitions(self, lead_id: str) -> list[StateTransition]:
        stmt = (
            select(StateTransition)
            .where(StateTransition.lead_id == lead_id)
            .order_by(StateTransition.triggered_at.desc(), StateTransition.id.desc())
        )
        return list(self.db.scalars(stmt))

    def _flush(self) -> None:
        try:
            self.db.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError("Lead was modified concurrently") from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc
