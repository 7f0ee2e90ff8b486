"""State transition (pipeline history) model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.models.base import Base, IdMixin, TenantScopedMixin
from leadflow.utils.timeutils import utcnow


class StateTransition(Base, IdMixin, TenantScopedMixin):
    """Append-only audit row, one per executed transition."""

    __tablename__ = "state_transitions"
    __table_args__ = (Index("idx_state_transitions_lead_time", "lead_id", "triggered_at"),)

    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id"), nullable=False)
    from_stage_id: Mapped[str | None] = mapped_column(ForeignKey("pipeline_stages.id"))
    to_stage_id: Mapped[str] = mapped_column(ForeignKey("pipeline_stages.id"), nullable=False)
    event: Mapped[str] = mapped_column(String(150), nullable=False)
    triggered_by: Mapped[str] = mapped_column(String(120), nullable=False, default="system")
    context: Mapped[dict | None] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes.
    transition_metadata: Mapped[dict | None] = mapped_column("metadata", JSON)
    triggered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    lead = relationship("Lead", back_populates="state_transitions")
    from_stage = relationship("PipelineStage", foreign_keys=[from_stage_id])
    to_stage = relationship("PipelineStage", foreign_keys=[to_stage_id])
