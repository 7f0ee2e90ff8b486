"""Lead model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.models.base import AuditMixin, Base, IdMixin, TenantScopedMixin
from leadflow.utils.timeutils import utcnow


class Lead(Base, IdMixin, AuditMixin, TenantScopedMixin):
    """Subject moved through the pipeline.

    ``current_stage_id`` is null until the lead enters its initial stage and is
    only changed by the transition executors. ``version`` is bumped by the ORM
    on every update so two transitions racing on the same row cannot both win.
    """

    __tablename__ = "leads"
    __table_args__ = (Index("idx_leads_tenant_stage", "tenant_id", "current_stage_id"),)

    first_name: Mapped[str | None] = mapped_column(String(120))
    last_name: Mapped[str | None] = mapped_column(String(120))
    email: Mapped[str | None] = mapped_column(String(320))
    phone: Mapped[str | None] = mapped_column(String(50))
    current_stage_id: Mapped[str | None] = mapped_column(ForeignKey("pipeline_stages.id"))
    state_context: Mapped[dict | None] = mapped_column(JSON)
    state_metadata: Mapped[dict | None] = mapped_column(JSON)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    current_stage = relationship("PipelineStage")
    state_transitions = relationship(
        "StateTransition",
        back_populates="lead",
        order_by="StateTransition.triggered_at.desc()",
    )
