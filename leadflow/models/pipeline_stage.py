"""Pipeline stage model module."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from leadflow.models.base import AuditMixin, Base, IdMixin, TenantScopedMixin


class PipelineStage(Base, IdMixin, AuditMixin, TenantScopedMixin):
    """One step of a tenant's lead workflow.

    ``allowed_transitions`` holds the ordered ids of the stages a lead may move
    to from here. It is ignored for final stages.
    """

    __tablename__ = "pipeline_stages"
    __table_args__ = (Index("idx_pipeline_stage_tenant_order", "tenant_id", "order"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#6B7280")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_initial_state: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_final_state: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    allowed_transitions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    def __repr__(self) -> str:
        return f"<PipelineStage {self.name!r} order={self.order}>"
