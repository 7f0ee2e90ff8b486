"""Validation rule model module."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.models.base import AuditMixin, Base, IdMixin, TenantScopedMixin
from leadflow.models.enums import RuleSeverity


class ValidationRule(Base, IdMixin, AuditMixin, TenantScopedMixin):
    __tablename__ = "validation_rules"
    __table_args__ = (Index("idx_validation_rules_tenant_order", "tenant_id", "order"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    conditions: Mapped[dict] = mapped_column(JSON, nullable=False)
    actions: Mapped[dict] = mapped_column(JSON, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), default=RuleSeverity.ERROR.value, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Null applies the rule to every stage.
    pipeline_stage_id: Mapped[str | None] = mapped_column(ForeignKey("pipeline_stages.id"))

    pipeline_stage = relationship("PipelineStage")
