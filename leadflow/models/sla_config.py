"""SLA configuration model module."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.models.base import AuditMixin, Base, IdMixin, TenantScopedMixin
from leadflow.models.enums import TimeUnit


class SLAConfig(Base, IdMixin, AuditMixin, TenantScopedMixin):
    __tablename__ = "sla_configs"

    pipeline_stage_id: Mapped[str] = mapped_column(ForeignKey("pipeline_stages.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    timeframe: Mapped[int] = mapped_column(Integer, nullable=False)
    time_unit: Mapped[str] = mapped_column(String(20), default=TimeUnit.HOURS.value, nullable=False)
    escalation_rules: Mapped[dict | None] = mapped_column(JSON)
    notification_rules: Mapped[dict | None] = mapped_column(JSON)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    pipeline_stage = relationship("PipelineStage")
