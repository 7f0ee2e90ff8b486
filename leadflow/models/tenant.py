"""Tenant model module."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from leadflow.models.base import AuditMixin, Base, IdMixin


class Tenant(Base, IdMixin, AuditMixin):
    __tablename__ = "tenants"

    tenant_key: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
