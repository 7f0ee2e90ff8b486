"""Team and team member model module."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.models.base import AuditMixin, Base, IdMixin, TenantScopedMixin


class Team(Base, IdMixin, AuditMixin, TenantScopedMixin):
    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    pipeline_stage_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    members = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMember.created_at",
    )

    @property
    def active_members(self) -> list["TeamMember"]:
        return [member for member in self.members if member.is_active]

    def owns_stage(self, stage_id: str) -> bool:
        return stage_id in (self.pipeline_stage_ids or [])

    def has_active_member(self, user_id: str) -> bool:
        return any(member.user_id == user_id for member in self.active_members)


class TeamMember(Base, IdMixin, AuditMixin):
    __tablename__ = "team_members"
    __table_args__ = (Index("idx_team_members_team_user", "team_id", "user_id"),)

    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(120), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320))
    role: Mapped[str | None] = mapped_column(String(120))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    team = relationship("Team", back_populates="members")
