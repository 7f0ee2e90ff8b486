"""SQLAlchemy model package for the tenant-aware pipeline schema."""

from leadflow.models.base import Base
from leadflow.models.enums import RuleSeverity, RuleStatus, SLAStatus, TimeUnit
from leadflow.models.lead import Lead
from leadflow.models.pipeline_stage import PipelineStage
from leadflow.models.sla_config import SLAConfig
from leadflow.models.state_transition import StateTransition
from leadflow.models.team import Team, TeamMember
from leadflow.models.tenant import Tenant
from leadflow.models.validation_rule import ValidationRule

__all__ = [
    "Base",
    "Lead",
    "PipelineStage",
    "RuleSeverity",
    "RuleStatus",
    "SLAConfig",
    "SLAStatus",
    "StateTransition",
    "Team",
    "TeamMember",
    "Tenant",
    "TimeUnit",
    "ValidationRule",
]
