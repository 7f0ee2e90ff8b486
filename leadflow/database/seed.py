"""Demo pipeline: six stages, four teams and stage SLAs for one tenant."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from leadflow.models import Tenant, TimeUnit
from leadflow.services.pipeline_config_service import PipelineConfigService

logger = logging.getLogger(__name__)

DEMO_TENANT_KEY = "demo"

DEMO_STAGES = [
    {"name": "New Lead", "description": "Newly acquired leads", "color": "#3b82f6", "is_initial_state": True},
    {"name": "Qualification", "description": "Leads being qualified", "color": "#8b5cf6"},
    {"name": "Proposal", "description": "Proposal sent to client", "color": "#ec4899"},
    {"name": "Negotiation", "description": "Negotiating terms", "color": "#f59e0b"},
    {"name": "Closed Won", "description": "Deal closed successfully", "color": "#10b981", "is_final_state": True},
    {"name": "Closed Lost", "description": "Deal lost", "color": "#ef4444", "is_final_state": True},
]

DEMO_TRANSITIONS = {
    "New Lead": ["Qualification", "Closed Lost"],
    "Qualification": ["Proposal", "Closed Lost"],
    "Proposal": ["Negotiation", "Closed Lost"],
    "Negotiation": ["Closed Won", "Closed Lost"],
}

DEMO_TEAMS = [
    {
        "name": "Sales Team",
        "description": "Handles initial lead contact and qualification",
        "stages": ["New Lead", "Qualification"],
        "members": [("user1", "John Doe", "john@example.com"), ("user2", "Jane Smith", "jane@example.com")],
    },
    {
        "name": "Business Development Team",
        "description": "Prepares proposals for qualified leads",
        "stages": ["Proposal"],
        "members": [("user3", "Alice Johnson", "alice@example.com"), ("user4", "Bob Wilson", "bob@example.com")],
    },
    {
        "name": "Account Management Team",
        "description": "Negotiates terms with prospective clients",
        "stages": ["Negotiation"],
        "members": [("user5", "Robert Brown", "robert@example.com"), ("user6", "Emily Davis", "emily@example.com")],
    },
    {
        "name": "Management Team",
        "description": "Signs off closed deals",
        "stages": ["Closed Won", "Closed Lost"],
        "members": [("user7", "Alex Martinez", "alex@example.com"), ("user8", "Maria Santos", "maria@example.com")],
    },
]

DEMO_SLAS = [
    ("New Lead", "New Lead Response", 24, TimeUnit.HOURS.value),
    ("Qualification", "Qualification Completion", 2, TimeUnit.DAYS.value),
    ("Proposal", "Proposal Delivery", 3, TimeUnit.DAYS.value),
    ("Negotiation", "Negotiation Closure", 5, TimeUnit.DAYS.value),
]


def seed_demo_pipeline(session: Session, tenant_key: str = DEMO_TENANT_KEY) -> Tenant:
    """Install the demo pipeline; an already-seeded tenant is returned unchanged."""
    tenant = session.scalar(select(Tenant).where(Tenant.tenant_key == tenant_key))
    if tenant is not None:
        return tenant

    tenant = Tenant(tenant_key=tenant_key, name="Demo Company")
    session.add(tenant)
    session.commit()

    config = PipelineConfigService(db=session)
    stages = {}
    for order, fields in enumerate(DEMO_STAGES, start=1):
        stage = config.create_stage(tenant.id, order=order, **fields)
        stages[stage.name] = stage
    for name, targets in DEMO_TRANSITIONS.items():
        config.set_allowed_transitions(stages[name].id, [stages[target].id for target in targets])

    for team_fields in DEMO_TEAMS:
        team = config.create_team(
            tenant.id,
            team_fields["name"],
            description=team_fields["description"],
            pipeline_stage_ids=[stages[name].id for name in team_fields["stages"]],
        )
        for user_id, name, email in team_fields["members"]:
            config.add_team_member(team.id, user_id, name, email=email, role="member")

    for stage_name, name, timeframe, time_unit in DEMO_SLAS:
        config.create_sla_config(
            tenant.id,
            stages[stage_name].id,
            name,
            timeframe,
            time_unit=time_unit,
            escalation_rules={"notify": ["manager"], "after": timeframe, "unit": time_unit},
            notification_rules={"channels": ["email"], "warnAtPercent": 80},
        )

    logger.info(
        "database.seed.completed",
        extra={"event": "database.seed.completed", "tenant_id": tenant.id, "stage_count": len(stages)},
    )
    return tenant
