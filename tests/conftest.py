from __future__ import annotations

from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from leadflow.models import Base, Lead, PipelineStage, Team, TeamMember, Tenant
from leadflow.services.state_machine_service import StateMachineService


@dataclass
class ReviewPipeline:
    tenant: Tenant
    new: PipelineStage
    review: PipelineStage
    approved: PipelineStage


@pytest.fixture(autouse=True)
def _reset_machine_cache():
    StateMachineService.clear_all_cache()
    yield
    StateMachineService.clear_all_cache()


@pytest.fixture
def session():
    engine = create_engine("sqlite:///:memory:")
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    engine.dispose()


def create_tenant(db: Session, key: str = "acme") -> Tenant:
    tenant = Tenant(tenant_key=key, name=key.title())
    db.add(tenant)
    db.commit()
    return tenant


def create_review_pipeline(db: Session, tenant: Tenant) -> ReviewPipeline:
    """NEW(initial) -> REVIEW -> APPROVED(final)."""
    new = PipelineStage(tenant_id=tenant.id, name="NEW", order=1, is_initial_state=True)
    review = PipelineStage(tenant_id=tenant.id, name="REVIEW", order=2)
    approved = PipelineStage(tenant_id=tenant.id, name="APPROVED", order=3, is_final_state=True)
    db.add_all([new, review, approved])
    db.flush()
    new.allowed_transitions = [review.id]
    review.allowed_transitions = [approved.id]
    db.commit()
    return ReviewPipeline(tenant=tenant, new=new, review=review, approved=approved)


def create_lead(db: Session, tenant: Tenant, stage: PipelineStage | None = None, **fields) -> Lead:
    lead = Lead(
        tenant_id=tenant.id,
        first_name=fields.pop("first_name", "Dana"),
        last_name=fields.pop("last_name", "Reyes"),
        current_stage_id=stage.id if stage is not None else None,
        **fields,
    )
    db.add(lead)
    db.commit()
    return lead


def create_team(
    db: Session,
    tenant: Tenant,
    name: str,
    stages: list[PipelineStage],
    members: list[str],
) -> Team:
    team = Team(tenant_id=tenant.id, name=name, pipeline_stage_ids=[stage.id for stage in stages])
    for user_id in members:
        team.members.append(TeamMember(user_id=user_id, name=user_id.title()))
    db.add(team)
    db.commit()
    return team


@pytest.fixture
def pipeline(session) -> ReviewPipeline:
    return create_review_pipeline(session, create_tenant(session))


@pytest.fixture
def make_tenant(session):
    return lambda key="acme": create_tenant(session, key)


@pytest.fixture
def make_pipeline(session):
    return lambda tenant: create_review_pipeline(session, tenant)


@pytest.fixture
def make_lead(session):
    def _make(stage: PipelineStage | None = None, tenant: Tenant | None = None, **fields) -> Lead:
        if tenant is None:
            tenant = session.get(Tenant, stage.tenant_id)
        return create_lead(session, tenant, stage, **fields)

    return _make


@pytest.fixture
def make_team(session):
    def _make(name: str, stages: list[PipelineStage], members: list[str]) -> Team:
        tenant = session.get(Tenant, stages[0].tenant_id)
        return create_team(session, tenant, name, stages, members)

    return _make
