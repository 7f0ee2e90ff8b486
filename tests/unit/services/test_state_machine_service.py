from __future__ import annotations

from sqlalchemy import select

from leadflow.models import PipelineStage, StateTransition, ValidationRule
from leadflow.orchestration.state_machine import SLA_BREACH_EVENT, transition_event
from leadflow.services.state_machine_service import StateMachineService


def _income_rule(tenant_id: str, stage_id: str | None = None) -> ValidationRule:
    return ValidationRule(
        tenant_id=tenant_id,
        name="Income present",
        conditions={"type": "AND", "rules": [{"field": "monthlyIncome", "operator": "isNotEmpty"}]},
        actions={"onFail": {"message": "Monthly income is required"}},
        severity="error",
        pipeline_stage_id=stage_id,
    )


def test_machine_is_cached_per_tenant(session, pipeline):
    service = StateMachineService(db=session)

    first = service.get_state_machine(pipeline.tenant.id)
    second = StateMachineService(db=session).get_state_machine(pipeline.tenant.id)

    assert first is second
    assert StateMachineService.is_cached(pipeline.tenant.id)


def test_clear_cache_rebuilds_from_current_configuration(session, pipeline):
    service = StateMachineService(db=session)
    stale = service.get_state_machine(pipeline.tenant.id)

    session.add(PipelineStage(tenant_id=pipeline.tenant.id, name="ARCHIVED", order=4, is_final_state=True))
    session.commit()
    assert service.get_state_machine(pipeline.tenant.id) is stale
    assert len(stale.states) == 3

    StateMachineService.clear_cache(pipeline.tenant.id)
    fresh = service.get_state_machine(pipeline.tenant.id)
    assert fresh is not stale
    assert len(fresh.states) == 4


def test_clear_cache_only_touches_one_tenant(session, pipeline, make_tenant, make_pipeline):
    other = make_pipeline(make_tenant("globex"))
    service = StateMachineService(db=session)
    service.get_state_machine(pipeline.tenant.id)
    service.get_state_machine(other.tenant.id)

    StateMachineService.clear_cache(pipeline.tenant.id)

    assert not StateMachineService.is_cached(pipeline.tenant.id)
    assert StateMachineService.is_cached(other.tenant.id)


def test_inactive_stages_are_left_out_of_the_machine(session, pipeline):
    pipeline.approved.is_active = False
    session.commit()

    machine = StateMachineService(db=session).get_state_machine(pipeline.tenant.id)

    assert set(machine.states) == {pipeline.new.id, pipeline.review.id}
    assert machine.states[pipeline.review.id].on.get(transition_event(pipeline.approved.id)) is None


def test_machine_transition_persists_stage_and_history(session, pipeline, make_lead):
    lead = make_lead(pipeline.new, state_context={"source": "web"})
    service = StateMachineService(db=session)

    result = service.execute_transition(lead.id, transition_event(pipeline.review.id), data={"score": 7}, user_id="user4")

    assert result.success is True
    assert result.new_state == pipeline.review.id
    assert "recordStateTransition" in result.actions
    session.refresh(lead)
    assert lead.current_stage_id == pipeline.review.id
    assert lead.state_context == {"source": "web", "score": 7}
    [row] = session.scalars(select(StateTransition).where(StateTransition.lead_id == lead.id)).all()
    assert row.event == transition_event(pipeline.review.id)
    assert row.triggered_by == "user4"
    assert row.from_stage_id == pipeline.new.id


def test_machine_path_does_not_check_team_membership(session, pipeline, make_lead, make_team):
    make_team("Underwriters", [pipeline.review], ["user1"])
    lead = make_lead(pipeline.new)

    result = StateMachineService(db=session).execute_transition(
        lead.id, transition_event(pipeline.review.id), user_id="user2"
    )

    assert result.success is True


def test_unknown_event_is_rejected(session, pipeline, make_lead):
    lead = make_lead(pipeline.new)
    result = StateMachineService(db=session).execute_transition(lead.id, transition_event(pipeline.approved.id))
    assert result.success is False
    assert result.errors == ["Invalid transition"]
    assert result.new_state == pipeline.new.id


def test_fresh_lead_enters_initial_stage_through_machine(session, pipeline, make_lead):
    lead = make_lead(tenant=pipeline.tenant)
    service = StateMachineService(db=session)

    assert service.execute_transition(lead.id, transition_event(pipeline.review.id)).success is False
    result = service.execute_transition(lead.id, transition_event(pipeline.new.id))
    assert result.success is True
    assert result.new_state == pipeline.new.id


def test_failed_rule_blocks_and_passing_data_unblocks(session, pipeline, make_lead):
    session.add(_income_rule(pipeline.tenant.id, pipeline.review.id))
    session.commit()
    lead = make_lead(pipeline.new)
    service = StateMachineService(db=session)

    blocked = service.execute_transition(lead.id, transition_event(pipeline.review.id))
    assert blocked.success is False
    assert blocked.errors == ["Monthly income is required"]

    allowed = service.execute_transition(lead.id, transition_event(pipeline.review.id), data={"monthlyIncome": 4200})
    assert allowed.success is True


def test_sla_breach_succeeds_without_history(session, pipeline, make_lead):
    dispatched = []
    lead = make_lead(pipeline.review)
    service = StateMachineService(db=session, action_handler=lambda action, ctx: dispatched.append(action))

    result = service.execute_transition(lead.id, SLA_BREACH_EVENT)

    assert result.success is True
    assert result.new_state == pipeline.review.id
    assert dispatched == ["handleSLABreach", "notifySLABreach"]
    assert session.scalars(select(StateTransition).where(StateTransition.lead_id == lead.id)).all() == []


def test_tenant_without_stages_fails_closed(session, make_tenant, make_lead):
    tenant = make_tenant("empty")
    lead = make_lead(tenant=tenant)

    result = StateMachineService(db=session).execute_transition(lead.id, "TRANSITION_TO_anything")

    assert result.success is False
    assert result.errors == [f"No pipeline stages found for tenant {tenant.id}"]
    assert not StateMachineService.is_cached(tenant.id)


def test_missing_lead_is_reported(session):
    result = StateMachineService(db=session).execute_transition("missing", SLA_BREACH_EVENT)
    assert result.success is False
    assert result.errors == ["Lead not found"]


def test_available_transitions_follow_stage_configuration(session, pipeline, make_lead):
    service = StateMachineService(db=session)
    lead = make_lead(pipeline.new)

    assert service.get_available_transitions(lead.id) == [pipeline.review.id]
    assert service.can_transition(lead.id, pipeline.review.id) is True
    assert service.can_transition(lead.id, pipeline.approved.id) is False
    assert service.get_available_transitions(make_lead(pipeline.approved).id) == []
    assert service.get_available_transitions("missing") == []
