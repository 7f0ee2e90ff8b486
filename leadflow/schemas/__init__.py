"""Pydantic schemas exposed to calling application code."""

from leadflow.schemas.rules import RuleActions, RuleCondition, RuleConditions, RuleFailAction, RulePassAction
from leadflow.schemas.teams import TeamMemberSummary, TeamSummary
from leadflow.schemas.transitions import StateTransitionRequest, TransitionOption

__all__ = [
    "RuleActions",
    "RuleCondition",
    "RuleConditions",
    "RuleFailAction",
    "RulePassAction",
    "StateTransitionRequest",
    "TeamMemberSummary",
    "TeamSummary",
    "TransitionOption",
]
