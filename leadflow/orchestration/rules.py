"""Rule evaluation capability consumed by machine guards."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from leadflow.models.enums import RuleStatus


@dataclass
class RuleOutcome:
    """Normalized result of evaluating one validation rule."""

    rule_id: str
    name: str
    status: str
    severity: str
    description: str | None = None
    message: str | None = None
    suggested_action: str | None = None
    action_url: str | None = None

    @property
    def blocking(self) -> bool:
        return self.status == RuleStatus.FAILED.value


class RuleEvaluator(ABC):
    """Decides whether a rule passes for a lead's data."""

    @abstractmethod
    def evaluate_rule(self, rule: Any, lead_data: dict[str, Any], documents: Sequence[dict] = ()) -> RuleOutcome:
        """Evaluate ``rule`` against ``lead_data`` and return its outcome."""
        raise NotImplementedError

    def passes(self, rule: Any, lead_data: dict[str, Any], documents: Sequence[dict] = ()) -> bool:
        return not self.evaluate_rule(rule, lead_data, documents).blocking
