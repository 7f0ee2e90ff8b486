"""Default rule evaluator for tenant validation rules.

Rules carry an AND/OR list of ``{field, operator, value}`` conditions. Fields
use dotted paths into the lead data; ``documents``, ``debtToIncomeRatio`` and
``collateralRatio`` are computed fields.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from leadflow.models.enums import RuleSeverity, RuleStatus
from leadflow.orchestration.rules import RuleEvaluator, RuleOutcome
from leadflow.schemas.rules import RuleActions, RuleCondition, RuleConditions

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]+$")
RATIO_TOLERANCE = 0.01


def _to_number(value: Any) -> float:
    if value is None or value == "":
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _compare(operator: str, left: float, right: float) -> bool:
    if operator == "lessThan":
        return left < right
    if operator == "lessThanOrEqual":
        return left <= right
    if operator == "greaterThan":
        return left > right
    if operator == "greaterThanOrEqual":
        return left >= right
    if operator == "equals":
        return abs(left - right) < RATIO_TOLERANCE
    return False


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass
class ValidationSummary:
    total: int
    passed: int
    warnings: int
    failed: int
    passed_percentage: int
    can_proceed: bool


class ValidationEngine(RuleEvaluator):
    """Evaluates condition trees against lead data and attached documents."""

    def evaluate_rule(self, rule: Any, lead_data: dict[str, Any], documents: Sequence[dict] = ()) -> RuleOutcome:
        outcome = RuleOutcome(
            rule_id=rule.id,
            name=rule.name,
            description=getattr(rule, "description", None),
            severity=rule.severity,
            status=RuleStatus.PASSED.value,
        )
        try:
            conditions = RuleConditions.model_validate(rule.conditions or {})
            actions = RuleActions.model_validate(rule.actions or {})
            passed = self._evaluate_conditions(conditions, lead_data or {}, list(documents))
        except (ValidationError, TypeError, ValueError, re.error):
            logger.warning(
                "validation.rule.evaluation_failed",
                exc_info=True,
                extra={"event": "validation.rule.evaluation_failed", "rule_id": rule.id},
            )
            outcome.status = RuleStatus.WARNING.value
            outcome.message = "Unable to evaluate validation rule"
            return outcome

        if passed:
            outcome.message = actions.on_pass.message
            return outcome

        outcome.status = (
            RuleStatus.FAILED.value if rule.severity == RuleSeverity.ERROR.value else RuleStatus.WARNING.value
        )
        outcome.message = actions.on_fail.message
        outcome.suggested_action = actions.on_fail.suggested_action
        outcome.action_url = actions.on_fail.action_url
        return outcome

    def evaluate_all_rules(
        self,
        rules: Iterable[Any],
        lead_data: dict[str, Any],
        documents: Sequence[dict] = (),
    ) -> list[RuleOutcome]:
        enabled = sorted((rule for rule in rules if rule.enabled), key=lambda rule: rule.order)
        return [self.evaluate_rule(rule, lead_data, documents) for rule in enabled]

    @staticmethod
    def calculate_summary(outcomes: Sequence[RuleOutcome]) -> ValidationSummary:
        total = len(outcomes)
        passed = sum(1 for outcome in outcomes if outcome.status == RuleStatus.PASSED.value)
        warnings = sum(1 for outcome in outcomes if outcome.status == RuleStatus.WARNING.value)
        failed = sum(1 for outcome in outcomes if outcome.status == RuleStatus.FAILED.value)
        return ValidationSummary(
            total=total,
            passed=passed,
            warnings=warnings,
            failed=failed,
            passed_percentage=round(passed / total * 100) if total else 0,
            can_proceed=failed == 0,
        )

    def _evaluate_conditions(
        self,
        conditions: RuleConditions,
        lead_data: dict[str, Any],
        documents: list[dict],
    ) -> bool:
        results = [self._evaluate_condition(condition, lead_data, documents) for condition in conditions.rules]
        if conditions.type == "AND":
            return all(results)
        return any(results)

    def _evaluate_condition(self, condition: RuleCondition, lead_data: dict[str, Any], documents: list[dict]) -> bool:
        field, operator, value = condition.field, condition.operator, condition.value

        if field == "documents":
            return self._evaluate_documents(operator, value, documents)
        if field == "debtToIncomeRatio":
            return self._evaluate_debt_to_income(operator, value, lead_data)
        if field == "collateralRatio":
            return self._evaluate_collateral_ratio(operator, value, lead_data)

        field_value = self._get_field_value(field, lead_data)

        if operator == "isNotEmpty":
            return not _is_empty(field_value)
        if operator == "isEmpty":
            return _is_empty(field_value)
        if operator == "equals":
            return field_value == value
        if operator == "notEquals":
            return field_value != value
        if operator in {"greaterThan", "greaterThanOrEqual", "lessThan", "lessThanOrEqual"}:
            left, right = _to_number(field_value), _to_number(value)
            if math.isnan(left) or math.isnan(right):
                return False
            return _compare(operator, left, right)
        if operator == "contains":
            return _as_text(value).lower() in _as_text(field_value).lower()
        if operator == "startsWith":
            return _as_text(field_value).lower().startswith(_as_text(value).lower())
        if operator == "endsWith":
            return _as_text(field_value).lower().endswith(_as_text(value).lower())
        if operator == "isValidEmail":
            return bool(EMAIL_PATTERN.match(_as_text(field_value)))
        if operator == "isValidPhone":
            return bool(PHONE_PATTERN.match(_as_text(field_value)))
        if operator == "matchesPattern":
            return re.search(_as_text(value), _as_text(field_value)) is not None

        logger.warning(
            "validation.rule.unknown_operator",
            extra={"event": "validation.rule.unknown_operator", "operator": operator},
        )
        return False

    @staticmethod
    def _evaluate_documents(operator: str, value: Any, documents: list[dict]) -> bool:
        if operator == "hasMinimumCount":
            return len(documents) >= _to_number(value)
        if operator == "hasMaximumCount":
            return len(documents) <= _to_number(value)
        if operator == "hasExactCount":
            return len(documents) == _to_number(value)
        if operator == "hasVerifiedDocuments":
            return any(doc.get("status") == "verified" for doc in documents)
        if operator == "allDocumentsVerified":
            return bool(documents) and all(doc.get("status") == "verified" for doc in documents)
        if operator == "hasDocumentType":
            return any(doc.get("type") == value or doc.get("category") == value for doc in documents)
        return False

    @staticmethod
    def _evaluate_debt_to_income(operator: str, value: Any, lead_data: dict[str, Any]) -> bool:
        monthly_income = _to_number(lead_data.get("monthlyIncome"))
        total_debt = _to_number(lead_data.get("totalDebt"))
        if not monthly_income or not total_debt or math.isnan(monthly_income) or math.isnan(total_debt):
            return False
        ratio = total_debt / (monthly_income * 12)
        return _compare(operator, ratio, _to_number(value))

    @staticmethod
    def _evaluate_collateral_ratio(operator: str, value: Any, lead_data: dict[str, Any]) -> bool:
        collateral_value = _to_number(lead_data.get("collateralValue"))
        requested_amount = _to_number(lead_data.get("requestedAmount"))
        if (
            not collateral_value
            or not requested_amount
            or math.isnan(collateral_value)
            or math.isnan(requested_amount)
        ):
            return False
        ratio = collateral_value / requested_amount
        return _compare(operator, ratio, _to_number(value))

    @staticmethod
    def _get_field_value(field: str, lead_data: dict[str, Any]) -> Any:
        value: Any = lead_data
        for part in field.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return None
        return value
