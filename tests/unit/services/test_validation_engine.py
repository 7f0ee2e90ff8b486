from __future__ import annotations

from types import SimpleNamespace

import pytest

from leadflow.services.validation_engine import ValidationEngine


def _rule(conditions, severity="error", actions=None, enabled=True, order=0, rule_id="r1"):
    return SimpleNamespace(
        id=rule_id,
        name=f"Rule {rule_id}",
        description=None,
        conditions=conditions,
        actions=actions or {"onPass": {"message": "ok"}, "onFail": {"message": "nope", "suggestedAction": "Fix it"}},
        severity=severity,
        enabled=enabled,
        order=order,
    )


def _single(field, operator, value=None, **kwargs):
    return _rule({"type": "AND", "rules": [{"field": field, "operator": operator, "value": value}]}, **kwargs)


@pytest.mark.parametrize(
    ("field", "operator", "value", "lead_data", "expected"),
    [
        ("email", "isValidEmail", None, {"email": "jo@example.com"}, True),
        ("email", "isValidEmail", None, {"email": "not-an-email"}, False),
        ("phone", "isValidPhone", None, {"phone": "+1 (555) 010-9999"}, True),
        ("income", "greaterThanOrEqual", "3000", {"income": 3000}, True),
        ("income", "lessThan", 3000, {"income": "abc"}, False),
        ("company", "contains", "ACME", {"company": "Acme Corp"}, True),
        ("company", "startsWith", "acme", {"company": "Acme Corp"}, True),
        ("company", "endsWith", "inc", {"company": "Acme Corp"}, False),
        ("address.city", "equals", "Lisbon", {"address": {"city": "Lisbon"}}, True),
        ("status", "notEquals", "closed", {"status": "open"}, True),
        ("notes", "isEmpty", None, {"notes": ""}, True),
        ("code", "matchesPattern", r"^[A-Z]{3}-\d+$", {"code": "ABC-12"}, True),
        ("code", "noSuchOperator", None, {"code": "x"}, False),
    ],
)
def test_field_operators(field, operator, value, lead_data, expected):
    outcome = ValidationEngine().evaluate_rule(_single(field, operator, value), lead_data)
    assert (outcome.status == "passed") is expected


def test_or_conditions_need_one_match():
    rule = _rule(
        {
            "type": "OR",
            "rules": [
                {"field": "email", "operator": "isNotEmpty"},
                {"field": "phone", "operator": "isNotEmpty"},
            ],
        }
    )
    engine = ValidationEngine()
    assert engine.evaluate_rule(rule, {"phone": "555"}).status == "passed"
    assert engine.evaluate_rule(rule, {}).status == "failed"


def test_warning_severity_never_blocks():
    outcome = ValidationEngine().evaluate_rule(_single("email", "isNotEmpty", severity="warning"), {})
    assert outcome.status == "warning"
    assert outcome.blocking is False
    assert outcome.message == "nope"
    assert outcome.suggested_action == "Fix it"


def test_computed_ratios():
    engine = ValidationEngine()
    dti = _single("debtToIncomeRatio", "lessThanOrEqual", 0.4)
    assert engine.evaluate_rule(dti, {"monthlyIncome": 5000, "totalDebt": 12000}).status == "passed"
    assert engine.evaluate_rule(dti, {"monthlyIncome": 1000, "totalDebt": 12000}).status == "failed"
    assert engine.evaluate_rule(dti, {"monthlyIncome": 0, "totalDebt": 100}).status == "failed"

    collateral = _single("collateralRatio", "greaterThan", 1.2)
    assert engine.evaluate_rule(collateral, {"collateralValue": 150, "requestedAmount": 100}).status == "passed"


def test_document_operators():
    engine = ValidationEngine()
    documents = [{"type": "id", "status": "verified"}, {"category": "payslip", "status": "pending"}]

    assert engine.evaluate_rule(_single("documents", "hasMinimumCount", 2), {}, documents).status == "passed"
    assert engine.evaluate_rule(_single("documents", "hasDocumentType", "payslip"), {}, documents).status == "passed"
    assert engine.evaluate_rule(_single("documents", "hasVerifiedDocuments"), {}, documents).status == "passed"
    assert engine.evaluate_rule(_single("documents", "allDocumentsVerified"), {}, documents).status == "failed"
    assert engine.evaluate_rule(_single("documents", "allDocumentsVerified"), {}, []).status == "failed"


def test_malformed_rule_degrades_to_warning():
    outcome = ValidationEngine().evaluate_rule(_rule({"type": "XOR", "rules": []}), {})
    assert outcome.status == "warning"
    assert outcome.message == "Unable to evaluate validation rule"


def test_evaluate_all_rules_skips_disabled_and_orders_by_order():
    rules = [
        _single("b", "isNotEmpty", rule_id="second", order=2),
        _single("a", "isNotEmpty", rule_id="first", order=1),
        _single("c", "isNotEmpty", rule_id="off", enabled=False),
    ]
    engine = ValidationEngine()

    outcomes = engine.evaluate_all_rules(rules, {"a": 1})
    assert [outcome.rule_id for outcome in outcomes] == ["first", "second"]

    summary = engine.calculate_summary(outcomes)
    assert summary.total == 2
    assert summary.passed == 1
    assert summary.failed == 1
    assert summary.passed_percentage == 50
    assert summary.can_proceed is False


def test_empty_summary():
    summary = ValidationEngine.calculate_summary([])
    assert summary.passed_percentage == 0
    assert summary.can_proceed is True


def test_passes_only_rejects_blocking_outcomes():
    engine = ValidationEngine()
    assert engine.passes(_single("email", "isNotEmpty", severity="warning"), {}) is True
    assert engine.passes(_single("email", "isNotEmpty"), {}) is False
