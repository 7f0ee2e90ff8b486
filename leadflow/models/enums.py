"""Canonical enum values for the pipeline schema."""

from __future__ import annotations

import enum


class TimeUnit(str, enum.Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


class RuleSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class RuleStatus(str, enum.Enum):
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"


class SLAStatus(str, enum.Enum):
    NORMAL = "normal"
    WARNING = "warning"
    OVERDUE = "overdue"
