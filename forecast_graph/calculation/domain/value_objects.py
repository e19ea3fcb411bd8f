from __future__ import annotations

from enum import Enum


class NodeKind(str, Enum):
    DATA = "DATA"
    CONSTANT = "CONSTANT"
    OPERATOR = "OPERATOR"
    METRIC = "METRIC"
    SEED = "SEED"


class CalculationType(str, Enum):
    FORECAST = "forecast"
    BUDGET = "budget"
    HISTORICAL = "historical"


# Evaluation order of the three series within one month
CALCULATION_TYPES: tuple[CalculationType, ...] = (
    CalculationType.FORECAST,
    CalculationType.BUDGET,
    CalculationType.HISTORICAL,
)


class OperatorSymbol(str, Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    POWER = "^"


class ValidationIssueCode(str, Enum):
    MISSING_METRIC_NODE = "MISSING_METRIC_NODE"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    INVALID_INPUT_COUNT = "INVALID_INPUT_COUNT"
    DANGLING_EDGE = "DANGLING_EDGE"
    MISSING_SEED_REFERENCE = "MISSING_SEED_REFERENCE"
    INVALID_SEED_REFERENCE_TYPE = "INVALID_SEED_REFERENCE_TYPE"
    NO_TOP_LEVEL_METRIC = "NO_TOP_LEVEL_METRIC"
    ORPHAN_NODE = "ORPHAN_NODE"
    METRIC_CONFIG_WARNING = "METRIC_CONFIG_WARNING"
