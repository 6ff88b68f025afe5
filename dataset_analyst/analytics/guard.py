"""Block operations that are meaningless for a column's semantic type."""
from __future__ import annotations

import logging
from typing import Literal

from .intent import intent_name
from .models import (
    Aggregation,
    ColumnRole,
    IntentClassification,
    MetricResolution,
    OperationCategory,
    ResolvedColumn,
    SemanticGuardResult,
    SemanticType,
)
from .naming import is_identifier_column

logger = logging.getLogger(__name__)

Verdict = Literal["allow", "block", "n/a"]

SEMANTIC_TYPES: tuple[SemanticType, ...] = ("number", "date", "string", "boolean", "unknown")
OPERATIONS: tuple[OperationCategory, ...] = ("AGG_AVG", "AGG_SUM", "AGG_COUNT", "GROUP_BY", "TIME_BUCKET")


def _row(number: Verdict, date: Verdict, string: Verdict, boolean: Verdict, unknown: Verdict):
    return dict(zip(SEMANTIC_TYPES, (number, date, string, boolean, unknown)))


# Single source of truth for what is semantically valid.
GUARD_RULES: dict[tuple[OperationCategory, SemanticType], Verdict] = {
    (op, st): verdict
    for op, row in {
        "AGG_AVG": _row("allow", "block", "block", "block", "block"),
        "AGG_SUM": _row("allow", "block", "block", "block", "block"),
        "AGG_COUNT": _row("allow", "allow", "allow", "allow", "allow"),
        "GROUP_BY": _row("n/a", "allow", "allow", "allow", "block"),
        "TIME_BUCKET": _row("n/a", "allow", "block", "block", "block"),
    }.items()
    for st, verdict in row.items()
}

OPERATION_NAMES: dict[OperationCategory, str] = {
    "AGG_AVG": "average",
    "AGG_SUM": "sum",
    "AGG_COUNT": "count",
    "GROUP_BY": "group by",
    "TIME_BUCKET": "time-based analysis",
}

_OPERATION_VERBS: dict[OperationCategory, str] = {
    "AGG_AVG": "Averaging",
    "AGG_SUM": "Summing",
    "AGG_COUNT": "Counting",
    "GROUP_BY": "Grouping by",
    "TIME_BUCKET": "Bucketing over time by",
}

_TYPE_NATURE: dict[SemanticType, str] = {
    "date": "Dates are points in time, not quantities",
    "string": "Text values are labels, not quantities",
    "boolean": "Boolean values are true/false flags, not quantities",
    "number": "Numeric values are continuous measurements",
    "unknown": "The column type could not be determined",
}

# Operations each intent performs by default, metric first.
INTENT_OPERATIONS: dict[str, tuple[tuple[ColumnRole, OperationCategory], ...]] = {
    "aggregate_avg": (("metric", "AGG_AVG"),),
    "aggregate_sum": (("metric", "AGG_SUM"),),
    "aggregate_count": (("metric", "AGG_COUNT"),),
    "group_by": (("metric", "AGG_AVG"), ("dimension", "GROUP_BY")),
    "compare": (("metric", "AGG_AVG"), ("dimension", "GROUP_BY")),
    "time_series": (("metric", "AGG_SUM"), ("time_column", "TIME_BUCKET")),
}

AGGREGATION_OPERATIONS: dict[Aggregation, OperationCategory] = {
    "avg": "AGG_AVG",
    "sum": "AGG_SUM",
    "count": "AGG_COUNT",
}

# Blocked on identifier-named metrics whatever their semantic type.
_IDENTIFIER_BLOCKED: frozenset[OperationCategory] = frozenset({"AGG_AVG", "AGG_SUM"})


def intent_operations(intent: IntentClassification | str) -> tuple[tuple[ColumnRole, OperationCategory], ...]:
    """Operations for ``intent``; the metric follows an aggregate the question names."""
    name = intent_name(intent)
    operations = INTENT_OPERATIONS.get(name, ())
    aggregation = intent.aggregation if isinstance(intent, IntentClassification) else None
    if aggregation is None or not operations:
        return operations
    return (("metric", AGGREGATION_OPERATIONS[aggregation]),) + operations[1:]


def allowed_operations(semantic_type: SemanticType) -> list[OperationCategory]:
    return [op for op in OPERATIONS if GUARD_RULES[(op, semantic_type)] == "allow"]


def suggested_alternatives(semantic_type: SemanticType, attempted: OperationCategory) -> list[str]:
    allowed = [OPERATION_NAMES[op] for op in allowed_operations(semantic_type) if op != attempted]
    return allowed or ["Select a different column"]


def block_reason(semantic_type: SemanticType, operation: OperationCategory, column: str) -> str:
    verdict = GUARD_RULES[(operation, semantic_type)]
    verb = _OPERATION_VERBS[operation]
    if verdict == "n/a":
        return (
            f"{OPERATION_NAMES[operation].capitalize()} does not apply to {semantic_type} "
            f"column '{column}'. {_TYPE_NATURE[semantic_type]}."
        )
    if semantic_type == "unknown":
        return (
            f"The type of column '{column}' is unknown, so {OPERATION_NAMES[operation]} "
            "cannot be checked. Select a different column."
        )
    return (
        f"{verb} the {semantic_type} column '{column}' has no real-world meaning. "
        f"{_TYPE_NATURE[semantic_type]}."
    )


def check_operation(
    column: ResolvedColumn,
    role: ColumnRole,
    operation: OperationCategory,
    dataset_version_id: str,
) -> SemanticGuardResult | None:
    semantic_type = column.column_profile.semantic_type
    if GUARD_RULES[(operation, semantic_type)] != "allow":
        reason = block_reason(semantic_type, operation, column.column_name)
        alternatives = suggested_alternatives(semantic_type, operation)
    elif role == "metric" and operation in _IDENTIFIER_BLOCKED and is_identifier_column(column.column_name):
        reason = (
            f"{_OPERATION_VERBS[operation]} the identifier column '{column.column_name}' has no "
            "real-world meaning. Identifiers label rows, they are not quantities."
        )
        alternatives = [OPERATION_NAMES["AGG_COUNT"]]
    else:
        return None
    return SemanticGuardResult(
        column=column.column_name,
        column_role=role,
        semantic_type=semantic_type,
        attempted_operation=operation,
        reason=reason,
        suggested_alternatives=alternatives,
        dataset_version_id=dataset_version_id,
    )


def validate_semantic_operations(
    resolution: MetricResolution,
    intent: IntentClassification | str,
    dataset_version_id: str,
) -> SemanticGuardResult | None:
    """Return a block for the first invalid operation, or ``None`` when all are allowed.

    The metric is checked first; a blocked metric is reported even when the
    dimension or time column would also be blocked.
    """
    for role, operation in intent_operations(intent):
        column: ResolvedColumn | None = getattr(resolution, role)
        if column is None:
            continue
        blocked = check_operation(column, role, operation, dataset_version_id)
        if blocked is not None:
            logger.warning(
                "Guard blocked %s on %s column %r (%s)",
                operation, blocked.semantic_type, blocked.column, role,
            )
            return blocked
    return None
