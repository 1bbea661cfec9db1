"""
Clinical CDS Condition Evaluator
Compares one patient-context value against one rule condition
"""

import logging
import operator as op
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, Union

from clinical_cds.schemas import (
    CDSCondition, ConditionOperator, ConditionType, PatientContext
)

logger = logging.getLogger(__name__)

ContextValue = Union[str, int, float, bool, List[str]]


# =============================================================================
# Context Value Resolution
# =============================================================================

# Catalog rules use the camelCase names, API callers may use attribute names
_VITAL_SIGN_FIELDS: Dict[str, str] = {
    "systolicBP": "systolic_bp",
    "diastolicBP": "diastolic_bp",
    "heartRate": "heart_rate",
    "temperature": "temperature",
    "weight": "weight",
    "height": "height",
    "systolic_bp": "systolic_bp",
    "diastolic_bp": "diastolic_bp",
    "heart_rate": "heart_rate",
}


def _resolve_vital_sign(condition: CDSCondition, context: PatientContext) -> Optional[float]:
    if context.vitals is None:
        return None
    attribute = _VITAL_SIGN_FIELDS.get(condition.field)
    if attribute is None:
        return None
    return getattr(context.vitals, attribute)


def _resolve_lab_value(condition: CDSCondition, context: PatientContext) -> Optional[float]:
    lab = (context.lab_values or {}).get(condition.field)
    return lab.value if lab is not None else None


def _resolve_assessment_score(condition: CDSCondition, context: PatientContext) -> Optional[float]:
    assessment = (context.assessment_scores or {}).get(condition.field)
    return assessment.score if assessment is not None else None


_RESOLVERS: Dict[ConditionType, Callable[[CDSCondition, PatientContext], Optional[ContextValue]]] = {
    ConditionType.AGE: lambda condition, context: context.age,
    ConditionType.GENDER: lambda condition, context: context.gender,
    # List-valued data is never absent: a missing list reads as empty
    ConditionType.MEDICATION: lambda condition, context: context.medications or [],
    ConditionType.ALLERGY: lambda condition, context: context.allergies or [],
    ConditionType.DIAGNOSIS: lambda condition, context: context.diagnoses or [],
    ConditionType.VITAL_SIGN: _resolve_vital_sign,
    ConditionType.LAB_VALUE: _resolve_lab_value,
    ConditionType.ASSESSMENT_SCORE: _resolve_assessment_score,
}


def _as_enum(enum_cls: Type[Enum], raw: Any) -> Optional[Enum]:
    """Coerce a raw value to an enum member, None if it is not one"""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except (ValueError, TypeError):
        return None


def resolve_context_value(condition: CDSCondition, context: PatientContext) -> Optional[ContextValue]:
    """
    Look up the patient value a condition refers to

    Args:
        condition: Rule condition (type + field)
        context: Patient context snapshot

    Returns:
        The context value, or None when absent or the condition type is unknown
    """
    condition_type = _as_enum(ConditionType, condition.type)
    resolver = _RESOLVERS.get(condition_type) if condition_type is not None else None
    if resolver is None:
        logger.warning(f"Unknown condition type: {condition.type!r}")
        return None
    return resolver(condition, context)


# =============================================================================
# Operators
# =============================================================================

def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _to_number(value: Any) -> Optional[float]:
    if _is_sequence(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def _apply(context_value: Any, rule_value: Any) -> bool:
        left = _to_number(context_value)
        right = _to_number(rule_value)
        if left is None or right is None:
            return False
        return compare(left, right)
    return _apply


def _equals(context_value: Any, rule_value: Any) -> bool:
    # Strict: True is not 1
    if isinstance(context_value, bool) != isinstance(rule_value, bool):
        return False
    return context_value == rule_value


def _contains(context_value: Any, rule_value: Any) -> bool:
    if _is_sequence(rule_value):
        needles = [str(v).lower() for v in rule_value]
    else:
        needles = [str(rule_value).lower()]

    if _is_sequence(context_value):
        return any(
            needle in str(item).lower()
            for needle in needles
            for item in context_value
        )

    haystack = str(context_value).lower()
    return any(needle in haystack for needle in needles)


def _not_contains(context_value: Any, rule_value: Any) -> bool:
    return not _contains(context_value, rule_value)


_OPERATORS: Dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: _equals,
    ConditionOperator.GREATER_THAN: _numeric(op.gt),
    ConditionOperator.LESS_THAN: _numeric(op.lt),
    ConditionOperator.GREATER_EQUAL: _numeric(op.ge),
    ConditionOperator.LESS_EQUAL: _numeric(op.le),
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: _not_contains,
}


def compare_values(context_value: Any, operator: Any, rule_value: Any) -> bool:
    """Apply a condition operator; unknown operators never match"""
    condition_operator = _as_enum(ConditionOperator, operator)
    comparator = _OPERATORS.get(condition_operator) if condition_operator is not None else None
    if comparator is None:
        logger.warning(f"Unknown condition operator: {operator!r}")
        return False
    return comparator(context_value, rule_value)


# =============================================================================
# Public API
# =============================================================================

def evaluate_condition(condition: CDSCondition, context: PatientContext) -> bool:
    """
    Evaluate one condition against the patient context

    Absent patient data never satisfies a condition.

    Args:
        condition: Rule condition
        context: Patient context snapshot

    Returns:
        True if the condition holds
    """
    context_value = resolve_context_value(condition, context)
    if context_value is None:
        return False
    return compare_values(context_value, condition.operator, condition.value)
