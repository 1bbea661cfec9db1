"""
Unit tests for condition evaluation
"""

import pytest
from clinical_cds.modules.conditions import (
    compare_values,
    evaluate_condition,
    resolve_context_value
)
from clinical_cds.schemas import (
    AssessmentScore, CDSCondition, ConditionOperator, ConditionType,
    LabResult, PatientContext, VitalSigns
)


def _condition(condition_type, field, operator, value):
    return CDSCondition(type=condition_type, field=field, operator=operator, value=value)


class TestCompareValues:
    """Test operator semantics"""

    @pytest.mark.parametrize("operator,context_value,rule_value,expected", [
        (ConditionOperator.GREATER_THAN, 181, 180, True),
        (ConditionOperator.GREATER_THAN, 180, 180, False),
        (ConditionOperator.GREATER_EQUAL, 180, 180, True),
        (ConditionOperator.LESS_THAN, 89.5, 90, True),
        (ConditionOperator.LESS_EQUAL, 50, 50, True),
        (ConditionOperator.LESS_EQUAL, 51, 50, False),
    ])
    def test_numeric_comparisons(self, operator, context_value, rule_value, expected):
        """Test numeric operators"""
        assert compare_values(context_value, operator, rule_value) is expected

    def test_numeric_comparison_with_non_numeric_is_false(self):
        """Test numeric operators on non-numeric values"""
        assert not compare_values("high", ConditionOperator.GREATER_THAN, 1)
        assert not compare_values(["a"], ConditionOperator.LESS_THAN, 1)

    def test_equals_is_strict(self):
        """Booleans never equal numbers"""
        assert compare_values("female", ConditionOperator.EQUALS, "female")
        assert not compare_values("female", ConditionOperator.EQUALS, "male")
        assert not compare_values(True, ConditionOperator.EQUALS, 1)
        assert compare_values(True, ConditionOperator.EQUALS, True)

    def test_contains_list_context_any_rule_value(self):
        """Any rule value matching any context item is a match"""
        meds = ["lisinopril 10mg", "aspirin"]
        assert compare_values(meds, ConditionOperator.CONTAINS, ["enalapril", "lisinopril"])
        assert not compare_values(meds, ConditionOperator.CONTAINS, ["warfarin"])

    def test_contains_is_case_insensitive_substring(self):
        """Test case-insensitive substring matching"""
        assert compare_values(["Potassium Chloride"], ConditionOperator.CONTAINS, "potassium")
        assert compare_values("Type 2 Diabetes", ConditionOperator.CONTAINS, ["diabetes"])

    def test_not_contains_negates_contains(self):
        """Test not-contains semantics"""
        assert compare_values(["aspirin"], ConditionOperator.NOT_CONTAINS, ["warfarin"])
        assert not compare_values(["warfarin"], ConditionOperator.NOT_CONTAINS, ["warfarin"])
        assert compare_values("none", ConditionOperator.NOT_CONTAINS, "penicillin")

    def test_unknown_operator_is_false(self):
        """Test that an unknown operator never matches"""
        assert compare_values(5, "between", 1) is False


class TestEvaluateCondition:
    """Test context lookup and absent-data handling"""

    def test_absent_scalar_value_is_false(self):
        """Test that a missing age never matches"""
        condition = _condition(ConditionType.AGE, "age", ConditionOperator.LESS_THAN, 200)
        assert not evaluate_condition(condition, PatientContext())

    def test_absent_vitals_is_false(self):
        """Test that missing vitals never match"""
        condition = _condition(ConditionType.VITAL_SIGN, "systolicBP", ConditionOperator.LESS_THAN, 90)
        assert not evaluate_condition(condition, PatientContext())

    def test_vital_sign_field_names(self):
        """Both camelCase and attribute names resolve"""
        context = PatientContext(vitals=VitalSigns(systolic_bp=185, heart_rate=120))
        camel = _condition(ConditionType.VITAL_SIGN, "systolicBP", ConditionOperator.GREATER_EQUAL, 180)
        snake = _condition(ConditionType.VITAL_SIGN, "heart_rate", ConditionOperator.GREATER_THAN, 100)
        assert evaluate_condition(camel, context)
        assert evaluate_condition(snake, context)

    def test_unknown_vital_sign_field(self):
        """Test an unrecognised vital sign field"""
        context = PatientContext(vitals=VitalSigns(systolic_bp=185))
        condition = _condition(ConditionType.VITAL_SIGN, "spo2", ConditionOperator.LESS_THAN, 90)
        assert resolve_context_value(condition, context) is None
        assert not evaluate_condition(condition, context)

    def test_missing_medication_list_reads_as_empty(self):
        """not-contains holds for a patient with no medication list"""
        condition = _condition(ConditionType.MEDICATION, "medications", ConditionOperator.NOT_CONTAINS, ["warfarin"])
        assert resolve_context_value(condition, PatientContext()) == []
        assert evaluate_condition(condition, PatientContext())

    def test_lab_and_assessment_lookup(self):
        """Test lab value and assessment score lookup"""
        context = PatientContext(
            lab_values={"creatinine": LabResult(value=1.8, unit="mg/dL", date="2024-05-01")},
            assessment_scores={"gad7": AssessmentScore(score=16, date="2024-05-01")}
        )
        creatinine = _condition(ConditionType.LAB_VALUE, "creatinine", ConditionOperator.GREATER_THAN, 1.5)
        potassium = _condition(ConditionType.LAB_VALUE, "potassium", ConditionOperator.GREATER_THAN, 5)
        gad7 = _condition(ConditionType.ASSESSMENT_SCORE, "gad7", ConditionOperator.GREATER_EQUAL, 15)
        assert evaluate_condition(creatinine, context)
        assert not evaluate_condition(potassium, context)
        assert evaluate_condition(gad7, context)

    def test_unknown_condition_type_is_false(self):
        """Test that an unknown condition type never matches"""
        condition = CDSCondition.model_construct(
            type="blood-type", field="abo", operator=ConditionOperator.EQUALS, value="O"
        )
        assert resolve_context_value(condition, PatientContext()) is None
        assert not evaluate_condition(condition, PatientContext())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
