"""
Clinical CDS Rule Catalog
Guideline-based rule definitions evaluated by the rules engine
"""

import logging
from typing import List, Optional

from clinical_cds.schemas import (
    ActionSeverity, ActionType, CDSAction, CDSCondition, CDSRule,
    ConditionOperator, ConditionType, RuleCategory, RulePriority
)
from clinical_cds.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

ACE_INHIBITORS = ["lisinopril", "enalapril", "captopril", "ace inhibitor"]


def _medication_condition(names: List[str]) -> CDSCondition:
    return CDSCondition(
        type=ConditionType.MEDICATION,
        field="medications",
        operator=ConditionOperator.CONTAINS,
        value=names
    )


# =============================================================================
# Drug Interaction Rules
# =============================================================================

ACE_POTASSIUM_INTERACTION = CDSRule(
    id="drug-interaction-ace-potassium",
    name="ACE Inhibitor + Potassium Supplement Interaction",
    category=RuleCategory.DRUG_INTERACTION,
    priority=RulePriority.HIGH,
    conditions=[
        _medication_condition(ACE_INHIBITORS),
        _medication_condition(["potassium", "k-dur", "potassium chloride"]),
    ],
    actions=[
        CDSAction(
            type=ActionType.DRUG_INTERACTION,
            message="Potential hyperkalemia risk: ACE inhibitor combined with potassium supplement.",
            severity=ActionSeverity.WARNING,
            action_required=True,
            suggested_action="Monitor serum potassium levels closely. Consider dose adjustment or alternative therapy."
        )
    ],
    sources=["ACC/AHA Hypertension Guidelines 2017"]
)

WARFARIN_NSAID_BLEEDING = CDSRule(
    id="drug-interaction-warfarin-nsaid",
    name="Warfarin + NSAID Bleeding Risk",
    category=RuleCategory.DRUG_INTERACTION,
    priority=RulePriority.CRITICAL,
    conditions=[
        _medication_condition(["warfarin", "coumadin"]),
        _medication_condition(["ibuprofen", "naproxen", "nsaid", "aspirin"]),
    ],
    actions=[
        CDSAction(
            type=ActionType.DRUG_INTERACTION,
            message="CRITICAL: Increased bleeding risk with warfarin and NSAID combination.",
            severity=ActionSeverity.CRITICAL,
            action_required=True,
            suggested_action=(
                "Consider alternative pain management. If combination necessary, "
                "monitor INR closely and educate patient on bleeding signs."
            )
        )
    ],
    sources=["CHEST Antithrombotic Guidelines", "ACC/AHA Atrial Fibrillation Guidelines"]
)


# =============================================================================
# Contraindication Rules
# =============================================================================

ACE_PREGNANCY_CONTRAINDICATION = CDSRule(
    id="contraindication-ace-pregnancy",
    name="ACE Inhibitor Pregnancy Contraindication",
    category=RuleCategory.CONTRAINDICATION,
    priority=RulePriority.CRITICAL,
    conditions=[
        CDSCondition(type=ConditionType.GENDER, field="gender", operator=ConditionOperator.EQUALS, value="female"),
        CDSCondition(type=ConditionType.AGE, field="age", operator=ConditionOperator.GREATER_EQUAL, value=15),
        CDSCondition(type=ConditionType.AGE, field="age", operator=ConditionOperator.LESS_EQUAL, value=50),
        _medication_condition(ACE_INHIBITORS),
    ],
    actions=[
        CDSAction(
            type=ActionType.CONTRAINDICATION,
            message="CONTRAINDICATION: ACE inhibitors are contraindicated in pregnancy (Category D).",
            severity=ActionSeverity.CRITICAL,
            action_required=True,
            suggested_action=(
                "Verify pregnancy status. If pregnant, discontinue ACE inhibitor immediately "
                "and consider methyldopa or labetalol."
            )
        )
    ],
    sources=["ACOG Hypertension in Pregnancy Guidelines"]
)

METFORMIN_KIDNEY_CONTRAINDICATION = CDSRule(
    id="contraindication-metformin-kidney",
    name="Metformin Kidney Function Contraindication",
    category=RuleCategory.CONTRAINDICATION,
    priority=RulePriority.HIGH,
    conditions=[
        _medication_condition(["metformin"]),
        CDSCondition(
            type=ConditionType.LAB_VALUE,
            field="creatinine",
            operator=ConditionOperator.GREATER_THAN,
            value=1.5,
            unit="mg/dL"
        ),
    ],
    actions=[
        CDSAction(
            type=ActionType.CONTRAINDICATION,
            message="CAUTION: Metformin use with elevated creatinine (>1.5 mg/dL) increases lactic acidosis risk.",
            severity=ActionSeverity.WARNING,
            action_required=True,
            suggested_action="Calculate eGFR. Consider dose reduction or discontinuation if eGFR <30 mL/min/1.73m²."
        )
    ],
    sources=["ADA Standards of Care in Diabetes"]
)


# =============================================================================
# Vital Signs Rules
# =============================================================================

HYPERTENSIVE_CRISIS = CDSRule(
    id="vital-signs-hypertensive-crisis",
    name="Hypertensive Crisis Alert",
    category=RuleCategory.VITAL_SIGNS,
    priority=RulePriority.CRITICAL,
    conditions=[
        CDSCondition(type=ConditionType.VITAL_SIGN, field="systolicBP", operator=ConditionOperator.GREATER_EQUAL, value=180),
        CDSCondition(type=ConditionType.VITAL_SIGN, field="diastolicBP", operator=ConditionOperator.GREATER_EQUAL, value=120),
    ],
    actions=[
        CDSAction(
            type=ActionType.ALERT,
            message="HYPERTENSIVE CRISIS: BP ≥180/120 mmHg requires immediate evaluation.",
            severity=ActionSeverity.CRITICAL,
            action_required=True,
            suggested_action=(
                "Assess for target organ damage. Consider emergency/urgent treatment "
                "based on symptoms and end-organ involvement."
            )
        )
    ],
    sources=["ACC/AHA Hypertension Guidelines 2017"]
)

SEVERE_HYPOTENSION = CDSRule(
    id="vital-signs-severe-hypotension",
    name="Severe Hypotension Alert",
    category=RuleCategory.VITAL_SIGNS,
    priority=RulePriority.HIGH,
    conditions=[
        CDSCondition(type=ConditionType.VITAL_SIGN, field="systolicBP", operator=ConditionOperator.LESS_THAN, value=90),
    ],
    actions=[
        CDSAction(
            type=ActionType.ALERT,
            message="HYPOTENSION: Systolic BP <90 mmHg may indicate hemodynamic compromise.",
            severity=ActionSeverity.WARNING,
            action_required=True,
            suggested_action=(
                "Assess patient symptoms, volume status, and consider causes. "
                "May need IV fluids or vasopressor support."
            )
        )
    ],
    sources=["Surviving Sepsis Campaign Guidelines"]
)


# =============================================================================
# Assessment Score Rules
# =============================================================================

SEVERE_DEPRESSION = CDSRule(
    id="assessment-severe-depression",
    name="Severe Depression PHQ-9 Alert",
    category=RuleCategory.ASSESSMENT_SCORE,
    priority=RulePriority.HIGH,
    conditions=[
        CDSCondition(type=ConditionType.ASSESSMENT_SCORE, field="phq9", operator=ConditionOperator.GREATER_EQUAL, value=20),
    ],
    actions=[
        CDSAction(
            type=ActionType.ALERT,
            message="SEVERE DEPRESSION: PHQ-9 score ≥20 indicates severe depression.",
            severity=ActionSeverity.WARNING,
            action_required=True,
            suggested_action=(
                "Assess suicide risk immediately. Consider psychiatric referral and "
                "intensive treatment. Monitor closely."
            )
        )
    ],
    sources=["APA Practice Guidelines for Major Depressive Disorder"]
)

SUICIDE_RISK = CDSRule(
    id="assessment-suicide-risk",
    name="PHQ-9 Suicide Risk Assessment",
    category=RuleCategory.ASSESSMENT_SCORE,
    priority=RulePriority.CRITICAL,
    conditions=[
        CDSCondition(
            type=ConditionType.ASSESSMENT_SCORE,
            field="phq9-question9",
            operator=ConditionOperator.GREATER_THAN,
            value=0
        ),
    ],
    actions=[
        CDSAction(
            type=ActionType.ALERT,
            message="SUICIDE RISK: Patient endorsed suicidal ideation on PHQ-9 Question 9.",
            severity=ActionSeverity.CRITICAL,
            action_required=True,
            suggested_action=(
                "IMMEDIATE ACTION REQUIRED: Conduct comprehensive suicide risk assessment. "
                "Ensure patient safety. Consider emergency psychiatric evaluation."
            )
        )
    ],
    sources=["Columbia Suicide Severity Rating Scale", "APA Practice Guidelines"]
)

SEVERE_ANXIETY = CDSRule(
    id="assessment-severe-anxiety",
    name="Severe Anxiety GAD-7 Alert",
    category=RuleCategory.ASSESSMENT_SCORE,
    priority=RulePriority.MEDIUM,
    conditions=[
        CDSCondition(type=ConditionType.ASSESSMENT_SCORE, field="gad7", operator=ConditionOperator.GREATER_EQUAL, value=15),
    ],
    actions=[
        CDSAction(
            type=ActionType.ALERT,
            message="SEVERE ANXIETY: GAD-7 score ≥15 indicates severe anxiety disorder.",
            severity=ActionSeverity.WARNING,
            action_required=True,
            suggested_action=(
                "Consider evidence-based treatment: CBT, SSRI/SNRI therapy. "
                "Assess for comorbid conditions and functional impairment."
            )
        )
    ],
    sources=["APA Practice Guidelines for Anxiety Disorders"]
)


# =============================================================================
# Preventive Care Rules
# =============================================================================

DIABETES_A1C_TARGET = CDSRule(
    id="preventive-diabetes-a1c",
    name="Diabetes A1C Target Alert",
    category=RuleCategory.PREVENTIVE_CARE,
    priority=RulePriority.MEDIUM,
    conditions=[
        CDSCondition(
            type=ConditionType.DIAGNOSIS,
            field="diagnoses",
            operator=ConditionOperator.CONTAINS,
            value=["diabetes", "dm", "diabetes mellitus"]
        ),
        CDSCondition(
            type=ConditionType.LAB_VALUE,
            field="a1c",
            operator=ConditionOperator.GREATER_THAN,
            value=7.0,
            unit="%"
        ),
    ],
    actions=[
        CDSAction(
            type=ActionType.RECOMMENDATION,
            message="DIABETES MANAGEMENT: A1C >7% is above target for most adults with diabetes.",
            severity=ActionSeverity.INFO,
            action_required=False,
            suggested_action=(
                "Consider intensifying diabetes therapy. Review lifestyle modifications, "
                "medication adherence, and barriers to care."
            )
        )
    ],
    sources=["ADA Standards of Care in Diabetes"]
)


DEFAULT_RULES: List[CDSRule] = [
    ACE_POTASSIUM_INTERACTION,
    WARFARIN_NSAID_BLEEDING,
    ACE_PREGNANCY_CONTRAINDICATION,
    METFORMIN_KIDNEY_CONTRAINDICATION,
    HYPERTENSIVE_CRISIS,
    SEVERE_HYPOTENSION,
    SEVERE_DEPRESSION,
    SUICIDE_RISK,
    SEVERE_ANXIETY,
    DIABETES_A1C_TARGET,
]


def build_default_catalog(config: Optional[Settings] = None) -> List[CDSRule]:
    """
    Build the default rule catalog

    Rule groups switched off in settings are kept in the catalog but disabled,
    so they can still be toggled on at runtime.

    Args:
        config: Settings to read rule group flags from (default: global settings)

    Returns:
        New list of rules in evaluation order
    """
    config = config or default_settings
    catalog: List[CDSRule] = []
    for rule in DEFAULT_RULES:
        if config.rule_category_enabled(rule.category.value):
            catalog.append(rule)
        else:
            catalog.append(rule.model_copy(update={"enabled": False}))

    disabled = sum(1 for r in catalog if not r.enabled)
    logger.info(f"Built CDS rule catalog with {len(catalog)} rules ({disabled} disabled)")
    return catalog
