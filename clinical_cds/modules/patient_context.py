"""
Clinical CDS Patient Context Builder
Derives a rule-evaluation snapshot from a stored patient profile and recent measurements
"""

import logging
from datetime import date
from typing import Dict, Iterable, Optional

from clinical_cds.schemas import (
    AssessmentResult, AssessmentScore, BloodPressureReading, PatientContext,
    PatientProfile, VitalSignReading, VitalSigns, ensure_utc, utc_now
)

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Whole years between date of birth and today"""
    today = today or utc_now().date()
    return int((today - date_of_birth).days // DAYS_PER_YEAR)


def assessment_key(tool_id: str) -> str:
    """Context key for an assessment tool, e.g. 'PHQ-9' -> 'phq9'"""
    return tool_id.lower().replace("-", "")


def _latest_vitals(readings: Iterable[VitalSignReading]) -> Dict[str, VitalSignReading]:
    latest: Dict[str, VitalSignReading] = {}
    for reading in readings:
        current = latest.get(reading.type)
        if current is None or ensure_utc(reading.timestamp) > ensure_utc(current.timestamp):
            latest[reading.type] = reading
    return latest


def build_vital_signs(readings: Iterable[VitalSignReading]) -> VitalSigns:
    """Most recent value per vital sign type"""
    vitals = VitalSigns()

    for vital_type, reading in _latest_vitals(readings).items():
        value = reading.value
        if vital_type == "blood_pressure":
            if isinstance(value, BloodPressureReading):
                vitals.systolic_bp = value.systolic
                vitals.diastolic_bp = value.diastolic
            else:
                logger.warning("Ignoring blood pressure reading without systolic/diastolic values")
        elif isinstance(value, BloodPressureReading):
            logger.warning(f"Ignoring {vital_type} reading with a blood pressure value")
        else:
            setattr(vitals, vital_type, value)

    return vitals


def build_patient_context(
    profile: PatientProfile,
    vitals: Iterable[VitalSignReading] = (),
    assessments: Iterable[AssessmentResult] = (),
    today: Optional[date] = None
) -> PatientContext:
    """
    Build the patient context used for rule evaluation

    Args:
        profile: Stored patient profile
        vitals: Recorded vital signs; the latest reading per type is used
        assessments: Completed assessments; later results replace earlier ones
        today: Reference date for age calculation

    Returns:
        Patient context with lower-cased medication, allergy and diagnosis names
    """
    context = PatientContext()

    if profile.date_of_birth:
        context.age = calculate_age(profile.date_of_birth, today)

    if profile.gender:
        context.gender = profile.gender

    active_medications = [m.name.lower() for m in profile.current_medications if m.active]
    if active_medications:
        context.medications = active_medications

    if profile.allergies:
        context.allergies = [a.lower() for a in profile.allergies]

    if profile.conditions:
        context.diagnoses = [c.lower() for c in profile.conditions]

    readings = list(vitals)
    if readings:
        context.vitals = build_vital_signs(readings)

    scores: Dict[str, AssessmentScore] = {}
    for assessment in sorted(assessments, key=lambda a: ensure_utc(a.timestamp)):
        if assessment.score is None:
            continue
        scores[assessment_key(assessment.tool_id)] = AssessmentScore(
            score=assessment.score,
            date=assessment.timestamp.isoformat()
        )
    if scores:
        context.assessment_scores = scores

    return context
