"""
Shared fixtures for the CDS test suite
"""

from datetime import datetime, timedelta, timezone

import pytest

from clinical_cds.modules.clinical_rules import CDSRulesEngine
from clinical_cds.modules.cds_history import CDSHistoryManager
from clinical_cds.schemas import (
    AssessmentScore, LabResult, PatientContext, VitalSigns
)
from clinical_cds.services.storage import InMemoryKeyValueStore


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def engine(clock):
    return CDSRulesEngine(clock=clock)


@pytest.fixture
def manager(store, clock):
    return CDSHistoryManager.from_store(store, clock=clock)


@pytest.fixture
def crisis_context():
    """Female patient of childbearing age on lisinopril and potassium with crisis BP"""
    return PatientContext(
        age=35,
        gender="female",
        medications=["lisinopril", "potassium chloride"],
        vitals=VitalSigns(systolic_bp=185, diastolic_bp=125)
    )


@pytest.fixture
def depression_context():
    return PatientContext(
        age=42,
        gender="male",
        assessment_scores={
            "phq9": AssessmentScore(score=22, date="2024-05-30"),
            "phq9-question9": AssessmentScore(score=1, date="2024-05-30"),
        }
    )


@pytest.fixture
def diabetic_context():
    return PatientContext(
        age=61,
        gender="male",
        medications=["metformin"],
        diagnoses=["type 2 diabetes mellitus"],
        lab_values={
            "creatinine": LabResult(value=1.8, unit="mg/dL", date="2024-05-28"),
            "a1c": LabResult(value=8.1, unit="%", date="2024-05-28"),
        }
    )
