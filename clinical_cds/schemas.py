"""
Clinical CDS - Clinical Decision Support Schemas
Pydantic models for rules, patient context, alerts, history and audit records
"""

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field
from typing import Optional, List, Dict, Any, Union, Annotated
from datetime import datetime, date, timezone
from enum import Enum


def utc_now() -> datetime:
    """Timezone-aware current time"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Timestamps are compared against UTC cutoffs, so every stored one is aware
UTCDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


# ============================================================================
# Enumerations - Rule Definitions
# ============================================================================

class ConditionType(str, Enum):
    """Patient data a rule condition reads"""
    AGE = "age"
    GENDER = "gender"
    MEDICATION = "medication"
    ALLERGY = "allergy"
    VITAL_SIGN = "vital-sign"
    LAB_VALUE = "lab-value"
    ASSESSMENT_SCORE = "assessment-score"
    DIAGNOSIS = "diagnosis"


class ConditionOperator(str, Enum):
    """Comparison applied between patient value and rule value"""
    EQUALS = "equals"
    GREATER_THAN = "greater-than"
    LESS_THAN = "less-than"
    GREATER_EQUAL = "greater-equal"
    LESS_EQUAL = "less-equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not-contains"


class ActionType(str, Enum):
    """Kind of output a rule action produces"""
    ALERT = "alert"
    WARNING = "warning"
    RECOMMENDATION = "recommendation"
    CONTRAINDICATION = "contraindication"
    DRUG_INTERACTION = "drug-interaction"


class ActionSeverity(str, Enum):
    """Display severity of a rule action"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RulePriority(str, Enum):
    """Rule priority levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK: Dict[RulePriority, int] = {
    RulePriority.CRITICAL: 4,
    RulePriority.HIGH: 3,
    RulePriority.MEDIUM: 2,
    RulePriority.LOW: 1,
}


class RuleCategory(str, Enum):
    """Categories of clinical rules"""
    DRUG_INTERACTION = "drug-interaction"
    CONTRAINDICATION = "contraindication"
    VITAL_SIGNS = "vital-signs"
    ASSESSMENT_SCORE = "assessment-score"
    PREVENTIVE_CARE = "preventive-care"


class AlertStatus(str, Enum):
    """Lifecycle status of a persisted alert"""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"
    RESOLVED = "resolved"


class AuditAction(str, Enum):
    """Lifecycle events recorded in the audit log"""
    ALERT_TRIGGERED = "alert_triggered"
    ALERT_ACKNOWLEDGED = "alert_acknowledged"
    ALERT_DISMISSED = "alert_dismissed"
    ALERT_RESOLVED = "alert_resolved"
    FOLLOW_UP_ADDED = "follow_up_added"


# ============================================================================
# Rule Models
# ============================================================================

RuleValue = Union[bool, int, float, str, List[str]]


class CDSCondition(BaseModel):
    """Single predicate over the patient context"""
    model_config = ConfigDict(frozen=True)

    type: ConditionType
    field: str = Field(..., description="Context field, e.g. 'systolicBP' or 'creatinine'")
    operator: ConditionOperator
    value: RuleValue
    unit: Optional[str] = None


class CDSAction(BaseModel):
    """Message emitted when a rule matches"""
    model_config = ConfigDict(frozen=True)

    type: ActionType
    message: str
    severity: ActionSeverity
    action_required: Optional[bool] = None
    suggested_action: Optional[str] = None


class CDSRule(BaseModel):
    """Declarative clinical rule; conditions are combined with AND"""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "vital-signs-severe-hypotension",
                "name": "Severe Hypotension Alert",
                "category": "vital-signs",
                "priority": "high",
                "conditions": [
                    {"type": "vital-sign", "field": "systolicBP", "operator": "less-than", "value": 90}
                ],
                "actions": [
                    {"type": "alert", "message": "HYPOTENSION", "severity": "warning"}
                ],
                "sources": ["Surviving Sepsis Campaign Guidelines"],
                "enabled": True
            }
        }
    )

    id: str = Field(..., min_length=1)
    name: str
    category: RuleCategory
    priority: RulePriority
    conditions: List[CDSCondition] = Field(default_factory=list)
    actions: List[CDSAction] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list, description="Guideline citations")
    enabled: bool = True


class RuleStats(BaseModel):
    """Catalog summary"""
    total: int
    enabled: int
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)


# ============================================================================
# Patient Context Models
# ============================================================================

class VitalSigns(BaseModel):
    """Most recent vital signs"""
    systolic_bp: Optional[float] = Field(None, ge=0, description="mmHg")
    diastolic_bp: Optional[float] = Field(None, ge=0, description="mmHg")
    heart_rate: Optional[float] = Field(None, ge=0, description="beats/min")
    temperature: Optional[float] = None
    weight: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)


class LabResult(BaseModel):
    """Laboratory value with unit"""
    value: float
    unit: str
    date: str


class AssessmentScore(BaseModel):
    """Scored assessment instrument result (PHQ-9, GAD-7, ...)"""
    score: float
    date: str


class PatientContext(BaseModel):
    """Snapshot of patient data passed into rule evaluation"""
    age: Optional[int] = Field(None, ge=0, le=150)
    gender: Optional[str] = Field(None, pattern="^(male|female|other)$")
    medications: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    diagnoses: Optional[List[str]] = None
    vitals: Optional[VitalSigns] = None
    lab_values: Optional[Dict[str, LabResult]] = None
    assessment_scores: Optional[Dict[str, AssessmentScore]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "age": 58,
                "gender": "male",
                "medications": ["lisinopril", "potassium chloride"],
                "vitals": {"systolic_bp": 185, "diastolic_bp": 125},
                "lab_values": {"creatinine": {"value": 1.2, "unit": "mg/dL", "date": "2024-05-01"}},
                "assessment_scores": {"phq9": {"score": 12, "date": "2024-05-01"}}
            }
        }


# ============================================================================
# Alert Models
# ============================================================================

class CDSAlert(BaseModel):
    """One triggered rule action"""
    rule_id: str
    rule_name: str
    category: RuleCategory
    priority: RulePriority
    action: CDSAction
    triggered_at: UTCDatetime
    patient_context: Optional[PatientContext] = None
    dismissed: bool = False

    @property
    def alert_key(self) -> str:
        """Identifier of the alert in the engine's running list"""
        return f"{self.rule_id}-{self.triggered_at.isoformat()}"


class CDSAlertHistory(BaseModel):
    """Persisted, lifecycle-tracked alert for one patient"""
    id: str
    patient_id: str
    alert: CDSAlert
    status: AlertStatus = AlertStatus.ACTIVE
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[UTCDatetime] = None
    notes: Optional[str] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[date] = None


class CDSAuditLog(BaseModel):
    """Immutable record of one lifecycle event"""
    model_config = ConfigDict(frozen=True)

    id: str
    patient_id: str
    action: AuditAction
    alert_id: str
    user_id: Optional[str] = None
    timestamp: UTCDatetime
    details: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Reporting Models
# ============================================================================

class PatientCDSStats(BaseModel):
    """Per-patient alert counts"""
    total: int = 0
    active: int = 0
    acknowledged: int = 0
    dismissed: int = 0
    resolved: int = 0
    by_severity: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)


class CDSHistoryExport(BaseModel):
    """Composite read-only snapshot for reporting"""
    patient_id: str
    history: List[CDSAlertHistory]
    audit_log: List[CDSAuditLog]
    stats: PatientCDSStats
    exported_at: UTCDatetime


class RetentionResult(BaseModel):
    """Outcome of a retention cleanup run"""
    history_cutoff: UTCDatetime
    audit_cutoff: UTCDatetime
    history_removed: int
    audit_removed: int

    @computed_field
    @property
    def total_removed(self) -> int:
        return self.history_removed + self.audit_removed


# ============================================================================
# Patient Profile Models (context builder input)
# ============================================================================

class MedicationEntry(BaseModel):
    """Medication on the patient's list"""
    name: str
    active: bool = True


class PatientProfile(BaseModel):
    """Stored patient record fields relevant to decision support"""
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, pattern="^(male|female|other)$")
    current_medications: List[MedicationEntry] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)


class BloodPressureReading(BaseModel):
    systolic: float
    diastolic: float


class VitalSignReading(BaseModel):
    """Single recorded vital sign"""
    type: str = Field(..., pattern="^(blood_pressure|heart_rate|temperature|weight|height)$")
    value: Union[BloodPressureReading, float]
    timestamp: UTCDatetime


class AssessmentResult(BaseModel):
    """Completed assessment tool result"""
    tool_id: str
    score: Optional[float] = None
    timestamp: UTCDatetime


# ============================================================================
# API Request Models
# ============================================================================

class LifecycleRequest(BaseModel):
    """Body for acknowledge / dismiss / resolve"""
    user_id: Optional[str] = None
    notes: Optional[str] = None


class FollowUpRequest(BaseModel):
    """Body for scheduling a follow-up"""
    follow_up_date: date
    notes: Optional[str] = None


class RuleToggleRequest(BaseModel):
    enabled: bool


class DismissAlertRequest(BaseModel):
    alert_key: str
