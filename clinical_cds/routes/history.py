"""
Clinical CDS - Alert History API Routes
Persisted alerts, lifecycle transitions, audit trail, statistics and retention
"""

import logging
from typing import Callable, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from clinical_cds.schemas import (
    CDSAlert, CDSAlertHistory, CDSAuditLog, CDSHistoryExport, FollowUpRequest,
    LifecycleRequest, PatientCDSStats, RetentionResult
)
from clinical_cds.modules.cds_history import CDSHistoryManager, get_history_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["CDS Alert History"])


# =============================================================================
# Patient History
# =============================================================================

@router.post("/patients/{patient_id}/cds/history", status_code=status.HTTP_201_CREATED)
async def save_alert_to_history(
    patient_id: str,
    alert: CDSAlert,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    """Persist a triggered alert to the patient's history as active"""
    history_id = manager.save_alert_to_history(patient_id, alert)
    return {"history_id": history_id}


@router.get("/patients/{patient_id}/cds/history", response_model=List[CDSAlertHistory])
async def get_patient_alert_history(
    patient_id: str,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return manager.get_patient_alert_history(patient_id)


@router.get("/patients/{patient_id}/cds/active", response_model=List[CDSAlertHistory])
async def get_active_alerts(
    patient_id: str,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return manager.get_active_alerts(patient_id)


@router.get("/patients/{patient_id}/cds/stats", response_model=PatientCDSStats)
async def get_patient_cds_stats(
    patient_id: str,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return manager.get_patient_cds_stats(patient_id)


@router.get("/patients/{patient_id}/cds/audit", response_model=List[CDSAuditLog])
async def get_patient_audit_log(
    patient_id: str,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return manager.get_audit_log(patient_id)


@router.get("/patients/{patient_id}/cds/export", response_model=CDSHistoryExport)
async def export_patient_cds_history(
    patient_id: str,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    """History, audit trail and statistics for one patient"""
    return manager.export_patient_cds_history(patient_id)


# =============================================================================
# Lifecycle Transitions
# =============================================================================

def _apply_transition(
    manager: CDSHistoryManager,
    history_id: str,
    transition: Callable[..., bool],
    request: Optional[LifecycleRequest]
) -> CDSAlertHistory:
    request = request or LifecycleRequest()
    if manager.get_history_entry(history_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"History entry {history_id} not found"
        )

    if not transition(history_id, request.user_id, request.notes):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"History entry {history_id} cannot make this transition"
        )

    return manager.get_history_entry(history_id)


@router.post("/cds/history/{history_id}/acknowledge", response_model=CDSAlertHistory)
async def acknowledge_alert(
    history_id: str,
    request: Optional[LifecycleRequest] = None,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return _apply_transition(manager, history_id, manager.acknowledge_alert, request)


@router.post("/cds/history/{history_id}/dismiss", response_model=CDSAlertHistory)
async def dismiss_alert(
    history_id: str,
    request: Optional[LifecycleRequest] = None,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return _apply_transition(manager, history_id, manager.dismiss_alert, request)


@router.post("/cds/history/{history_id}/resolve", response_model=CDSAlertHistory)
async def resolve_alert(
    history_id: str,
    request: Optional[LifecycleRequest] = None,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return _apply_transition(manager, history_id, manager.resolve_alert, request)


@router.post("/cds/history/{history_id}/follow-up", response_model=CDSAlertHistory)
async def add_follow_up(
    history_id: str,
    request: FollowUpRequest,
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    if not manager.add_follow_up(history_id, request.follow_up_date, request.notes):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"History entry {history_id} not found"
        )
    return manager.get_history_entry(history_id)


# =============================================================================
# Cross-Patient Reads & Retention
# =============================================================================

@router.get("/cds/follow-ups", response_model=List[CDSAlertHistory])
async def get_follow_up_alerts(
    patient_id: Optional[str] = Query(None, description="Limit to one patient"),
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return manager.get_follow_up_alerts(patient_id)


@router.get("/cds/audit", response_model=List[CDSAuditLog])
async def get_audit_log(
    patient_id: Optional[str] = Query(None, description="Limit to one patient"),
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    return manager.get_audit_log(patient_id)


@router.post("/cds/history/cleanup", response_model=RetentionResult)
async def cleanup_old_history(
    retention_days: Optional[int] = Query(None, ge=0, le=3650),
    audit_retention_days: Optional[int] = Query(None, ge=0, le=3650),
    manager: CDSHistoryManager = Depends(get_history_manager)
):
    """Apply the retention policy now; the audit period may not be shorter than the history period"""
    try:
        result = manager.cleanup_old_history(retention_days, audit_retention_days)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    logger.info(f"Retention cleanup removed {result.total_removed} entries")
    return result
