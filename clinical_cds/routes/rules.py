"""
Clinical CDS - Rule Engine API Routes
Patient evaluation, running alert list and rule catalog administration
"""

import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status

from clinical_cds.schemas import (
    CDSAlert, CDSRule, DismissAlertRequest, PatientContext, RuleCategory,
    RuleStats, RuleToggleRequest
)
from clinical_cds.modules.clinical_rules import CDSRulesEngine, get_rules_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/cds", tags=["Clinical Decision Support"])


@router.post("/evaluate", response_model=List[CDSAlert])
async def evaluate_patient(
    context: PatientContext,
    engine: CDSRulesEngine = Depends(get_rules_engine)
):
    """
    Evaluate the rule catalog against a patient context

    Alerts are returned highest priority first. They are not saved to the
    patient's history; use the history endpoints for that.
    """
    alerts = engine.evaluate_patient(context)
    logger.info(f"Generated {len(alerts)} CDS alerts")
    return alerts


# =============================================================================
# Running Alert List
# =============================================================================

@router.get("/alerts", response_model=List[CDSAlert])
async def list_alerts(
    active_only: bool = Query(False, description="Exclude dismissed alerts"),
    engine: CDSRulesEngine = Depends(get_rules_engine)
):
    """
    Alerts triggered since startup (or the last clear), oldest first

    The list spans every evaluated patient and each alert carries a copy of
    that patient's context; it holds at most settings.running_alert_limit
    alerts.
    """
    return engine.get_active_alerts() if active_only else engine.get_alerts()


@router.post("/alerts/dismiss")
async def dismiss_running_alert(
    request: DismissAlertRequest,
    engine: CDSRulesEngine = Depends(get_rules_engine)
):
    """Dismiss an alert from the running list by its alert key"""
    if not engine.dismiss_alert(request.alert_key):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active alert with key {request.alert_key}"
        )
    return {"status": "success", "alert_key": request.alert_key}


@router.delete("/alerts")
async def clear_running_alerts(engine: CDSRulesEngine = Depends(get_rules_engine)):
    """Clear the running alert list"""
    engine.clear_alerts()
    return {"status": "success"}


# =============================================================================
# Rule Catalog
# =============================================================================

@router.get("/rules", response_model=List[CDSRule])
async def list_rules(engine: CDSRulesEngine = Depends(get_rules_engine)):
    """All rules in evaluation order"""
    return engine.get_rules()


@router.get("/rules/stats", response_model=RuleStats)
async def get_rule_stats(engine: CDSRulesEngine = Depends(get_rules_engine)):
    """Rule counts by category and priority"""
    return engine.get_rule_stats()


@router.get("/rules/category/{category}", response_model=List[CDSRule])
async def list_rules_by_category(
    category: RuleCategory,
    engine: CDSRulesEngine = Depends(get_rules_engine)
):
    return engine.get_rules_by_category(category)


@router.post("/rules", response_model=CDSRule, status_code=status.HTTP_201_CREATED)
async def add_rule(rule: CDSRule, engine: CDSRulesEngine = Depends(get_rules_engine)):
    """Append a custom rule to the catalog"""
    try:
        engine.add_rule(rule)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.info(f"Added CDS rule {rule.id}")
    return rule


@router.patch("/rules/{rule_id}", response_model=CDSRule)
async def toggle_rule(
    rule_id: str,
    request: RuleToggleRequest,
    engine: CDSRulesEngine = Depends(get_rules_engine)
):
    """Enable or disable a rule"""
    if not engine.toggle_rule(rule_id, request.enabled):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Rule {rule_id} not found"
        )
    return engine.get_rule(rule_id)
