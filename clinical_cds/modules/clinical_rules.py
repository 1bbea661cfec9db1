"""
Clinical CDS Rules Engine
Evaluates the declarative rule catalog against a patient context
"""

import logging
from collections import Counter, deque
from datetime import datetime
from typing import Callable, Deque, Iterable, List, Optional

from clinical_cds.schemas import (
    CDSAlert, CDSRule, PatientContext, PRIORITY_RANK, RuleCategory, RuleStats,
    utc_now
)
from clinical_cds.modules.conditions import evaluate_condition
from clinical_cds.modules.rule_catalog import build_default_catalog
from clinical_cds.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Clinical Rules Engine
# =============================================================================

class CDSRulesEngine:
    """
    Clinical decision support rules engine

    Holds its own rule catalog and a running list of triggered alerts. The
    running list is separate from persisted alert history: saving an alert
    to history is an explicit caller action.
    """

    def __init__(
        self,
        rules: Optional[Iterable[CDSRule]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        alert_limit: Optional[int] = None
    ):
        """
        Initialize rules engine

        Args:
            rules: Rule catalog in evaluation order (default: built-in catalog)
            clock: Source of evaluation timestamps
            alert_limit: Size of the running alert list; the oldest alerts are
                dropped first (default: settings.running_alert_limit)
        """
        self._rules: List[CDSRule] = []
        self._alerts: Deque[CDSAlert] = deque(
            maxlen=alert_limit if alert_limit is not None else settings.running_alert_limit
        )
        self._clock = clock or utc_now

        for rule in (build_default_catalog() if rules is None else rules):
            self.add_rule(rule)

        logger.info(f"Initialized CDS rules engine with {len(self._rules)} rules")

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate_rule(self, rule: CDSRule, context: PatientContext) -> bool:
        """A rule matches when every condition holds; no conditions always matches"""
        return all(evaluate_condition(condition, context) for condition in rule.conditions)

    def evaluate_patient(self, context: PatientContext) -> List[CDSAlert]:
        """
        Evaluate all enabled rules against a patient context

        Args:
            context: Patient context snapshot

        Returns:
            One alert per action of each matching rule, highest priority first
        """
        triggered_at = self._clock()
        triggered: List[CDSAlert] = []

        for rule in self._rules:
            if not rule.enabled:
                continue

            try:
                matched = self.evaluate_rule(rule, context)
            except Exception as e:
                logger.error(f"Error evaluating rule {rule.id}: {e}", exc_info=True)
                continue

            if not matched:
                continue

            logger.info(f"Rule {rule.id} triggered {len(rule.actions)} alerts")
            for action in rule.actions:
                triggered.append(CDSAlert(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    category=rule.category,
                    priority=rule.priority,
                    action=action,
                    triggered_at=triggered_at,
                    patient_context=context.model_copy(deep=True),
                    dismissed=False
                ))

        self._alerts.extend(triggered)

        # Stable: equal priorities keep catalog order
        triggered.sort(key=lambda a: -PRIORITY_RANK[a.priority])

        logger.info(f"Total CDS alerts generated: {len(triggered)}")
        return triggered

    # =========================================================================
    # Running Alert List
    # =========================================================================

    def get_alerts(self) -> List[CDSAlert]:
        """Alerts triggered by this engine instance, up to the running list limit"""
        return list(self._alerts)

    def get_active_alerts(self) -> List[CDSAlert]:
        """Alerts not yet dismissed from the running list"""
        return [a for a in self._alerts if not a.dismissed]

    def dismiss_alert(self, alert_key: str) -> bool:
        """
        Dismiss an alert in the running list

        Args:
            alert_key: "<rule id>-<triggered_at ISO>" identifier

        Returns:
            True if a matching undismissed alert was found
        """
        for alert in self._alerts:
            if not alert.dismissed and alert.alert_key == alert_key:
                alert.dismissed = True
                return True
        return False

    def clear_alerts(self) -> None:
        self._alerts.clear()

    # =========================================================================
    # Catalog Management
    # =========================================================================

    def get_rules(self) -> List[CDSRule]:
        return list(self._rules)

    def get_rule(self, rule_id: str) -> Optional[CDSRule]:
        return next((r for r in self._rules if r.id == rule_id), None)

    def get_rules_by_category(self, category: RuleCategory) -> List[CDSRule]:
        """Get all rules in a specific category"""
        return [r for r in self._rules if r.category == category]

    def add_rule(self, rule: CDSRule) -> None:
        """
        Append a rule to the end of the catalog

        Raises:
            ValueError: if a rule with the same id already exists
        """
        if self.get_rule(rule.id) is not None:
            raise ValueError(f"Rule {rule.id} already exists")
        self._rules.append(rule)

    def toggle_rule(self, rule_id: str, enabled: bool) -> bool:
        """Enable or disable a rule in place; False if the id is unknown"""
        for index, rule in enumerate(self._rules):
            if rule.id == rule_id:
                self._rules[index] = rule.model_copy(update={"enabled": enabled})
                logger.info(f"Rule {rule_id} {'enabled' if enabled else 'disabled'}")
                return True
        return False

    def get_rule_stats(self) -> RuleStats:
        """Counts of rules by category and priority"""
        by_category = Counter(r.category.value for r in self._rules)
        by_priority = Counter(r.priority.value for r in self._rules)
        return RuleStats(
            total=len(self._rules),
            enabled=sum(1 for r in self._rules if r.enabled),
            by_category=dict(by_category),
            by_priority=dict(by_priority)
        )


# =============================================================================
# Public API
# =============================================================================

def evaluate_cds_rules(
    context: PatientContext,
    rules: Optional[Iterable[CDSRule]] = None
) -> List[CDSAlert]:
    """
    Evaluate the rule catalog against a patient context

    Args:
        context: Patient context snapshot
        rules: Optional rule catalog (default: built-in catalog)

    Returns:
        Priority-sorted list of alerts
    """
    engine = CDSRulesEngine(rules=rules)
    return engine.evaluate_patient(context)


_rules_engine: Optional[CDSRulesEngine] = None


def get_rules_engine() -> CDSRulesEngine:
    """Get or create the global rules engine over the default catalog"""
    global _rules_engine
    if _rules_engine is None:
        _rules_engine = CDSRulesEngine()
    return _rules_engine
