"""Rules service layer - condition evaluation, rule engine, and rule management."""

from __future__ import annotations

import json
import logging
import re
from collections import defaultdict
from typing import Any, Callable, Iterable

from sqlmodel import Session, select

from trust_anchor.core.errors import NotFoundError
from trust_anchor.core.models import TransactionRule, User, utcnow

from .schemas import (
    ActionDetail,
    EvaluationResult,
    RuleAction,
    RuleConflict,
    RuleCreate,
    RuleUpdate,
    TriggeredRule,
)

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10

# Highest precedence first. The first action present wins.
ACTION_PRECEDENCE = [
    RuleAction.AUTO_BLOCK.value,
    RuleAction.ESCALATE_TO_CASE.value,
    RuleAction.FLAG.value,
    RuleAction.REQUIRE_ADDITIONAL_VERIFICATION.value,
    RuleAction.AUTO_APPROVE.value,
]

# Quick-rule `type` -> condition attribute. "pattern" has no evaluable attribute.
QUICK_RULE_ATTRIBUTES = {
    "amount": "amount",
    "country": "country",
    "velocity": "velocity",
}


# =============================================================================
# Attribute resolution
# =============================================================================


def _velocity(tx: dict, enriched: dict) -> Any:
    return (enriched.get("velocity_history") or {}).get("transactions_24h")


def _ip_risk(tx: dict, enriched: dict) -> int:
    geo_ip = enriched.get("geo_ip") or {}
    return 1 if geo_ip.get("is_vpn") or geo_ip.get("is_proxy") else 0


ATTRIBUTE_RESOLVERS: dict[str, Callable[[dict, dict], Any]] = {
    "amount": lambda tx, enriched: tx.get("amount"),
    "country": lambda tx, enriched: tx.get("counterparty_country"),
    "currency": lambda tx, enriched: tx.get("currency"),
    "transaction_type": lambda tx, enriched: tx.get("type"),
    "counterparty_name": lambda tx, enriched: tx.get("counterparty_name"),
    "velocity": _velocity,
    "risk_score": lambda tx, enriched: tx.get("risk_score"),
    "device_fingerprint": lambda tx, enriched: tx.get("device_fingerprint"),
    "ip_address": _ip_risk,
}


# =============================================================================
# Condition evaluation
# =============================================================================


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _loose_equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    a, b = _to_float(actual), _to_float(expected)
    if a is not None and b is not None:
        return a == b
    return str(actual) == str(expected)


def evaluate_condition(condition: dict, transaction: dict, enriched: dict | None = None) -> bool:
    """Evaluate one attribute/operator/value condition.

    A missing attribute value, an unparseable number, an invalid regex or an
    unknown operator all evaluate to False.
    """
    enriched = enriched or {}
    resolver = ATTRIBUTE_RESOLVERS.get(condition.get("attribute"))
    if resolver is None:
        return False

    actual = resolver(transaction, enriched)
    if actual is None:
        return False

    op = condition.get("operator")
    expected = condition.get("value")

    if op in ("greater_than", "less_than"):
        a, b = _to_float(actual), _to_float(expected)
        if a is None or b is None:
            return False
        return a > b if op == "greater_than" else a < b

    if op == "equals":
        return _loose_equals(actual, expected)

    if op == "contains":
        return str(expected) in str(actual)

    if op == "in_list":
        return isinstance(expected, list) and actual in expected

    if op == "between":
        if not isinstance(expected, list) or len(expected) != 2:
            return False
        a, low, high = _to_float(actual), _to_float(expected[0]), _to_float(expected[1])
        if a is None or low is None or high is None:
            return False
        return low <= a <= high

    if op == "matches_pattern":
        try:
            return re.search(str(expected), str(actual)) is not None
        except re.error:
            return False

    return False


# =============================================================================
# Rule normalization
# =============================================================================


def rule_conditions(rule: TransactionRule) -> list[dict]:
    """Conditions for a rule, converting the quick-rule shape when needed."""
    if rule.conditions:
        return list(rule.conditions)

    attribute = QUICK_RULE_ATTRIBUTES.get(rule.type or "")
    if attribute is None:
        return []
    return [{
        "attribute": attribute,
        "operator": rule.condition or "equals",
        "value": rule.value,
    }]


def rule_action(rule: TransactionRule) -> dict | None:
    """Automated action for a rule, converting the quick-rule shape when needed."""
    if rule.automated_actions and rule.automated_actions.get("action_type"):
        return rule.automated_actions
    if rule.action:
        return {"action_type": rule.action}
    return None


def _is_quick_rule(rule: TransactionRule) -> bool:
    return not rule.conditions and rule.type is not None


# =============================================================================
# Rule Engine
# =============================================================================


class RuleEngine:
    """Evaluates an organization's transaction rules against a transaction."""

    def __init__(self, clock: Callable = utcnow):
        self.clock = clock

    def evaluate(
        self,
        rules: Iterable[TransactionRule],
        transaction: dict,
        enriched: dict | None = None,
    ) -> tuple[EvaluationResult, list[TransactionRule]]:
        """Evaluate enabled rules in priority order.

        Returns the evaluation result and the rule records that triggered.
        Triggered records get their metrics stamped; the caller persists them.
        """
        enriched = enriched or {}
        active = [r for r in rules if r.enabled]
        active.sort(key=lambda r: r.priority if r.priority is not None else DEFAULT_PRIORITY)

        triggered: list[TriggeredRule] = []
        fired: list[TransactionRule] = []
        actions: dict[str, list[ActionDetail]] = defaultdict(list)

        for rule in active:
            matched = self._matches(rule, transaction, enriched)
            if matched is None:
                continue

            triggered.append(
                TriggeredRule(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    priority=rule.priority if rule.priority is not None else DEFAULT_PRIORITY,
                    matched_conditions=matched,
                )
            )

            action = rule_action(rule)
            if action:
                actions[action["action_type"]].append(
                    ActionDetail(
                        rule_id=rule.id,
                        action_type=action["action_type"],
                        priority=action.get("escalation_priority"),
                        assign_to_group=action.get("assign_to_group"),
                        notify=bool(action.get("notify_on_trigger", False)),
                    )
                )

            rule.triggered_count = (rule.triggered_count or 0) + 1
            rule.last_triggered = self.clock()
            fired.append(rule)

        final_action = next((a for a in ACTION_PRECEDENCE if a in actions), None)

        result = EvaluationResult(
            triggered_rules=triggered,
            final_action=final_action,
            action_details=dict(actions),
            enrichment_used=[k for k, v in enriched.items() if v],
        )
        return result, fired

    def _matches(self, rule: TransactionRule, transaction: dict, enriched: dict) -> int | None:
        """Return the number of matched conditions, or None if the rule did not trigger."""
        conditions = rule_conditions(rule)
        if not conditions:
            return None

        if rule.rule_type == "simple" or _is_quick_rule(rule):
            return 1 if evaluate_condition(conditions[0], transaction, enriched) else None

        results = [evaluate_condition(c, transaction, enriched) for c in conditions]
        if (rule.logic or "AND").upper() == "OR":
            hit = any(results)
        else:
            hit = all(results)
        return sum(results) if hit else None


# =============================================================================
# Rule management
# =============================================================================


def list_rules(session: Session, organization_id: str | None, enabled_only: bool = False) -> list[TransactionRule]:
    """Rules for an organization in evaluation order."""
    query = select(TransactionRule).where(TransactionRule.organization_id == organization_id)
    if enabled_only:
        query = query.where(TransactionRule.enabled == True)  # noqa: E712
    rules = list(session.exec(query).all())
    rules.sort(key=lambda r: (r.priority if r.priority is not None else DEFAULT_PRIORITY, r.created_date))
    return rules


def get_rule(session: Session, rule_id: str, organization_id: str | None = None) -> TransactionRule:
    rule = session.get(TransactionRule, rule_id)
    if rule is None or (organization_id is not None and rule.organization_id != organization_id):
        raise NotFoundError(f"Rule '{rule_id}' not found")
    return rule


def create_rule(session: Session, user: User, data: RuleCreate) -> TransactionRule:
    """Persist a validated rule in the caller's organization."""
    org_id = data.organization_id if (user.role == "admin" and data.organization_id) else user.organization_id
    payload = data.model_dump(mode="json", exclude={"organization_id"})
    rule = TransactionRule(organization_id=org_id, **payload)
    session.add(rule)
    session.commit()
    session.refresh(rule)
    logger.info("Created rule %s (%s) for organization %s", rule.id, rule.name, org_id)
    return rule


def update_rule(session: Session, user: User, rule_id: str, data: RuleUpdate) -> TransactionRule:
    org_scope = None if user.role == "admin" else user.organization_id
    rule = get_rule(session, rule_id, org_scope)
    for key, value in data.model_dump(mode="json", exclude_unset=True).items():
        setattr(rule, key, value)
    rule.updated_date = utcnow()
    session.add(rule)
    session.commit()
    session.refresh(rule)
    return rule


def evaluate_for_organization(
    session: Session,
    organization_id: str | None,
    transaction: dict,
    enriched: dict | None = None,
    engine: RuleEngine | None = None,
) -> EvaluationResult:
    """Evaluate an organization's enabled rules and persist trigger metrics."""
    engine = engine or RuleEngine()
    rules = list_rules(session, organization_id, enabled_only=True)
    result, fired = engine.evaluate(rules, transaction, enriched)
    for rule in fired:
        session.add(rule)
    if fired:
        session.commit()
    return result


def _condition_key(rule: TransactionRule) -> str:
    conditions = sorted(json.dumps(c, sort_keys=True) for c in rule_conditions(rule))
    logic = "SIMPLE" if rule.rule_type == "simple" else (rule.logic or "AND").upper()
    return f"{logic}|{'|'.join(conditions)}"


def find_conflicts(rules: Iterable[TransactionRule]) -> list[RuleConflict]:
    """Find enabled rules with identical conditions that request different actions."""
    by_key: dict[str, list[TransactionRule]] = defaultdict(list)
    for rule in rules:
        if rule.enabled and rule_conditions(rule):
            by_key[_condition_key(rule)].append(rule)

    conflicts = []
    for group in by_key.values():
        for i, a in enumerate(group):
            for b in group[i + 1:]:
                action_a = (rule_action(a) or {}).get("action_type")
                action_b = (rule_action(b) or {}).get("action_type")
                if action_a != action_b:
                    conflicts.append(
                        RuleConflict(
                            rule_a=a.id,
                            rule_b=b.id,
                            action_a=action_a,
                            action_b=action_b,
                            reason="Identical conditions with different actions",
                        )
                    )
    return conflicts
