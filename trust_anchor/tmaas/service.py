"""Transaction screening, manual review, and monitoring analytics."""

from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import timedelta

from sqlmodel import Session, select

from trust_anchor.cases.service import create_case
from trust_anchor.core.errors import BadRequestError, IntegrationError, NotFoundError
from trust_anchor.core.models import (
    RuleFeedback,
    TMaaSConfig,
    Transaction,
    TransactionAlert,
    TransactionRule,
    User,
    utcnow,
)
from trust_anchor.providers.clients import AMLWatcherClient, GeoIPClient, HttpPoster
from trust_anchor.rules.schemas import RuleAction
from trust_anchor.rules.service import evaluate_for_organization

from .enrichment import enrich_transaction
from .schemas import ScreenTransactionRequest

logger = logging.getLogger(__name__)

DEFAULT_AUTO_APPROVE_THRESHOLD = 20
DEFAULT_AUTO_BLOCK_THRESHOLD = 70
FLAG_THRESHOLD = 30
FRAUD_RISK_THRESHOLD = 30

HIGH_VELOCITY_COUNT = 5
LARGE_AMOUNT = 100000
RAPID_SUCCESSION_COUNT = 2
RAPID_SUCCESSION_AMOUNT = 50000

FLAG_ACTIONS = {
    RuleAction.FLAG.value,
    RuleAction.ESCALATE_TO_CASE.value,
    RuleAction.REQUIRE_ADDITIONAL_VERIFICATION.value,
}

RESOLUTION_ACTIONS = {"blocked": "blocked", "approved": "approved", "rejected": "rejected"}


def get_risk_level(score: float) -> str:
    if score >= 75:
        return "critical"
    if score >= 50:
        return "high"
    if score >= 25:
        return "medium"
    return "low"


def get_config(session: Session, organization_id: str | None) -> TMaaSConfig:
    config = session.exec(
        select(TMaaSConfig)
        .where(TMaaSConfig.organization_id == organization_id)
        .order_by(TMaaSConfig.created_date)
    ).first()
    if config is None:
        raise BadRequestError("TMaaS not configured")
    return config


def _recent_account_transactions(
    session: Session, organization_id: str | None, from_account: str | None, window: timedelta
) -> list[Transaction]:
    if not from_account:
        return []
    since = utcnow() - window
    return list(
        session.exec(
            select(Transaction).where(
                Transaction.organization_id == organization_id,
                Transaction.from_account == from_account,
                Transaction.created_date >= since,
            )
        ).all()
    )


def _send_callback(poster: HttpPoster, url: str, data: dict) -> None:
    try:
        status_code = poster.post(url, json.dumps(data))
    except IntegrationError as e:
        logger.warning("Callback to %s failed: %s", url, e.message)
        return
    if status_code >= 400:
        logger.warning("Callback to %s returned HTTP %d", url, status_code)


def _aml_screening(aml_client: AMLWatcherClient, request: ScreenTransactionRequest) -> tuple[float, list]:
    if not aml_client.configured:
        return 0, []
    try:
        data = aml_client.screen_transaction(
            request.counterparty_name, request.counterparty_country, request.amount
        )
    except IntegrationError as e:
        logger.warning("AML screening skipped for %s: %s", request.transaction_id, e.message)
        return 0, []
    return data.get("risk_score") or 0, data.get("matches") or []


def _fraud_scoring(recent: list[Transaction], amount: float) -> tuple[int, list[str]]:
    """Velocity and amount heuristics over the account's last hour."""
    recent_count = len(recent)
    recent_amount = sum(tx.amount or 0 for tx in recent)

    score = 0
    indicators = []
    if recent_count > HIGH_VELOCITY_COUNT:
        score += 15
        indicators.append("high_velocity")
    if amount > LARGE_AMOUNT:
        score += 10
        indicators.append("large_amount")
    if recent_count > RAPID_SUCCESSION_COUNT and recent_amount > RAPID_SUCCESSION_AMOUNT:
        score += 20
        indicators.append("rapid_succession")
    return score, indicators


def screen_transaction(
    session: Session,
    user: User,
    request: ScreenTransactionRequest,
    aml_client: AMLWatcherClient,
    poster: HttpPoster,
    geoip: GeoIPClient | None = None,
) -> dict:
    """
    Screen a transaction against AML, fraud heuristics, and custom rules.

    Rules see the transaction enriched with IP geolocation and the sending
    account's 24 hour and 7 day history.

    The combined risk score and the rule engine's final action decide whether
    the transaction is approved, blocked, flagged, or left pending. Blocked and
    flagged transactions raise an alert; the outcome is posted to the
    configured callback URL.
    """
    if not request.transaction_id or not request.amount or not request.type:
        raise BadRequestError("Missing required fields")

    org_id = user.organization_id
    config = get_config(session, org_id)
    monitoring = config.monitoring_rules or {}

    screening = {"aml_score": 0, "fraud_score": 0, "aml_matches": [], "fraud_indicators": []}
    risk_score = 0.0
    flags: list[str] = []

    if monitoring.get("aml_screening"):
        aml_score, matches = _aml_screening(aml_client, request)
        screening["aml_score"] = aml_score
        screening["aml_matches"] = matches
        risk_score += aml_score
        if matches:
            flags.append("aml_match")

    if monitoring.get("fraud_detection"):
        recent = _recent_account_transactions(session, org_id, request.from_account, timedelta(hours=1))
        fraud_score, indicators = _fraud_scoring(recent, request.amount)
        screening["fraud_score"] = fraud_score
        screening["fraud_indicators"] = indicators
        risk_score += fraud_score
        if fraud_score > FRAUD_RISK_THRESHOLD:
            flags.append("fraud_risk")

    enriched = enrich_transaction(session, org_id, geoip, request.ip_address, request.from_account)
    screening["enrichment"] = enriched
    evaluation = evaluate_for_organization(
        session,
        org_id,
        {
            "amount": request.amount,
            "currency": request.currency,
            "type": request.type,
            "from_account": request.from_account,
            "to_account": request.to_account,
            "counterparty_name": request.counterparty_name,
            "counterparty_country": request.counterparty_country,
            "device_fingerprint": request.device_fingerprint,
        },
        enriched,
    )
    triggered_rules = [t.rule_name for t in evaluation.triggered_rules]
    final_action = evaluation.final_action

    approve_threshold = monitoring.get("auto_approve_threshold") or DEFAULT_AUTO_APPROVE_THRESHOLD
    block_threshold = monitoring.get("auto_block_threshold") or DEFAULT_AUTO_BLOCK_THRESHOLD

    status = "pending"
    auto_action = None
    if risk_score < approve_threshold and not triggered_rules:
        status, auto_action = "approved", "auto_approved"
    elif risk_score > block_threshold or final_action == RuleAction.AUTO_BLOCK.value:
        status, auto_action = "blocked", "auto_blocked"
        flags.append("blocked")
    elif risk_score > FLAG_THRESHOLD or final_action in FLAG_ACTIONS:
        status = "flagged"
        flags.append("flagged")

    rounded = round(risk_score)
    tx = Transaction(
        organization_id=org_id,
        user_id=request.user_id,
        transaction_id=request.transaction_id,
        amount=request.amount,
        currency=request.currency,
        type=request.type,
        from_account=request.from_account,
        to_account=request.to_account,
        counterparty_name=request.counterparty_name,
        counterparty_country=request.counterparty_country,
        ip_address=request.ip_address,
        device_fingerprint=request.device_fingerprint,
        status=status,
        risk_score=rounded,
        risk_level=get_risk_level(risk_score),
        screening_status="completed",
        screening_results=screening,
        triggered_rules=triggered_rules,
        flags=flags,
        tmaas_config_id=config.id,
    )
    session.add(tx)
    session.flush()

    if status in ("blocked", "flagged"):
        blocked = status == "blocked"
        session.add(
            TransactionAlert(
                organization_id=org_id,
                transaction_id=tx.id,
                tmaas_config_id=config.id,
                alert_type="amount_threshold" if blocked else "rule_triggered",
                severity="critical" if blocked else "high",
                details={"risk_score": rounded, "triggered_rules": triggered_rules, "flags": flags},
                transaction_amount=request.amount,
                transaction_currency=request.currency,
            )
        )

    now = utcnow()
    config.transactions_processed = (config.transactions_processed or 0) + 1
    if status == "blocked":
        config.transactions_blocked = (config.transactions_blocked or 0) + 1
    elif status == "flagged":
        config.transactions_flagged = (config.transactions_flagged or 0) + 1
    config.last_transaction_date = now
    config.updated_date = now
    session.add(config)
    session.commit()
    session.refresh(tx)

    logger.info(
        "Screened transaction %s: status=%s risk=%d rules=%d",
        request.transaction_id, status, rounded, len(triggered_rules),
    )

    if config.callback_url:
        if status in ("blocked", "flagged"):
            callback = {
                "transaction_id": tx.id,
                "status": status,
                "risk_score": rounded,
                "action": "block" if status == "blocked" else "flag",
            }
        else:
            callback = {
                "transaction_id": tx.id,
                "status": auto_action or status,
                "risk_score": rounded,
                "action": "approve",
            }
        _send_callback(poster, config.callback_url, callback)

    return {
        "success": True,
        "transaction_id": tx.id,
        "status": status,
        "risk_score": rounded,
        "action": auto_action or status,
    }


def update_transaction_status(
    session: Session,
    user: User,
    transaction_id: str | None,
    new_status: str | None,
    poster: HttpPoster,
    resolution_notes: str | None = None,
    escalate_to_case: bool = False,
) -> dict:
    """Record an analyst's review decision on a screened transaction."""
    if not transaction_id or not new_status:
        raise BadRequestError("Missing required fields")

    tx = session.get(Transaction, transaction_id)
    if tx is None or tx.organization_id != user.organization_id:
        raise NotFoundError("Transaction not found")

    now = utcnow()
    tx.status = new_status
    tx.reviewed_by = user.email
    tx.reviewed_at = now
    tx.updated_date = now
    if resolution_notes:
        tx.resolution_notes = resolution_notes
    session.add(tx)

    alert = session.exec(
        select(TransactionAlert)
        .where(TransactionAlert.transaction_id == tx.id)
        .order_by(TransactionAlert.created_date)
    ).first()
    if alert is not None:
        alert.status = "resolved"
        alert.resolution_action = RESOLUTION_ACTIONS.get(new_status, "approved")
        alert.resolution_notes = resolution_notes
        alert.reviewed_by = user.email
        alert.reviewed_at = now
        alert.updated_date = now
        session.add(alert)
    session.commit()

    if alert is not None and escalate_to_case and new_status == "blocked":
        case = create_case(
            session,
            type="transaction_review",
            subject=f"Transaction Review: {tx.transaction_id}",
            priority="high",
            description=(
                f"Blocked transaction {tx.transaction_id} for {tx.amount} {tx.currency}. "
                f"{resolution_notes or 'Requires review.'}"
            ),
            organization_id=user.organization_id,
            related_entity_type="Transaction",
            related_entity_id=tx.id,
            context_data={
                "transaction_id": tx.transaction_id,
                "amount": tx.amount,
                "currency": tx.currency,
                "risk_score": tx.risk_score,
                "triggered_rules": tx.triggered_rules,
                "flags": tx.flags,
            },
            case_number=f"TX-{tx.transaction_id[:8].upper()}",
        )
        alert.related_case_id = case.id
        session.add(alert)
        session.commit()

    config = session.exec(
        select(TMaaSConfig).where(TMaaSConfig.organization_id == user.organization_id)
    ).first()
    if config is not None and config.callback_url:
        _send_callback(
            poster,
            config.callback_url,
            {
                "transaction_id": tx.transaction_id,
                "status": new_status,
                "reviewed_by": user.email,
                "reviewed_at": now.isoformat(),
                "action": "approve" if new_status == "approved" else "reject",
            },
        )

    return {"success": True, "transaction_id": tx.id, "status": new_status}


# =============================================================================
# Analytics
# =============================================================================


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0


def _screening_performance(transactions: list[Transaction]) -> dict:
    total = len(transactions)
    by_status = Counter(t.status for t in transactions)
    critical = sum(1 for t in transactions if t.risk_level == "critical")
    now = utcnow()
    elapsed_ms = [
        ((t.reviewed_at or now) - t.created_date).total_seconds() * 1000 for t in transactions
    ]
    return {
        "total_transactions": total,
        "approved": by_status["approved"],
        "blocked": by_status["blocked"],
        "flagged": by_status["flagged"],
        "approval_rate": _pct(by_status["approved"], total),
        "block_rate": _pct(by_status["blocked"], total),
        "flag_rate": _pct(by_status["flagged"], total),
        "avg_processing_time_ms": round(sum(elapsed_ms) / total) if total else 0,
        "high_risk_transactions": critical,
        "high_risk_rate": _pct(critical, total),
    }


def _rule_effectiveness(rules: list[TransactionRule], feedback: list[RuleFeedback]) -> dict:
    metrics = {}
    for rule in rules:
        outcomes = Counter(f.actual_outcome for f in feedback if f.rule_id == rule.id)
        tp = outcomes["true_positive"]
        fp = outcomes["false_positive"]
        tn = outcomes["true_negative"]
        fn = outcomes["false_negative"]
        metrics[rule.id] = {
            "name": rule.name,
            "triggered_count": rule.triggered_count or 0,
            "true_positives": tp,
            "false_positives": fp,
            "precision": _pct(tp, tp + fp),
            "recall": _pct(tp, tp + fn),
            "false_positive_rate": _pct(fp, fp + tn),
            "feedback_samples": sum(outcomes.values()),
        }
    return metrics


def _alert_trends(alerts: list[TransactionAlert]) -> dict:
    by_day = Counter(a.created_date.date().isoformat() for a in alerts)
    by_severity = {"low": 0, "medium": 0, "high": 0, "critical": 0}
    for alert in alerts:
        by_severity[alert.severity] = by_severity.get(alert.severity, 0) + 1
    resolved = sum(1 for a in alerts if a.status == "resolved")
    return {
        "total_alerts": len(alerts),
        "by_day": dict(by_day),
        "by_severity": by_severity,
        "by_type": dict(Counter(a.alert_type for a in alerts)),
        "avg_alerts_per_day": round(len(alerts) / len(by_day), 2) if by_day else 0,
        "alert_resolution_rate": _pct(resolved, len(alerts)),
    }


def _risk_exposure(transactions: list[Transaction], alerts: list[TransactionAlert]) -> dict:
    def at_level(level: str) -> list[Transaction]:
        return [t for t in transactions if t.risk_level == level]

    countries = Counter(t.counterparty_country for t in transactions)
    total_alerts = len(alerts)
    return {
        "critical_transactions": len(at_level("critical")),
        "high_transactions": len(at_level("high")),
        "medium_transactions": len(at_level("medium")),
        "low_transactions": len(at_level("low")),
        "critical_volume": sum(t.amount or 0 for t in at_level("critical")),
        "high_volume": sum(t.amount or 0 for t in at_level("high")),
        "avg_risk_score": (
            round(sum(t.risk_score or 0 for t in transactions) / len(transactions), 2)
            if transactions else 0
        ),
        "high_risk_countries": [
            {"country": country, "count": count} for country, count in countries.most_common(5)
        ],
        "aml_hit_rate": _pct(sum(1 for a in alerts if a.alert_type == "aml_match"), total_alerts),
        "fraud_detection_rate": _pct(
            sum(1 for a in alerts if a.alert_type == "fraud_detected"), total_alerts
        ),
    }


def get_analytics(
    session: Session,
    user: User,
    days: int = 30,
    tmaas_config_id: str | None = None,
) -> dict:
    """Per-config screening, rule, alert, and risk metrics over the last ``days``."""
    org_id = user.organization_id
    since = utcnow() - timedelta(days=days)

    query = select(TMaaSConfig).where(TMaaSConfig.organization_id == org_id)
    if tmaas_config_id:
        query = query.where(TMaaSConfig.id == tmaas_config_id)
    configs = session.exec(query).all()

    if not configs:
        return {
            "success": True,
            "timestamp": utcnow().isoformat(),
            "analytics": {},
            "message": "No TMaaS configuration found",
        }

    rules = list(session.exec(select(TransactionRule).where(TransactionRule.organization_id == org_id)).all())
    feedback = list(
        session.exec(
            select(RuleFeedback).where(
                RuleFeedback.organization_id == org_id,
                RuleFeedback.created_date >= since,
            )
        ).all()
    )

    analytics = {}
    for config in configs:
        transactions = list(
            session.exec(
                select(Transaction).where(
                    Transaction.organization_id == org_id,
                    Transaction.tmaas_config_id == config.id,
                    Transaction.created_date >= since,
                )
            ).all()
        )
        alerts = list(
            session.exec(
                select(TransactionAlert).where(
                    TransactionAlert.organization_id == org_id,
                    TransactionAlert.tmaas_config_id == config.id,
                    TransactionAlert.created_date >= since,
                )
            ).all()
        )
        monitoring = config.monitoring_rules or {}
        analytics[config.id] = {
            "config_name": config.service_name,
            "period_days": days,
            "screening_performance": _screening_performance(transactions),
            "rule_effectiveness": _rule_effectiveness(rules, feedback),
            "alert_trends": _alert_trends(alerts),
            "enrichment_performance": {
                "aml_screening_enabled": bool(monitoring.get("aml_screening")),
                "fraud_detection_enabled": bool(monitoring.get("fraud_detection")),
                "velocity_enabled": bool(monitoring.get("velocity_checks")),
            },
            "risk_exposure": _risk_exposure(transactions, alerts),
        }

    return {"success": True, "timestamp": utcnow().isoformat(), "analytics": analytics}
