"""
Fraud detection models.

Each active FraudModel names a detector by ``model_type``. A detection whose
confidence reaches the model's threshold raises a FraudAlert; critical models
also open a one-hour SLA case.
"""

from __future__ import annotations

import logging
import statistics
from datetime import timedelta
from typing import Callable

from sqlmodel import Session, or_, select

from trust_anchor.cases.service import create_case
from trust_anchor.core.errors import BadRequestError, NotFoundError
from trust_anchor.core.models import FraudAlert, FraudModel, Transaction, User, utcnow

from .schemas import Detection, FraudModelType

logger = logging.getLogger(__name__)

MAX_DEVICE_IPS = 5
MIN_BEHAVIOR_HISTORY = 3
MAX_HOURLY_TRANSACTIONS = 10
STRUCTURING_RANGE = (9000, 10000)


def device_fingerprint_check(session: Session, tx: Transaction) -> Detection:
    """Flag devices seen from many IPs or hopping countries within an hour."""
    result = Detection(
        fraud_type="device_spoofing",
        device_data={"fingerprint": tx.device_fingerprint, "ip": tx.ip_address},
    )
    if not tx.device_fingerprint:
        return result

    device_txs = session.exec(
        select(Transaction).where(
            Transaction.organization_id == tx.organization_id,
            Transaction.device_fingerprint == tx.device_fingerprint,
        )
    ).all()

    unique_ips = {t.ip_address for t in device_txs if t.ip_address}
    if len(unique_ips) > MAX_DEVICE_IPS:
        result.is_fraud = True
        result.confidence = 0.85
        result.risk_score = 75
        result.indicators.append(f"Device used from {len(unique_ips)} different IPs")

    since = utcnow() - timedelta(hours=1)
    travelled = [
        t for t in device_txs
        if t.created_date > since
        and t.counterparty_country
        and t.counterparty_country != tx.counterparty_country
    ]
    if travelled:
        result.is_fraud = True
        result.confidence = 0.9
        result.risk_score = 85
        result.indicators.append("Impossible travel detected")

    return result


def behavioral_analysis(session: Session, tx: Transaction) -> Detection:
    """Flag amounts more than three standard deviations above the user's mean.

    The baseline is the user's other transactions.
    """
    result = Detection(fraud_type="behavioral_anomaly")
    if not tx.user_id:
        return result

    history = session.exec(
        select(Transaction).where(
            Transaction.organization_id == tx.organization_id,
            Transaction.user_id == tx.user_id,
            Transaction.id != tx.id,
        )
    ).all()
    if len(history) < MIN_BEHAVIOR_HISTORY:
        return result

    amounts = [t.amount or 0 for t in history]
    mean = statistics.fmean(amounts)
    std_dev = statistics.pstdev(amounts)
    result.behavioral_data = {"avg_amount": mean, "std_dev": std_dev, "transaction_count": len(history)}

    if tx.amount > mean + 3 * std_dev:
        result.is_fraud = True
        result.confidence = 0.75
        result.risk_score = 70
        if mean > 0:
            result.indicators.append(f"Amount {(tx.amount / mean - 1) * 100:.0f}% above user average")
        else:
            result.indicators.append("Amount above user average")

    return result


def velocity_check(session: Session, tx: Transaction) -> Detection:
    result = Detection(fraud_type="velocity_abuse")
    if not tx.user_id:
        return result

    since = utcnow() - timedelta(hours=1)
    recent = session.exec(
        select(Transaction).where(
            Transaction.organization_id == tx.organization_id,
            Transaction.user_id == tx.user_id,
            Transaction.created_date >= since,
        )
    ).all()
    if len(recent) > MAX_HOURLY_TRANSACTIONS:
        result.is_fraud = True
        result.confidence = 0.8
        result.risk_score = 75
        result.indicators.append(f"{len(recent)} transactions in past hour")
    return result


def pattern_recognition(session: Session, tx: Transaction) -> Detection:
    """Round amounts just below the 10,000 reporting threshold (structuring)."""
    result = Detection(fraud_type="pattern_fraud")
    low, high = STRUCTURING_RANGE
    if tx.amount and tx.amount % 100 == 0 and low < tx.amount < high:
        result.is_fraud = True
        result.confidence = 0.7
        result.risk_score = 65
        result.indicators.append("Possible structuring pattern (just below reporting threshold)")
    return result


DETECTORS: dict[str, Callable[[Session, Transaction], Detection]] = {
    FraudModelType.DEVICE_FINGERPRINT.value: device_fingerprint_check,
    FraudModelType.BEHAVIORAL_ANALYSIS.value: behavioral_analysis,
    FraudModelType.VELOCITY_CHECK.value: velocity_check,
    FraudModelType.PATTERN_RECOGNITION.value: pattern_recognition,
}


def run_model(session: Session, model: FraudModel, tx: Transaction) -> Detection:
    detector = DETECTORS.get(model.model_type)
    if detector is None:
        return Detection()
    return detector(session, tx)


def detect_fraud(session: Session, user: User, transaction_id: str | None) -> dict:
    """Run every active fraud model visible to the transaction's organization."""
    if not transaction_id:
        raise BadRequestError("transaction_id is required")

    tx = session.get(Transaction, transaction_id)
    if tx is None or (user.role != "admin" and tx.organization_id != user.organization_id):
        raise NotFoundError("Transaction not found")

    models = session.exec(
        select(FraudModel).where(
            FraudModel.is_active == True,  # noqa: E712
            or_(FraudModel.organization_id == tx.organization_id, FraudModel.organization_id == None),  # noqa: E711
        )
    ).all()

    alerts: list[FraudAlert] = []
    critical: list[tuple[FraudModel, Detection]] = []

    for model in models:
        detection = run_model(session, model, tx)
        if not detection.is_fraud or detection.confidence < model.confidence_threshold:
            continue

        alert = FraudAlert(
            organization_id=tx.organization_id,
            transaction_id=tx.id,
            user_id=tx.user_id,
            fraud_type=detection.fraud_type,
            confidence_score=detection.confidence,
            risk_score=detection.risk_score,
            severity=model.severity,
            status="new",
            detection_method=model.name,
            model_id=model.id,
            indicators=detection.indicators,
            device_data=detection.device_data,
            behavioral_data=detection.behavioral_data,
        )
        session.add(alert)
        alerts.append(alert)

        model.detection_count = (model.detection_count or 0) + 1
        session.add(model)

        if model.auto_block:
            tx.status = "blocked"
            tx.updated_date = utcnow()
            session.add(tx)

        if model.severity == "critical":
            critical.append((model, detection))

    session.commit()

    for model, detection in critical:
        create_case(
            session,
            type="fraud_alert",
            priority="critical",
            subject=f"Critical Fraud: {detection.fraud_type}",
            description=(
                "High-confidence fraud detected\n\n"
                f"Model: {model.name}\n"
                f"Confidence: {detection.confidence * 100:.1f}%\n"
                f"Indicators: {', '.join(detection.indicators)}"
            ),
            sla_hours=1,
            organization_id=tx.organization_id,
            related_entity_type="Transaction",
            related_entity_id=tx.id,
        )

    for alert in alerts:
        session.refresh(alert)

    if alerts:
        logger.info("Fraud detected on transaction %s: %d alerts", tx.id, len(alerts))

    return {
        "success": True,
        "alerts_created": len(alerts),
        "fraud_detected": bool(alerts),
        "alerts": [alert.model_dump(mode="json") for alert in alerts],
    }
