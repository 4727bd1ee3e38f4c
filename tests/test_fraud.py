"""Tests for the fraud detection models."""

from datetime import timedelta

from sqlmodel import select

from trust_anchor.core.models import Case, FraudAlert, FraudModel, Transaction, utcnow
from trust_anchor.fraud import service
from tests.conftest import auth


def add_tx(session, org_id, **fields):
    fields.setdefault("transaction_id", "tx-1")
    tx = Transaction(organization_id=org_id, **fields)
    session.add(tx)
    session.commit()
    session.refresh(tx)
    return tx


def add_model(session, org_id, model_type, **fields):
    model = FraudModel(organization_id=org_id, name=f"{model_type} model", model_type=model_type, **fields)
    session.add(model)
    session.commit()
    return model


class TestDetectors:
    def test_structuring_pattern(self, session, org):
        assert service.pattern_recognition(session, add_tx(session, org.id, amount=9500)).is_fraud
        assert not service.pattern_recognition(session, add_tx(session, org.id, amount=9550)).is_fraud
        assert not service.pattern_recognition(session, add_tx(session, org.id, amount=10000)).is_fraud

    def test_behavioral_excludes_current_transaction(self, session, org):
        for _ in range(3):
            add_tx(session, org.id, user_id="u1", amount=100)
        tx = add_tx(session, org.id, user_id="u1", amount=5000)

        detection = service.behavioral_analysis(session, tx)

        assert detection.is_fraud
        assert detection.confidence == 0.75
        assert detection.behavioral_data["transaction_count"] == 3
        assert detection.indicators == ["Amount 4900% above user average"]

    def test_behavioral_needs_history(self, session, org):
        add_tx(session, org.id, user_id="u1", amount=100)
        tx = add_tx(session, org.id, user_id="u1", amount=5000)
        assert not service.behavioral_analysis(session, tx).is_fraud

    def test_device_used_from_many_ips(self, session, org):
        for i in range(6):
            add_tx(session, org.id, device_fingerprint="dev-1", ip_address=f"10.0.0.{i}", counterparty_country="GB")
        tx = add_tx(session, org.id, device_fingerprint="dev-1", ip_address="10.0.0.1", counterparty_country="GB")

        detection = service.device_fingerprint_check(session, tx)

        assert detection.is_fraud
        assert detection.risk_score == 75
        assert detection.indicators == ["Device used from 6 different IPs"]

    def test_impossible_travel(self, session, org):
        add_tx(session, org.id, device_fingerprint="dev-1", counterparty_country="FR")
        tx = add_tx(session, org.id, device_fingerprint="dev-1", counterparty_country="GB")

        detection = service.device_fingerprint_check(session, tx)

        assert detection.is_fraud
        assert detection.confidence == 0.9
        assert "Impossible travel detected" in detection.indicators

    def test_old_foreign_transaction_is_not_travel(self, session, org):
        add_tx(
            session, org.id, device_fingerprint="dev-1", counterparty_country="FR",
            created_date=utcnow() - timedelta(hours=3),
        )
        tx = add_tx(session, org.id, device_fingerprint="dev-1", counterparty_country="GB")
        assert not service.device_fingerprint_check(session, tx).is_fraud

    def test_velocity(self, session, org):
        for _ in range(10):
            add_tx(session, org.id, user_id="u1", amount=10)
        tx = add_tx(session, org.id, user_id="u1", amount=10)

        detection = service.velocity_check(session, tx)

        assert detection.is_fraud
        assert detection.indicators == ["11 transactions in past hour"]

    def test_other_tenants_history_is_ignored(self, session, org, other_org):
        for i in range(10):
            add_tx(
                session, other_org.id, user_id="u1", amount=100, device_fingerprint="dev-1",
                ip_address=f"10.0.0.{i}", counterparty_country="FR",
            )
        tx = add_tx(
            session, org.id, user_id="u1", amount=5000, device_fingerprint="dev-1",
            ip_address="10.0.1.1", counterparty_country="GB",
        )

        assert not service.device_fingerprint_check(session, tx).is_fraud
        assert not service.behavioral_analysis(session, tx).is_fraud
        assert not service.velocity_check(session, tx).is_fraud

    def test_anomaly_detection_never_fires(self, session, org):
        model = FraudModel(name="llm", model_type="anomaly_detection")
        assert not service.run_model(session, model, add_tx(session, org.id, amount=9500)).is_fraud


class TestDetectFraud:
    def test_critical_auto_block_model(self, session, analyst):
        model = add_model(session, analyst.organization_id, "pattern_recognition", severity="critical", auto_block=True)
        tx = add_tx(session, analyst.organization_id, amount=9500)

        result = service.detect_fraud(session, analyst, tx.id)

        assert result["alerts_created"] == 1
        assert result["fraud_detected"] is True
        assert result["alerts"][0]["fraud_type"] == "pattern_fraud"
        assert result["alerts"][0]["detection_method"] == model.name

        session.refresh(tx)
        session.refresh(model)
        assert tx.status == "blocked"
        assert model.detection_count == 1

        case = session.exec(select(Case)).one()
        assert case.type == "fraud_alert"
        assert case.priority == "critical"
        assert case.related_entity_id == tx.id
        assert case.sla_due_date - case.created_date == timedelta(hours=1)

    def test_threshold_suppresses_alert(self, session, analyst):
        add_model(session, analyst.organization_id, "pattern_recognition", confidence_threshold=0.8)
        tx = add_tx(session, analyst.organization_id, amount=9500)

        result = service.detect_fraud(session, analyst, tx.id)

        assert result["alerts_created"] == 0
        assert session.exec(select(FraudAlert)).all() == []

    def test_global_models_apply(self, session, analyst):
        add_model(session, None, "pattern_recognition")
        tx = add_tx(session, analyst.organization_id, amount=9500)
        assert service.detect_fraud(session, analyst, tx.id)["alerts_created"] == 1

    def test_inactive_and_foreign_models_ignored(self, session, analyst, outsider):
        add_model(session, analyst.organization_id, "pattern_recognition", is_active=False)
        add_model(session, outsider.organization_id, "pattern_recognition")
        tx = add_tx(session, analyst.organization_id, amount=9500)
        assert service.detect_fraud(session, analyst, tx.id)["alerts_created"] == 0


class TestFraudAPI:
    def test_missing_transaction_id(self, client, analyst):
        response = client.post("/fraud/detect", json={}, headers=auth(analyst))
        assert response.status_code == 400

    def test_other_tenant_transaction(self, client, session, analyst, outsider):
        tx = add_tx(session, analyst.organization_id, amount=9500)
        response = client.post("/fraud/detect", json={"transaction_id": tx.id}, headers=auth(outsider))
        assert response.status_code == 404
        assert response.json() == {"error": "Transaction not found"}

    def test_detect(self, client, session, analyst):
        add_model(session, analyst.organization_id, "pattern_recognition", severity="medium")
        tx = add_tx(session, analyst.organization_id, amount=9500)

        body = client.post("/fraud/detect", json={"transaction_id": tx.id}, headers=auth(analyst)).json()

        assert body["alerts_created"] == 1
        assert body["alerts"][0]["severity"] == "medium"
        assert body["alerts"][0]["indicators"] == [
            "Possible structuring pattern (just below reporting threshold)"
        ]
