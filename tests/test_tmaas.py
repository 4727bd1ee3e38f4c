"""Tests for transaction screening, manual review, and analytics."""

import json
from datetime import timedelta

import pytest
from sqlmodel import select

from trust_anchor.core.models import (
    Case,
    RuleFeedback,
    TMaaSConfig,
    Transaction,
    TransactionAlert,
    TransactionRule,
    utcnow,
)
from trust_anchor.tmaas import get_risk_level
from tests.conftest import auth


def payload(**overrides):
    body = {
        "transaction_id": "tx-abc12345",
        "amount": 250.0,
        "currency": "USD",
        "type": "card",
        "from_account": "acct-1",
        "counterparty_name": "Coffee Shop",
        "counterparty_country": "GB",
    }
    body.update(overrides)
    return body


def add_quick_rule(session, org_id, **fields):
    rule = TransactionRule(organization_id=org_id, name=fields.pop("name", "quick"), **fields)
    session.add(rule)
    session.commit()
    return rule


def set_monitoring(session, config, **monitoring):
    config.monitoring_rules = monitoring
    session.add(config)
    session.commit()


class TestRiskLevel:
    @pytest.mark.parametrize(
        "score,level",
        [(0, "low"), (24.9, "low"), (25, "medium"), (50, "high"), (74, "high"), (75, "critical")],
    )
    def test_bands(self, score, level):
        assert get_risk_level(score) == level


class TestScreenTransaction:
    def test_low_risk_is_auto_approved(self, client, analyst, tmaas_config):
        response = client.post("/tmaas/screen", json=payload(), headers=auth(analyst))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "approved"
        assert body["action"] == "auto_approved"
        assert body["risk_score"] == 0

    def test_missing_fields(self, client, analyst, tmaas_config):
        response = client.post("/tmaas/screen", json=payload(amount=None), headers=auth(analyst))
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_requires_configuration(self, client, analyst):
        response = client.post("/tmaas/screen", json=payload(), headers=auth(analyst))
        assert response.status_code == 400
        assert response.json() == {"error": "TMaaS not configured"}

    def test_blocking_rule_blocks_and_alerts(self, client, analyst, tmaas_config, session):
        add_quick_rule(session, analyst.organization_id, type="amount", condition="greater_than", value=10000, action="auto_block")

        body = client.post("/tmaas/screen", json=payload(amount=50000), headers=auth(analyst)).json()
        assert body["status"] == "blocked"
        assert body["action"] == "auto_blocked"

        tx = session.get(Transaction, body["transaction_id"])
        assert tx.flags == ["blocked"]
        assert tx.triggered_rules == ["quick"]

        alert = session.exec(select(TransactionAlert)).one()
        assert alert.severity == "critical"
        assert alert.alert_type == "amount_threshold"
        assert alert.transaction_id == tx.id

    def test_flagging_rule_flags(self, client, analyst, tmaas_config, session):
        add_quick_rule(session, analyst.organization_id, type="country", condition="equals", value="IR", action="flag")

        body = client.post("/tmaas/screen", json=payload(counterparty_country="IR"), headers=auth(analyst)).json()
        assert body["status"] == "flagged"
        assert body["action"] == "flagged"

        alert = session.exec(select(TransactionAlert)).one()
        assert alert.severity == "high"
        assert alert.alert_type == "rule_triggered"

    def test_triggered_rule_without_action_stays_pending(self, client, analyst, tmaas_config, session):
        add_quick_rule(session, analyst.organization_id, type="amount", condition="greater_than", value=100)

        body = client.post("/tmaas/screen", json=payload(), headers=auth(analyst)).json()
        assert body["status"] == "pending"
        assert body["action"] == "pending"

    def test_aml_match_adds_score_and_flag(self, client, analyst, tmaas_config, session, aml):
        set_monitoring(session, tmaas_config, aml_screening=True)
        aml.transaction_result = {"risk_score": 80, "matches": [{"name": "Coffee Shop", "list": "OFAC"}]}

        body = client.post("/tmaas/screen", json=payload(), headers=auth(analyst)).json()
        assert body["status"] == "blocked"
        assert body["risk_score"] == 80

        tx = session.get(Transaction, body["transaction_id"])
        assert tx.flags == ["aml_match", "blocked"]
        assert tx.risk_level == "critical"
        assert tx.screening_results["aml_score"] == 80
        assert aml.calls[0] == ("screen_transaction", "Coffee Shop", "GB", 250.0)

    def test_aml_failure_is_skipped(self, client, analyst, tmaas_config, session, aml):
        set_monitoring(session, tmaas_config, aml_screening=True)
        aml.error = "POST https://api.amlwatcher.com/screen failed: timeout"

        body = client.post("/tmaas/screen", json=payload(), headers=auth(analyst)).json()
        assert body["status"] == "approved"

    def test_velocity_fraud_scoring(self, client, analyst, tmaas_config, session):
        set_monitoring(session, tmaas_config, fraud_detection=True)
        for i in range(6):
            session.add(
                Transaction(
                    organization_id=analyst.organization_id,
                    transaction_id=f"prior-{i}",
                    amount=10000,
                    from_account="acct-1",
                )
            )
        session.commit()

        body = client.post("/tmaas/screen", json=payload(), headers=auth(analyst)).json()
        assert body["risk_score"] == 35
        assert body["status"] == "flagged"

        tx = session.get(Transaction, body["transaction_id"])
        assert tx.screening_results["fraud_indicators"] == ["high_velocity", "rapid_succession"]
        assert "fraud_risk" in tx.flags

    def test_velocity_rule_uses_day_count(self, client, analyst, tmaas_config, session):
        add_quick_rule(session, analyst.organization_id, type="velocity", condition="greater_than", value=1, action="flag")
        for i in range(2):
            session.add(
                Transaction(
                    organization_id=analyst.organization_id,
                    transaction_id=f"prior-{i}",
                    amount=10,
                    from_account="acct-1",
                    created_date=utcnow() - timedelta(hours=3),
                )
            )
        session.commit()

        body = client.post("/tmaas/screen", json=payload(), headers=auth(analyst)).json()
        assert body["status"] == "flagged"

    def test_callback_and_counters(self, client, analyst, tmaas_config, session, poster):
        tmaas_config.callback_url = "https://merchant.test/callback"
        session.add(tmaas_config)
        session.commit()

        body = client.post("/tmaas/screen", json=payload(), headers=auth(analyst)).json()

        assert len(poster.posts) == 1
        sent = json.loads(poster.posts[0]["body"])
        assert poster.posts[0]["url"] == "https://merchant.test/callback"
        assert sent == {
            "transaction_id": body["transaction_id"],
            "status": "auto_approved",
            "risk_score": 0,
            "action": "approve",
        }

        session.expire_all()
        config = session.get(TMaaSConfig, tmaas_config.id)
        assert config.transactions_processed == 1
        assert config.transactions_blocked == 0
        assert config.last_transaction_date is not None

    def test_callback_failure_does_not_fail_screening(self, client, analyst, tmaas_config, session, poster):
        tmaas_config.callback_url = "https://merchant.test/callback"
        session.add(tmaas_config)
        session.commit()
        poster.error = "connection refused"

        response = client.post("/tmaas/screen", json=payload(), headers=auth(analyst))
        assert response.status_code == 200

    def test_vpn_rule_uses_geolocation(self, client, analyst, tmaas_config, session, geoip):
        geoip.result = {"country": "Netherlands", "countryCode": "NL", "isVPN": True}
        add_quick_rule(
            session,
            analyst.organization_id,
            name="VPN origin",
            conditions=[{"attribute": "ip_address", "operator": "equals", "value": 1}],
            automated_actions={"action_type": "flag"},
        )

        body = client.post("/tmaas/screen", json=payload(ip_address="203.0.113.7"), headers=auth(analyst)).json()

        assert body["status"] == "flagged"
        assert geoip.lookups == ["203.0.113.7"]
        tx = session.get(Transaction, body["transaction_id"])
        assert tx.triggered_rules == ["VPN origin"]
        assert tx.screening_results["enrichment"]["geo_ip"]["is_vpn"] is True

class TestUpdateTransactionStatus:
    def screen_blocked(self, client, analyst, session):
        add_quick_rule(session, analyst.organization_id, type="amount", condition="greater_than", value=1000, action="auto_block")
        return client.post("/tmaas/screen", json=payload(amount=5000), headers=auth(analyst)).json()

    def test_escalation_opens_case(self, client, analyst, tmaas_config, session):
        screened = self.screen_blocked(client, analyst, session)

        response = client.post(
            f"/tmaas/transactions/{screened['transaction_id']}/status",
            json={"new_status": "blocked", "resolution_notes": "Confirmed fraud", "escalate_to_case": True},
            headers=auth(analyst),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "blocked"

        case = session.exec(select(Case)).one()
        assert case.case_number == "TX-TX-ABC12"
        assert case.type == "transaction_review"
        assert case.priority == "high"
        assert case.related_entity_id == screened["transaction_id"]

        alert = session.exec(select(TransactionAlert)).one()
        assert alert.status == "resolved"
        assert alert.resolution_action == "blocked"
        assert alert.related_case_id == case.id

        tx = session.get(Transaction, screened["transaction_id"])
        assert tx.reviewed_by == analyst.email
        assert tx.resolution_notes == "Confirmed fraud"

    def test_approval_does_not_escalate(self, client, analyst, tmaas_config, session):
        screened = self.screen_blocked(client, analyst, session)
        client.post(
            f"/tmaas/transactions/{screened['transaction_id']}/status",
            json={"new_status": "approved", "escalate_to_case": True},
            headers=auth(analyst),
        )
        assert session.exec(select(Case)).all() == []
        alert = session.exec(select(TransactionAlert)).one()
        assert alert.resolution_action == "approved"

    def test_other_tenant_transaction_is_not_found(self, client, analyst, outsider, tmaas_config, session):
        screened = self.screen_blocked(client, analyst, session)
        response = client.post(
            f"/tmaas/transactions/{screened['transaction_id']}/status",
            json={"new_status": "approved"},
            headers=auth(outsider),
        )
        assert response.status_code == 404

    def test_missing_status(self, client, analyst, tmaas_config):
        response = client.post("/tmaas/transactions/whatever/status", json={}, headers=auth(analyst))
        assert response.status_code == 400


class TestAnalytics:
    def test_without_configuration(self, client, analyst):
        body = client.post("/tmaas/analytics", json={}, headers=auth(analyst)).json()
        assert body["analytics"] == {}
        assert body["message"] == "No TMaaS configuration found"

    def test_metrics(self, client, analyst, tmaas_config, session):
        rule = add_quick_rule(
            session, analyst.organization_id, type="amount", condition="greater_than", value=1000, action="auto_block"
        )
        client.post("/tmaas/screen", json=payload(), headers=auth(analyst))
        client.post("/tmaas/screen", json=payload(transaction_id="tx-2", amount=5000), headers=auth(analyst))
        for outcome in ("true_positive", "true_positive", "false_positive", "true_negative"):
            session.add(RuleFeedback(organization_id=analyst.organization_id, rule_id=rule.id, actual_outcome=outcome))
        session.commit()

        body = client.post("/tmaas/analytics", json={"days": 7}, headers=auth(analyst)).json()
        metrics = body["analytics"][tmaas_config.id]

        perf = metrics["screening_performance"]
        assert perf["total_transactions"] == 2
        assert perf["approved"] == 1
        assert perf["blocked"] == 1
        assert perf["block_rate"] == 50.0

        effectiveness = metrics["rule_effectiveness"][rule.id]
        assert effectiveness["triggered_count"] == 1
        assert effectiveness["precision"] == 66.67
        assert effectiveness["recall"] == 100.0
        assert effectiveness["false_positive_rate"] == 50.0
        assert effectiveness["feedback_samples"] == 4

        trends = metrics["alert_trends"]
        assert trends["total_alerts"] == 1
        assert trends["by_severity"]["critical"] == 1
        assert trends["by_type"] == {"amount_threshold": 1}

        exposure = metrics["risk_exposure"]
        assert exposure["high_risk_countries"] == [{"country": "GB", "count": 2}]


class TestEnrichment:
    def add(self, session, org_id, transaction_id, amount, age, status="pending", from_account="acct-1"):
        session.add(
            Transaction(
                organization_id=org_id,
                transaction_id=transaction_id,
                amount=amount,
                status=status,
                from_account=from_account,
                created_date=utcnow() - age,
            )
        )

    def test_velocity_history(self, client, session, analyst, outsider):
        org_id = analyst.organization_id
        self.add(session, org_id, "t1", 1000, timedelta(hours=2), status="flagged")
        self.add(session, org_id, "t2", 500, timedelta(hours=5), status="blocked")
        self.add(session, org_id, "t3", 250, timedelta(days=3), status="flagged")
        self.add(session, org_id, "t4", 9999, timedelta(days=9))
        self.add(session, org_id, "t5", 9999, timedelta(hours=1), from_account="acct-2")
        self.add(session, outsider.organization_id, "t6", 9999, timedelta(hours=1))
        session.commit()

        body = client.post("/tmaas/enrich", json={"from_account": "acct-1"}, headers=auth(analyst)).json()

        assert body["success"] is True
        assert body["enriched_data"]["geo_ip"] is None
        assert body["enriched_data"]["velocity_history"] == {
            "transactions_24h": 2,
            "transactions_7d": 3,
            "volume_24h": 1500,
            "volume_7d": 1750,
            "flagged_24h": 1,
            "blocked_24h": 1,
            "velocity_risk": {"high_frequency": False, "high_volume": False, "repeat_flagging": False},
        }

    def test_geo_ip(self, client, analyst, geoip):
        geoip.result = {"country": "Germany", "countryCode": "DE", "city": "Berlin", "isp": "DT", "isProxy": True}

        body = client.post("/functions/enrichTransactionData", json={"ip_address": "198.51.100.4"}, headers=auth(analyst)).json()

        assert body["enriched_data"]["geo_ip"] == {
            "country": "Germany",
            "country_code": "DE",
            "city": "Berlin",
            "isp": "DT",
            "is_vpn": False,
            "is_proxy": True,
            "risk_score": 30,
        }
        assert body["enriched_data"]["velocity_history"] is None

    def test_geo_ip_failure_is_tolerated(self, client, analyst, geoip):
        geoip.error = "GET http://ip-api.com/json/198.51.100.4 failed: timeout"

        response = client.post("/tmaas/enrich", json={"ip_address": "198.51.100.4"}, headers=auth(analyst))

        assert response.status_code == 200
        assert response.json()["enriched_data"]["geo_ip"] is None
