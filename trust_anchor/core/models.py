"""SQLModel table definitions for the hosted record store.

Every record carries a string UUID ``id`` plus ``created_date`` and
``updated_date`` stamps (naive UTC). JSON-shaped attributes are stored in a
JSON column and must be reassigned, not mutated in place, to be persisted.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current UTC time without tzinfo (what SQLite hands back)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def json_field(default_factory=dict):
    return Field(default_factory=default_factory, sa_column=Column(JSON))


def nullable_json_field():
    return Field(default=None, sa_column=Column(JSON, nullable=True))


class RecordBase(SQLModel):
    """Columns shared by every table."""

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    created_date: datetime = Field(default_factory=utcnow, index=True)
    updated_date: datetime = Field(default_factory=utcnow)


# =============================================================================
# Tenancy and identity
# =============================================================================


class Organization(RecordBase, table=True):
    __tablename__ = "organizations"

    name: str
    lei: Optional[str] = None
    country: Optional[str] = None
    plan: Optional[str] = None
    status: str = "active"


class User(RecordBase, table=True):
    __tablename__ = "users"

    email: str = Field(index=True, unique=True)
    full_name: Optional[str] = None
    role: str = "user"
    organization_id: Optional[str] = Field(default=None, index=True)
    status: str = "active"
    language: str = "en"
    invited_at: Optional[datetime] = None
    invited_by: Optional[str] = None


# =============================================================================
# Transaction monitoring
# =============================================================================


class TransactionRule(RecordBase, table=True):
    __tablename__ = "transaction_rules"

    organization_id: Optional[str] = Field(default=None, index=True)
    name: str
    description: Optional[str] = None
    rule_type: str = "simple"
    conditions: list = json_field(list)
    logic: str = "AND"
    automated_actions: dict = json_field(dict)
    enrichment_sources: list = json_field(list)
    priority: int = 10
    enabled: bool = True
    triggered_count: int = 0
    last_triggered: Optional[datetime] = None

    # Quick-rule shape (type/condition/value/action)
    type: Optional[str] = None
    condition: Optional[str] = None
    value: Any = Field(default=None, sa_column=Column(JSON, nullable=True))
    action: Optional[str] = None


class RuleFeedback(RecordBase, table=True):
    __tablename__ = "rule_feedback"

    organization_id: Optional[str] = Field(default=None, index=True)
    rule_id: str = Field(index=True)
    transaction_id: Optional[str] = None
    actual_outcome: str
    notes: Optional[str] = None


class TMaaSConfig(RecordBase, table=True):
    __tablename__ = "tmaas_configs"

    organization_id: Optional[str] = Field(default=None, index=True)
    service_name: str = "TMaaS"
    processor_name: Optional[str] = None
    merchant_id: Optional[str] = None
    webhook_url: Optional[str] = None
    callback_url: Optional[str] = None
    monitoring_rules: dict = json_field(dict)
    notification_settings: dict = json_field(dict)
    status: str = "active"
    transactions_processed: int = 0
    transactions_blocked: int = 0
    transactions_flagged: int = 0
    last_transaction_date: Optional[datetime] = None


class Transaction(RecordBase, table=True):
    __tablename__ = "transactions"

    organization_id: Optional[str] = Field(default=None, index=True)
    user_id: Optional[str] = Field(default=None, index=True)
    transaction_id: str = Field(index=True)
    amount: float = 0.0
    currency: Optional[str] = None
    type: Optional[str] = None
    from_account: Optional[str] = Field(default=None, index=True)
    to_account: Optional[str] = None
    counterparty_name: Optional[str] = None
    counterparty_country: Optional[str] = None
    ip_address: Optional[str] = None
    device_fingerprint: Optional[str] = Field(default=None, index=True)
    status: str = "pending"
    risk_score: int = 0
    risk_level: str = "low"
    screening_status: Optional[str] = None
    screening_results: dict = json_field(dict)
    triggered_rules: list = json_field(list)
    flags: list = json_field(list)
    tmaas_config_id: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None


class TransactionAlert(RecordBase, table=True):
    __tablename__ = "transaction_alerts"

    organization_id: Optional[str] = Field(default=None, index=True)
    transaction_id: str = Field(index=True)
    tmaas_config_id: Optional[str] = None
    alert_type: str
    severity: str = "medium"
    status: str = "new"
    details: dict = json_field(dict)
    transaction_amount: Optional[float] = None
    transaction_currency: Optional[str] = None
    resolution_action: Optional[str] = None
    resolution_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    related_case_id: Optional[str] = None


class FraudModel(RecordBase, table=True):
    __tablename__ = "fraud_models"

    organization_id: Optional[str] = Field(default=None, index=True)
    name: str
    model_type: str
    confidence_threshold: float = 0.7
    severity: str = "high"
    auto_block: bool = False
    is_active: bool = True
    detection_count: int = 0


class FraudAlert(RecordBase, table=True):
    __tablename__ = "fraud_alerts"

    organization_id: Optional[str] = Field(default=None, index=True)
    transaction_id: str
    user_id: Optional[str] = None
    fraud_type: str
    confidence_score: float = 0.0
    risk_score: float = 0.0
    severity: str = "high"
    status: str = "new"
    detection_method: Optional[str] = None
    model_id: Optional[str] = None
    indicators: list = json_field(list)
    device_data: dict = json_field(dict)
    behavioral_data: dict = json_field(dict)


# =============================================================================
# Alerts and cases
# =============================================================================


class AMLAlert(RecordBase, table=True):
    __tablename__ = "aml_alerts"

    organization_id: Optional[str] = Field(default=None, index=True)
    user_id: Optional[str] = None
    workflow_id: Optional[str] = None
    type: str = "sanction_hit"
    severity: str = "low"
    details: dict = json_field(dict)
    status: str = "new"


class KYBAlert(RecordBase, table=True):
    __tablename__ = "kyb_alerts"

    organization_id: Optional[str] = Field(default=None, index=True)
    monitoring_schedule_id: Optional[str] = Field(default=None, index=True)
    entity_lei: Optional[str] = None
    entity_name: Optional[str] = None
    type: str = "registry_change"
    severity: str = "low"
    details: dict = json_field(dict)
    status: str = "new"


class MonitoringSchedule(RecordBase, table=True):
    """Perpetual AML and/or KYB re-screening of one entity."""

    __tablename__ = "monitoring_schedules"

    organization_id: Optional[str] = Field(default=None, index=True)
    application_id: Optional[str] = None
    entity_name: str
    entity_lei: Optional[str] = None
    country: Optional[str] = None
    monitoring_type: str = "aml"
    frequency: str = "quarterly"
    interval_days: Optional[int] = None
    alert_threshold: int = 80
    notify_emails: list = json_field(list)
    status: str = "active"
    last_check_date: Optional[datetime] = None
    next_check_date: Optional[datetime] = None
    check_count: int = 0
    alert_count: int = 0
    registry_snapshot: Optional[dict] = nullable_json_field()


class Case(RecordBase, table=True):
    __tablename__ = "cases"

    organization_id: Optional[str] = Field(default=None, index=True)
    case_number: str = Field(index=True)
    type: str
    priority: str = "medium"
    status: str = "new"
    subject: str
    description: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    context_data: dict = json_field(dict)
    sla_due_date: Optional[datetime] = None
    sla_status: str = "on_time"
    tags: list = json_field(list)
    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None


class CaseNote(RecordBase, table=True):
    __tablename__ = "case_notes"

    organization_id: Optional[str] = Field(default=None, index=True)
    case_id: str = Field(index=True)
    author_email: str
    author_name: Optional[str] = None
    note_type: str = "comment"
    content: str
    is_internal: bool = True


# =============================================================================
# Providers, policies, onboarding, workflows
# =============================================================================


class Provider(RecordBase, table=True):
    __tablename__ = "providers"

    name: str
    service_type: str = Field(index=True)
    endpoint: Optional[str] = None
    status: str = "active"
    is_active: bool = True
    priority_weight: int = 10
    uptime_percentage: Optional[float] = None
    country_routing_rules: dict = json_field(dict)
    api_key: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    health_check_endpoint: Optional[str] = None
    last_health_check: Optional[datetime] = None
    consecutive_failures: int = 0
    avg_response_time_ms: Optional[float] = None
    total_requests: int = 0
    failed_requests: int = 0


class Policy(RecordBase, table=True):
    __tablename__ = "policies"

    organization_id: Optional[str] = Field(default=None, index=True)
    name: str
    description: Optional[str] = None
    policy_type: Optional[str] = None
    rules: dict = json_field(dict)
    status: str = "active"


class OnboardingApplication(RecordBase, table=True):
    __tablename__ = "onboarding_applications"

    organization_id: Optional[str] = Field(default=None, index=True)
    user_id: Optional[str] = None
    email: Optional[str] = None
    legal_name: str
    unique_business_id: Optional[str] = None
    legal_address: dict = json_field(dict)
    status: str = "submitted"
    tas_verification_status: Optional[str] = None
    generated_lei: Optional[str] = None
    lei_issued_date: Optional[datetime] = None
    aml_result: Optional[dict] = nullable_json_field()


class Workflow(RecordBase, table=True):
    __tablename__ = "workflows"

    organization_id: Optional[str] = Field(default=None, index=True)
    user_id: Optional[str] = None
    type: str
    status: str = "in_progress"
    language: str = "en"
    provenance_chain: list = json_field(list)
    result: dict = json_field(dict)
    data_passport: Optional[dict] = nullable_json_field()


class Webhook(RecordBase, table=True):
    __tablename__ = "webhooks"

    organization_id: Optional[str] = Field(default=None, index=True)
    url: str
    event_types: list = json_field(list)
    partner_name: Optional[str] = None
    is_active: bool = True
    secret_key: Optional[str] = None
    last_triggered: Optional[datetime] = None
    last_status: str = "pending"


class AuditLog(RecordBase, table=True):
    __tablename__ = "audit_logs"

    organization_id: Optional[str] = Field(default=None, index=True)
    workflow_id: Optional[str] = None
    event: str
    event_type: str
    event_category: Optional[str] = None
    actor: Optional[str] = None
    actor_email: Optional[str] = None
    details: dict = json_field(dict)
    severity: str = "info"
    result: Optional[str] = None
    signature: Optional[str] = None
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    archive_location: Optional[str] = None


class Notification(RecordBase, table=True):
    __tablename__ = "notifications"

    organization_id: Optional[str] = Field(default=None, index=True)
    recipient_id: Optional[str] = None
    recipient_email: Optional[str] = Field(default=None, index=True)
    type: str
    title: str
    message: str
    action_url: Optional[str] = None
    priority: str = "medium"
    send_email: bool = False
    is_read: bool = False
    context: dict = json_field(dict)


# Entity name (as used by API clients) -> table model
ENTITY_MODELS: dict[str, type[RecordBase]] = {
    "Organization": Organization,
    "User": User,
    "TransactionRule": TransactionRule,
    "RuleFeedback": RuleFeedback,
    "TMaaSConfig": TMaaSConfig,
    "Transaction": Transaction,
    "TransactionAlert": TransactionAlert,
    "FraudModel": FraudModel,
    "FraudAlert": FraudAlert,
    "AMLAlert": AMLAlert,
    "KYBAlert": KYBAlert,
    "MonitoringSchedule": MonitoringSchedule,
    "Case": Case,
    "CaseNote": CaseNote,
    "Provider": Provider,
    "Policy": Policy,
    "OnboardingApplication": OnboardingApplication,
    "Workflow": Workflow,
    "Webhook": Webhook,
    "AuditLog": AuditLog,
    "Notification": Notification,
}


def to_dict(record: SQLModel) -> dict:
    """Serialize a record to a JSON-compatible dict."""
    return record.model_dump(mode="json")
