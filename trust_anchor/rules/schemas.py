"""
Transaction rule schemas.

Pydantic models for the condition/action rule model used to screen
transactions: attribute/operator/value conditions combined with AND/OR logic,
and an automated action taken when the rule triggers.
"""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class RuleAttribute(str, Enum):
    """Transaction attributes a condition can test."""

    AMOUNT = "amount"
    COUNTRY = "country"
    CURRENCY = "currency"
    TRANSACTION_TYPE = "transaction_type"
    COUNTERPARTY_NAME = "counterparty_name"
    VELOCITY = "velocity"
    RISK_SCORE = "risk_score"
    DEVICE_FINGERPRINT = "device_fingerprint"
    IP_ADDRESS = "ip_address"


class RuleOperator(str, Enum):
    """Comparison operators for conditions."""

    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUALS = "equals"
    CONTAINS = "contains"
    IN_LIST = "in_list"
    BETWEEN = "between"
    MATCHES_PATTERN = "matches_pattern"


class RuleAction(str, Enum):
    """Automated actions a triggered rule can request."""

    AUTO_APPROVE = "auto_approve"
    AUTO_BLOCK = "auto_block"
    ESCALATE_TO_CASE = "escalate_to_case"
    FLAG = "flag"
    REQUIRE_ADDITIONAL_VERIFICATION = "require_additional_verification"


class RuleType(str, Enum):
    SIMPLE = "simple"
    COMPLEX = "complex"


class RuleLogic(str, Enum):
    AND = "AND"
    OR = "OR"


class EnrichmentSource(str, Enum):
    """External data sources used to enrich transactions."""

    GEO_IP = "geo_ip"
    DOMAIN_REPUTATION = "domain_reputation"
    DEVICE_FINGERPRINT = "device_fingerprint"
    VELOCITY_HISTORY = "velocity_history"


class ConditionSpec(BaseModel):
    """A single attribute/operator/value condition."""

    attribute: RuleAttribute
    operator: RuleOperator
    value: Any = None

    @model_validator(mode="after")
    def check_value_shape(self) -> "ConditionSpec":
        if self.operator == RuleOperator.BETWEEN:
            if not isinstance(self.value, list) or len(self.value) != 2:
                raise ValueError("'between' requires a [low, high] list")
        elif self.operator == RuleOperator.IN_LIST:
            if not isinstance(self.value, list):
                raise ValueError("'in_list' requires a list value")
        elif self.operator == RuleOperator.MATCHES_PATTERN:
            try:
                re.compile(str(self.value))
            except re.error as e:
                raise ValueError(f"Invalid regex pattern: {e}") from e
        return self


class AutomatedActions(BaseModel):
    """Action taken when a rule triggers."""

    action_type: RuleAction
    escalation_priority: str = Field("medium", pattern=r"^(low|medium|high|critical)$")
    assign_to_group: Optional[str] = None
    notify_on_trigger: bool = False


class RuleCreate(BaseModel):
    """Request model for creating a transaction rule."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    rule_type: RuleType = RuleType.COMPLEX
    conditions: list[ConditionSpec] = Field(..., min_length=1)
    logic: RuleLogic = RuleLogic.AND
    automated_actions: AutomatedActions
    enrichment_sources: list[EnrichmentSource] = Field(default_factory=list)
    priority: int = Field(10, ge=1, le=100, description="Lower runs first")
    enabled: bool = True
    organization_id: Optional[str] = None


class RuleUpdate(BaseModel):
    """Partial update for a transaction rule."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    rule_type: Optional[RuleType] = None
    conditions: Optional[list[ConditionSpec]] = Field(None, min_length=1)
    logic: Optional[RuleLogic] = None
    automated_actions: Optional[AutomatedActions] = None
    enrichment_sources: Optional[list[EnrichmentSource]] = None
    priority: Optional[int] = Field(None, ge=1, le=100)
    enabled: Optional[bool] = None


class EvaluateRequest(BaseModel):
    """Request model for evaluating an organization's rules against a transaction."""

    transaction_id: Optional[str] = None
    organization_id: Optional[str] = None
    transaction_data: dict[str, Any] = Field(default_factory=dict)
    enriched_data: dict[str, Any] = Field(default_factory=dict)


class TriggeredRule(BaseModel):
    """A rule that matched the transaction."""

    rule_id: str
    rule_name: str
    priority: int
    matched_conditions: int = 0


class ActionDetail(BaseModel):
    """An automated action requested by a triggered rule."""

    rule_id: str
    action_type: str
    priority: Optional[str] = None
    assign_to_group: Optional[str] = None
    notify: bool = False


class EvaluationResult(BaseModel):
    """Outcome of evaluating a rule set against one transaction."""

    success: bool = True
    triggered_rules: list[TriggeredRule] = Field(default_factory=list)
    final_action: Optional[str] = None
    action_details: dict[str, list[ActionDetail]] = Field(default_factory=dict)
    enrichment_used: list[str] = Field(default_factory=list)


class RuleConflict(BaseModel):
    """Two enabled rules with the same conditions but different actions."""

    rule_a: str
    rule_b: str
    action_a: Optional[str]
    action_b: Optional[str]
    reason: str
