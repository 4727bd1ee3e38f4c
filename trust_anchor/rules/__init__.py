"""Rules domain - transaction rule engine and rule management."""

from .loader import RulePackLoader, load_rule_pack
from .router import router
from .schemas import (
    ActionDetail,
    AutomatedActions,
    ConditionSpec,
    EnrichmentSource,
    EvaluateRequest,
    EvaluationResult,
    RuleAction,
    RuleAttribute,
    RuleConflict,
    RuleCreate,
    RuleLogic,
    RuleOperator,
    RuleType,
    RuleUpdate,
    TriggeredRule,
)
from .service import (
    ACTION_PRECEDENCE,
    ATTRIBUTE_RESOLVERS,
    RuleEngine,
    create_rule,
    evaluate_condition,
    evaluate_for_organization,
    find_conflicts,
    list_rules,
    rule_action,
    rule_conditions,
    update_rule,
)

__all__ = [
    # Router
    "router",
    # Schemas
    "ActionDetail",
    "AutomatedActions",
    "ConditionSpec",
    "EnrichmentSource",
    "EvaluateRequest",
    "EvaluationResult",
    "RuleAction",
    "RuleAttribute",
    "RuleConflict",
    "RuleCreate",
    "RuleLogic",
    "RuleOperator",
    "RuleType",
    "RuleUpdate",
    "TriggeredRule",
    # Engine
    "ACTION_PRECEDENCE",
    "ATTRIBUTE_RESOLVERS",
    "RuleEngine",
    "evaluate_condition",
    "evaluate_for_organization",
    "find_conflicts",
    "rule_action",
    "rule_conditions",
    # Management
    "create_rule",
    "list_rules",
    "update_rule",
    # Loader
    "RulePackLoader",
    "load_rule_pack",
]
