"""PBAC rule conditions.

Structured key -> value predicates attached to rules, each dispatched to a
handler registered under its key.
"""

from pbac.conditions.evaluator import ConditionEvaluator, ConditionOutcome
from pbac.conditions.handlers import (
    AllowedIpsHandler,
    MinLevelHandler,
    RequiresAttributeValueHandler,
    ResourceLookup,
)
from pbac.conditions.registry import (
    ConditionHandler,
    ConditionRegistry,
    default_condition_registry,
)

__all__ = [
    "ConditionEvaluator",
    "ConditionOutcome",
    "ConditionHandler",
    "ConditionRegistry",
    "default_condition_registry",
    "AllowedIpsHandler",
    "MinLevelHandler",
    "RequiresAttributeValueHandler",
    "ResourceLookup",
]
