"""PBAC rules.

Rule model, the matching predicate every index must satisfy, and the
in-memory and SQL-backed indexes.
"""

from pbac.rules.builder import RuleBuilder
from pbac.rules.index import InMemoryRuleIndex, RuleIndex
from pbac.rules.loader import RuleLoader
from pbac.rules.matching import order_candidates, rule_matches
from pbac.rules.models import Rule, RuleEffect
from pbac.rules.sql import SqlPolicyStore

__all__ = [
    "Rule",
    "RuleEffect",
    "RuleIndex",
    "InMemoryRuleIndex",
    "SqlPolicyStore",
    "RuleBuilder",
    "RuleLoader",
    "rule_matches",
    "order_candidates",
]
