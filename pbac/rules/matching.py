"""The rule matching predicate and candidate ordering.

Every rule index, whatever its storage, must return exactly the rules for
which `rule_matches` is true, in `order_candidates` order.
"""

from typing import Iterable

from pbac.rules.models import Rule
from pbac.targets.models import EntityId, TargetSet


def matches_action(rule: Rule, action: str) -> bool:
    return action in rule.actions


def matches_resource(
    rule: Rule, resource_type: str | None, resource_id: EntityId | None
) -> bool:
    if rule.resource_type is None:
        return True
    if rule.resource_type != resource_type:
        return False
    return rule.resource_id is None or rule.resource_id == resource_id


def matches_target(rule: Rule, targets: TargetSet) -> bool:
    if rule.target_type is None:
        return True
    if rule.target_type not in targets:
        return False
    return rule.target_id is None or rule.target_id in targets.ids_for(rule.target_type)


def rule_matches(
    rule: Rule,
    action: str,
    resource_type: str | None,
    resource_id: EntityId | None,
    targets: TargetSet,
) -> bool:
    """True if `rule` is a candidate for the request."""
    return (
        matches_action(rule, action)
        and matches_resource(rule, resource_type, resource_id)
        and matches_target(rule, targets)
    )


def _id_sort_key(rule_id: int | str | None) -> tuple[int, int | str]:
    if isinstance(rule_id, int) and not isinstance(rule_id, bool):
        return (0, rule_id)
    if rule_id is None:
        return (2, "")
    return (1, str(rule_id))


def order_candidates(rules: Iterable[Rule]) -> list[Rule]:
    """Priority descending; ties broken by rule id ascending."""
    return sorted(rules, key=lambda r: (-r.priority, _id_sort_key(r.id)))
