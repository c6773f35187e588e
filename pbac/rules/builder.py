"""Fluent rule builder.

Example:
    rule = (
        RuleBuilder.allow()
        .for_group(5)
        .for_resource("Document")
        .with_action(["view", "update"])
        .with_priority(80)
        .build()
    )
"""

from __future__ import annotations

from typing import Any, Iterable

from pbac.registry.models import TypeKind
from pbac.registry.registry import TypeRegistry
from pbac.rules.models import Rule, RuleEffect
from pbac.targets.models import AccessGroup, AccessTeam, EntityId, identity_of, type_name_of


def _category(value: str | type | None) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return type_name_of(value)


class RuleBuilder:
    """Accumulates rule attributes and produces a validated `Rule`."""

    def __init__(self, effect: RuleEffect | str = RuleEffect.ALLOW):
        self.effect = RuleEffect(effect)
        self.target_type: str | None = None
        self.target_id: EntityId | None = None
        self.resource_type: str | None = None
        self.resource_id: EntityId | None = None
        self.actions: list[str] = []
        self.priority = 0
        self.conditions: dict[str, Any] | None = None

    @classmethod
    def allow(cls) -> RuleBuilder:
        return cls(RuleEffect.ALLOW)

    @classmethod
    def deny(cls) -> RuleBuilder:
        return cls(RuleEffect.DENY)

    def for_user(self, principal: Any) -> RuleBuilder:
        """Target one specific principal instance."""
        category, key = identity_of(principal)
        return self.for_target(category, key)

    def for_group(self, group: AccessGroup | EntityId) -> RuleBuilder:
        group_id = group.id if isinstance(group, AccessGroup) else group
        return self.for_target(AccessGroup.pbac_type_name, group_id)

    def for_team(self, team: AccessTeam | EntityId) -> RuleBuilder:
        team_id = team.id if isinstance(team, AccessTeam) else team
        return self.for_target(AccessTeam.pbac_type_name, team_id)

    def for_target(
        self, target_type: str | type | None, target_id: EntityId | None = None
    ) -> RuleBuilder:
        """Set the target category and optional instance. None means any target."""
        self.target_type = _category(target_type)
        self.target_id = target_id if self.target_type is not None else None
        return self

    def for_resource(
        self, resource_type: str | type | None, resource_id: EntityId | None = None
    ) -> RuleBuilder:
        """Set the resource category and optional instance. None means any resource."""
        self.resource_type = _category(resource_type)
        self.resource_id = resource_id if self.resource_type is not None else None
        return self

    def with_action(self, action: str | Iterable[str]) -> RuleBuilder:
        self.actions = [action] if isinstance(action, str) else list(action)
        return self

    def with_priority(self, priority: int) -> RuleBuilder:
        self.priority = priority
        return self

    def with_conditions(self, conditions: dict[str, Any]) -> RuleBuilder:
        self.conditions = dict(conditions)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "effect": self.effect.value,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "actions": list(self.actions),
            "priority": self.priority,
            "conditions": self.conditions,
        }

    def build(self, **overrides: Any) -> Rule:
        attributes = self.to_dict()
        attributes.update(overrides)
        return Rule(**attributes)

    def create(self, index: Any, registry: TypeRegistry | None = None, **overrides: Any) -> Rule:
        """Build the rule and store it via `index.create_rule`.

        When `registry` is given, referenced types are registered first.
        """
        rule = self.build(**overrides)
        if registry is not None:
            if rule.target_type is not None:
                registry.register(TypeKind.TARGET, rule.target_type)
            if rule.resource_type is not None:
                registry.register(TypeKind.RESOURCE, rule.resource_type)
        return index.create_rule(rule)
