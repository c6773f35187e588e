"""Load type records and rules from YAML or dict documents.

Document shape:

    types:
      targets: [User, {type: AccessGroup, active: true}]
      resources: [{type: Document, description: "Shared docs"}]
    rules:
      - effect: allow
        actions: [view]
        target: {type: User}
        resource: {type: Document, id: 7}
        priority: 10
        conditions: {min_level: 5}
"""

import logging
from pathlib import Path
from typing import Any, Iterable

import yaml

from pbac.errors import RuleValidationError
from pbac.registry.models import TypeKind
from pbac.registry.registry import TypeRegistry
from pbac.rules.models import Rule

logger = logging.getLogger(__name__)


class RuleLoader:
    """Parse policy documents into rules and register their types."""

    def __init__(self, supported_actions: Iterable[str] | None = None):
        self.supported_actions = set(supported_actions) if supported_actions is not None else None

    def load_from_yaml(self, path: str | Path, index: Any, registry: TypeRegistry) -> list[Rule]:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        return self.load_from_dict(raw or {}, index, registry)

    def load_from_dict(self, raw: dict[str, Any], index: Any, registry: TypeRegistry) -> list[Rule]:
        """Register types, then create every rule. Returns the stored rules."""
        types = raw.get("types", {}) or {}
        for entry in types.get("targets", []) or []:
            self._register_type(registry, TypeKind.TARGET, entry)
        for entry in types.get("resources", []) or []:
            self._register_type(registry, TypeKind.RESOURCE, entry)

        rules = [self.parse_rule(data) for data in raw.get("rules", []) or []]

        created = []
        for rule in rules:
            if rule.target_type is not None:
                registry.register(TypeKind.TARGET, rule.target_type)
            if rule.resource_type is not None:
                registry.register(TypeKind.RESOURCE, rule.resource_type)
            created.append(index.create_rule(rule))

        logger.info("Loaded %d rules", len(created))
        return created

    def parse_rule(self, data: dict[str, Any]) -> Rule:
        target = data.get("target") or {}
        resource = data.get("resource") or {}
        actions = data.get("actions", data.get("action"))
        if actions is None:
            raise RuleValidationError("rule has no actions")
        if isinstance(actions, str):
            actions = [actions]

        if self.supported_actions is not None:
            unknown = sorted(set(actions) - self.supported_actions)
            if unknown:
                raise RuleValidationError(f"Unsupported actions: {', '.join(unknown)}")

        effect = data.get("effect", "allow")
        if effect not in ("allow", "deny"):
            raise RuleValidationError(f"Unknown effect: {effect}")

        return Rule(
            id=data.get("id"),
            target_type=target.get("type"),
            target_id=target.get("id"),
            resource_type=resource.get("type"),
            resource_id=resource.get("id"),
            actions=actions,
            effect=effect,
            priority=int(data.get("priority", 0)),
            conditions=data.get("conditions") or None,
        )

    def _register_type(self, registry: TypeRegistry, kind: TypeKind, entry: Any) -> None:
        if isinstance(entry, str):
            registry.register(kind, entry)
            return
        registry.register(
            kind,
            entry["type"],
            description=entry.get("description", ""),
            active=entry.get("active", True),
        )
