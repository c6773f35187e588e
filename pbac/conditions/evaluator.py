"""Condition evaluation for a single rule."""

from typing import Any

from pydantic import BaseModel

from pbac.conditions.registry import ConditionRegistry
from pbac.errors import ConditionHandlerFault, ConditionHandlerMissing
from pbac.rules.models import Rule
from pbac.support.logger import PbacLogger
from pbac.targets.models import EntityId


class ConditionOutcome(BaseModel):
    """Why a rule's conditions passed or failed."""

    passed: bool
    failed_key: str | None = None
    reason: str = ""


PASSED = ConditionOutcome(passed=True, reason="unconditional")


class _ConditionNotMet(Exception):
    pass


class ConditionEvaluator:
    """Requires every condition key on a rule to be approved by its handler.

    Unknown keys and handler errors fail the rule, never the evaluation.
    """

    def __init__(self, registry: ConditionRegistry, pbac_logger: PbacLogger | None = None):
        self.registry = registry
        self.logger = pbac_logger or PbacLogger()

    def check(
        self,
        rule: Rule,
        principal: Any,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        context: dict[str, Any],
    ) -> bool:
        return self.explain(rule, principal, action, resource_type, resource_id, context).passed

    def explain(
        self,
        rule: Rule,
        principal: Any,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        context: dict[str, Any],
    ) -> ConditionOutcome:
        if not rule.conditions:
            return PASSED

        for key, value in rule.conditions.items():
            try:
                self._check_one(key, value, rule, principal, action, resource_type, resource_id, context)
            except ConditionHandlerMissing as e:
                self.logger.warning("PBAC Warning: rule ID %s: %s", rule.id, e.message)
                return ConditionOutcome(passed=False, failed_key=key, reason=e.code)
            except ConditionHandlerFault as e:
                self.logger.error("PBAC Error: rule ID %s: %s", rule.id, e.message)
                return ConditionOutcome(passed=False, failed_key=key, reason=e.code)
            except _ConditionNotMet:
                return ConditionOutcome(passed=False, failed_key=key, reason="condition_not_met")

        return ConditionOutcome(passed=True, reason="conditions_met")

    def _check_one(self, key, value, rule, principal, action, resource_type, resource_id, context) -> None:
        handler = self.registry.get(key)
        if handler is None:
            raise ConditionHandlerMissing(key)
        try:
            approved = handler.handle(
                principal, action, resource_type, resource_id, context, value, rule
            )
        except Exception as e:
            raise ConditionHandlerFault(key, e) from e
        if not approved:
            raise _ConditionNotMet(key)
