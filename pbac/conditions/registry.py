"""Condition handler registry."""

import logging
import threading
from typing import Any, Protocol

from pbac.support.logger import PbacLogger
from pbac.targets.models import EntityId

logger = logging.getLogger(__name__)


class ConditionHandler(Protocol):
    """Predicate bound to one condition key.

    Must be a pure function of its arguments.
    """

    def handle(
        self,
        principal: Any,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        context: dict[str, Any],
        condition_value: Any,
        rule: Any,
    ) -> bool: ...


class ConditionRegistry:
    """Condition key -> handler map, populated once at startup.

    After `freeze()` further registrations raise RuntimeError.
    """

    def __init__(self):
        self._handlers: dict[str, ConditionHandler] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def register(self, key: str, handler: ConditionHandler) -> None:
        with self._lock:
            if self._frozen:
                raise RuntimeError(f"Condition registry is frozen; cannot register '{key}'")
            if key in self._handlers:
                logger.warning("Replacing condition handler for '%s'", key)
            self._handlers[key] = handler
        logger.debug("Registered condition handler: %s", key)

    def unregister(self, key: str) -> bool:
        with self._lock:
            if self._frozen:
                raise RuntimeError(f"Condition registry is frozen; cannot unregister '{key}'")
            return self._handlers.pop(key, None) is not None

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, key: str) -> ConditionHandler | None:
        return self._handlers.get(key)

    def keys(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, key: object) -> bool:
        return key in self._handlers


def default_condition_registry(
    resource_lookup: Any = None,
    pbac_logger: PbacLogger | None = None,
) -> ConditionRegistry:
    """Registry preloaded with min_level, allowed_ips and requires_attribute_value."""
    from pbac.conditions.handlers import (
        AllowedIpsHandler,
        MinLevelHandler,
        RequiresAttributeValueHandler,
    )

    registry = ConditionRegistry()
    registry.register("min_level", MinLevelHandler(pbac_logger))
    registry.register("allowed_ips", AllowedIpsHandler(pbac_logger))
    registry.register("requires_attribute_value", RequiresAttributeValueHandler(resource_lookup, pbac_logger))
    return registry
