"""Rule index interface and in-memory implementation."""

import itertools
import logging
import threading
from typing import Callable, Protocol

from pbac.rules.matching import order_candidates, rule_matches
from pbac.rules.models import Rule
from pbac.targets.models import EntityId, TargetSet

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


class RuleIndex(Protocol):
    """Returns the candidate rules for a request, priority descending."""

    def query(
        self,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        targets: TargetSet,
    ) -> list[Rule]: ...


class InMemoryRuleIndex:
    """Thread-safe rule index held in process memory.

    Rules without an id are assigned the next integer id on insert.
    Listeners are called synchronously after every write so caches layered
    in front of the index never serve a stale allow.
    """

    def __init__(self, rules: list[Rule] | None = None):
        self._rules: dict[int | str, Rule] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []
        for rule in rules or []:
            self.add(rule)

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()

    def add(self, rule: Rule) -> Rule:
        """Add or replace a rule, returning it with its id set."""
        with self._lock:
            if rule.id is None:
                rule_id = next(self._ids)
                while rule_id in self._rules:
                    rule_id = next(self._ids)
                rule = rule.model_copy(update={"id": rule_id})
            self._rules[rule.id] = rule
        logger.debug("Added rule: %s", rule.describe())
        self._notify()
        return rule

    create_rule = add

    def update(self, rule: Rule) -> bool:
        with self._lock:
            if rule.id not in self._rules:
                return False
            self._rules[rule.id] = rule
        self._notify()
        return True

    def remove(self, rule_id: int | str) -> bool:
        with self._lock:
            removed = self._rules.pop(rule_id, None)
        if removed is None:
            return False
        self._notify()
        return True

    def get(self, rule_id: int | str) -> Rule | None:
        with self._lock:
            return self._rules.get(rule_id)

    def all(self) -> list[Rule]:
        with self._lock:
            return order_candidates(self._rules.values())

    def clear(self) -> None:
        with self._lock:
            self._rules.clear()
        self._notify()

    def query(
        self,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        targets: TargetSet,
    ) -> list[Rule]:
        with self._lock:
            snapshot = list(self._rules.values())
        return order_candidates(
            rule
            for rule in snapshot
            if rule_matches(rule, action, resource_type, resource_id, targets)
        )

    def __len__(self) -> int:
        return len(self._rules)
