"""Rule data models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pbac.errors import RuleValidationError
from pbac.targets.models import EntityId


class RuleEffect(str, Enum):
    """Outcome carried by a rule."""

    ALLOW = "allow"
    DENY = "deny"


class Rule(BaseModel):
    """A single access rule.

    A null category is a wildcard over categories; a null instance id is a
    wildcard over instances of the named category. An instance id without
    its category is rejected.
    """

    model_config = ConfigDict(frozen=True)

    id: int | str | None = Field(default=None, description="Rule identifier")
    target_type: str | None = Field(default=None, description="Target category (None = any)")
    target_id: EntityId | None = Field(default=None, description="Target instance (None = any)")
    resource_type: str | None = Field(default=None, description="Resource category (None = any)")
    resource_id: EntityId | None = Field(default=None, description="Resource instance (None = any)")
    actions: frozenset[str] = Field(
        default_factory=frozenset,
        description="Actions this rule covers; empty matches nothing",
    )
    effect: RuleEffect = Field(default=RuleEffect.ALLOW)
    priority: int = Field(default=0, description="Higher = evaluated first")
    conditions: dict[str, Any] | None = Field(
        default=None,
        description="Condition key -> value; empty means unconditional",
    )

    @field_validator("actions", mode="before")
    @classmethod
    def wrap_single_action(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset([value])
        return value

    @model_validator(mode="after")
    def check_instance_ids(self) -> "Rule":
        if self.target_id is not None and self.target_type is None:
            raise RuleValidationError("target_id requires target_type")
        if self.resource_id is not None and self.resource_type is None:
            raise RuleValidationError("resource_id requires resource_type")
        return self

    @property
    def is_conditional(self) -> bool:
        return bool(self.conditions)

    def describe(self) -> str:
        """One-line human readable summary."""
        resource = self.resource_type or "Any Type"
        resource += f" (ID: {self.resource_id})" if self.resource_id is not None else " (Any Instance)"
        target = self.target_type or "Any Type"
        target += f" (ID: {self.target_id})" if self.target_id is not None else " (Any Instance)"
        actions = ", ".join(sorted(self.actions)) or "-"
        return (
            f"#{self.id} {self.effect.value} [{actions}] "
            f"resource={resource} target={target} priority={self.priority}"
        )
