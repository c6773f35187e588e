"""Authorization data models.

Resource references, decisions, and the argument normalization shared by
the evaluator and the service facade.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from pbac.audit.models import DecisionReason
from pbac.errors import ContractViolationError
from pbac.targets.models import EntityId, identity_of, type_name_of


class ResourceRef(BaseModel):
    """Tagged reference to a resource: a category plus an optional instance id.

    Usage:
        ResourceRef(category="Document", instance_id=7)   # one document
        ResourceRef(category="Document")                  # the Document category
    """

    category: str = Field(min_length=1, description="Resource category name")
    instance_id: EntityId | None = Field(default=None, description="Instance id (None = category only)")

    @classmethod
    def of(cls, obj: Any) -> "ResourceRef":
        category, key = identity_of(obj)
        return cls(category=category, instance_id=key)


class AccessDecision(BaseModel):
    """Result of one evaluation. Only `allowed` is exposed to callers of `evaluate`."""

    allowed: bool = Field(description="Whether access is allowed")
    reason: DecisionReason = Field(description="Why the decision was reached")
    matched_rule_id: int | str | None = Field(
        default=None,
        description="Rule that decided (deny or allow rule)",
    )
    evaluated_rules: int = Field(default=0, description="Number of candidate rules considered")
    resource_type: str | None = None
    resource_id: EntityId | None = None


_SCALARS = (int, float, bool, bytes)


def resolve_resource(resource: Any) -> tuple[str | None, EntityId | None]:
    """Derive (category, instance id) from a resource argument.

    Accepts None, a ResourceRef, a bare category string, a class, or a domain
    object exposing an `id`.

    Raises:
        ContractViolationError: for any other argument shape
    """
    if resource is None:
        return None, None
    if isinstance(resource, ResourceRef):
        return resource.category, resource.instance_id
    if isinstance(resource, str):
        if not resource:
            raise ContractViolationError("Resource type name must not be empty")
        return resource, None
    if isinstance(resource, type):
        return type_name_of(resource), None
    if isinstance(resource, _SCALARS) or isinstance(resource, (Mapping, list, tuple, set)):
        raise ContractViolationError(
            f"Unsupported resource argument of type {type(resource).__name__}"
        )
    category, key = identity_of(resource)
    if key is None:
        raise ContractViolationError(
            f"Resource object of type {category} has no identity; pass a ResourceRef or a type name"
        )
    return category, key


def normalize_context(context: Any) -> dict[str, Any]:
    """Coerce the caller's context into a plain dict."""
    if context is None:
        return {}
    if isinstance(context, Mapping):
        return dict(context)
    if isinstance(context, BaseModel):
        return context.model_dump()
    to_dict = getattr(context, "to_dict", None)
    if callable(to_dict):
        return dict(to_dict())
    return {"_value": context}
