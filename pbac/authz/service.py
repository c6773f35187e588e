"""PBAC service facade.

Adapts the host application's `can(ability, arguments)` convention to the
evaluator and exposes rule builders bound to the configured rule index.
"""

from collections.abc import Mapping
from typing import Any, Callable

from pbac.authz.engine import PolicyEvaluator, build_policy_evaluator
from pbac.authz.models import AccessDecision, ResourceRef
from pbac.config import PbacSettings, get_settings
from pbac.rules.builder import RuleBuilder

_SCALARS = (int, float, bool, bytes)


def _is_resource_like(value: Any) -> bool:
    if isinstance(value, (str, type, ResourceRef)):
        return True
    if value is None or isinstance(value, (Mapping, list, tuple, set, frozenset) + _SCALARS):
        return False
    return True


def split_arguments(arguments: Any) -> tuple[Any, Any]:
    """Split a `can()` argument into (resource, context).

    Accepted shapes:
        None                               -> (None, None)
        {"resource": r, "context": c}      -> (r, c)
        [resource, context] / (resource,)  -> positional, when the first
                                              item is a resource or a type name
        other list or tuple                -> context keyed by position
        other mapping                      -> context only
        scalar                             -> context {"_value": scalar}
        anything else                      -> resource only
    """
    if arguments is None:
        return None, None
    if isinstance(arguments, Mapping):
        if "resource" in arguments or "context" in arguments:
            return arguments.get("resource"), arguments.get("context")
        return None, dict(arguments)
    if isinstance(arguments, (list, tuple)):
        if arguments and _is_resource_like(arguments[0]):
            context = arguments[1] if len(arguments) > 1 else None
            return arguments[0], context
        return None, dict(enumerate(arguments))
    if isinstance(arguments, _SCALARS):
        return None, {"_value": arguments}
    return arguments, None


class PbacService:
    """Entry point used by principals and request handlers."""

    def __init__(self, evaluator: PolicyEvaluator, settings: PbacSettings | None = None):
        self.evaluator = evaluator
        self.settings = settings or evaluator.settings

    def can(self, principal: Any, ability: str, arguments: Any = None) -> bool:
        resource, context = split_arguments(arguments)
        return self.evaluator.evaluate(principal, ability, resource, context)

    def cannot(self, principal: Any, ability: str, arguments: Any = None) -> bool:
        return not self.can(principal, ability, arguments)

    def explain(self, principal: Any, ability: str, arguments: Any = None) -> AccessDecision:
        resource, context = split_arguments(arguments)
        return self.evaluator.decide(principal, ability, resource, context)

    def allow(self) -> RuleBuilder:
        return RuleBuilder.allow()

    def deny(self) -> RuleBuilder:
        return RuleBuilder.deny()


# Singleton instance
_service: PbacService | None = None


def get_pbac_service() -> PbacService:
    """Get the process-wide PBAC service, building it from settings on first use."""
    global _service
    if _service is None:
        settings = get_settings()
        _service = PbacService(build_policy_evaluator(settings), settings)
    return _service


def set_pbac_service(service: PbacService | None) -> None:
    """Install (or with None, reset) the process-wide PBAC service."""
    global _service
    _service = service


def require_access(
    action: str,
    get_principal: Callable[..., Any],
    resource: Any = None,
    context: Callable[..., Any] | None = None,
):
    """FastAPI dependency that rejects the request unless access is allowed.

    Usage:
        @app.get("/documents/{doc_id}")
        async def read_document(
            doc_id: int,
            user: User = Depends(require_access("view", get_current_user, "Document")),
        ):
            pass

    `resource` is either a fixed resource argument or a callable taking the
    request. `context` is a callable taking the request; by default the
    context carries the client IP address.
    """
    from fastapi import Depends, HTTPException, Request, status

    def check(request: Request, principal: Any = Depends(get_principal)) -> Any:
        target = resource(request) if callable(resource) and not isinstance(resource, type) else resource
        if context is not None:
            ctx = context(request)
        else:
            ctx = {"ip_address": request.client.host if request.client else None}

        decision = get_pbac_service().explain(
            principal, action, {"resource": target, "context": ctx}
        )
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "forbidden",
                    "message": "Access denied",
                },
            )
        return principal

    return check


__all__ = [
    "PbacService",
    "ResourceRef",
    "get_pbac_service",
    "require_access",
    "set_pbac_service",
    "split_arguments",
]
