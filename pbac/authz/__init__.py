"""PBAC Authorization Package.

Policy-based access control: deny-overrides evaluation of prioritized rules
over principals, their groups and teams, and typed resources.

Usage:
    from pbac.authz import ResourceRef, get_pbac_service

    service = get_pbac_service()

    # Check access
    if service.can(user, "view", ResourceRef(category="Document", instance_id=7)):
        # Allowed
        pass
"""

from pbac.authz.models import (
    AccessDecision,
    ResourceRef,
    normalize_context,
    resolve_resource,
)
from pbac.authz.engine import PolicyEvaluator, build_policy_evaluator, super_admin_bypass
from pbac.authz.service import (
    PbacService,
    get_pbac_service,
    require_access,
    set_pbac_service,
    split_arguments,
)

__all__ = [
    "AccessDecision",
    "ResourceRef",
    "normalize_context",
    "resolve_resource",
    "PolicyEvaluator",
    "build_policy_evaluator",
    "super_admin_bypass",
    "PbacService",
    "get_pbac_service",
    "require_access",
    "set_pbac_service",
    "split_arguments",
]
