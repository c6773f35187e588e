"""PBAC target resolution.

Turns a principal into the set of (category, ids) a rule's target clause
is matched against: the principal itself plus its group, team, or other
provider-contributed memberships.
"""

from pbac.targets.models import (
    AccessGroup,
    AccessTeam,
    EntityId,
    HasPbacAccessControl,
    HasPbacGroups,
    HasPbacTeams,
    TargetSet,
    identity_of,
    type_name_of,
)
from pbac.targets.providers import (
    GROUPS_PROVIDER,
    TEAMS_PROVIDER,
    MissingAccessorError,
    RelationshipProvider,
    default_providers,
)
from pbac.targets.resolver import TargetResolver

__all__ = [
    "AccessGroup",
    "AccessTeam",
    "EntityId",
    "HasPbacAccessControl",
    "HasPbacGroups",
    "HasPbacTeams",
    "TargetSet",
    "identity_of",
    "type_name_of",
    "GROUPS_PROVIDER",
    "TEAMS_PROVIDER",
    "MissingAccessorError",
    "RelationshipProvider",
    "default_providers",
    "TargetResolver",
]
