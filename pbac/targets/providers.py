"""Relationship providers.

Each provider is bound to a capability marker class and an accessor
attribute. The resolver asks every registered provider in order; a
provider only contributes when the principal carries its marker.
"""

from typing import Any, Iterator

from pbac.targets.models import EntityId, HasPbacGroups, HasPbacTeams, identity_of

class MissingAccessorError(AttributeError):
    """Principal carries a provider's marker but not its accessor."""

    def __init__(self, provider: str, accessor: str, principal_type: str):
        self.provider = provider
        self.accessor = accessor
        super().__init__(
            f"{principal_type} declares '{provider}' membership but has no '{accessor}' attribute"
        )


class RelationshipProvider:
    """Contributes related (category, id) pairs for principals with a capability."""

    def __init__(self, name: str, capability: type, accessor: str):
        self.name = name
        self.capability = capability
        self.accessor = accessor

    def applies_to(self, principal: Any) -> bool:
        return isinstance(principal, self.capability)

    def members_of(self, principal: Any) -> Iterator[tuple[str, EntityId]]:
        """Yield (category, id) for every related entity.

        The id is None for an entity that has no identifier yet.

        Raises:
            MissingAccessorError: if the accessor is missing on the principal
        """
        if not hasattr(principal, self.accessor):
            raise MissingAccessorError(self.name, self.accessor, type(principal).__name__)

        related = getattr(principal, self.accessor)
        if callable(related):
            related = related()
        if related is None:
            return
        if isinstance(related, (str, bytes)) or not hasattr(related, "__iter__"):
            related = [related]

        for entity in related:
            yield identity_of(entity)

    def __repr__(self) -> str:
        return f"RelationshipProvider({self.name!r}, {self.capability.__name__}, {self.accessor!r})"


GROUPS_PROVIDER = RelationshipProvider("groups", HasPbacGroups, "groups")
TEAMS_PROVIDER = RelationshipProvider("teams", HasPbacTeams, "teams")


def default_providers() -> list[RelationshipProvider]:
    """Providers for the built-in group and team capabilities."""
    return [GROUPS_PROVIDER, TEAMS_PROVIDER]
