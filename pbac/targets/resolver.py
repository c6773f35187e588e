"""Target resolution: expand a principal into its TargetSet."""

from typing import Any, Iterable

from pbac.support.logger import PbacLogger
from pbac.targets.models import TargetSet, identity_of
from pbac.targets.providers import (
    MissingAccessorError,
    RelationshipProvider,
    default_providers,
)


class TargetResolver:
    """Resolve the principal itself plus every provider-contributed membership."""

    def __init__(
        self,
        providers: Iterable[RelationshipProvider] | None = None,
        pbac_logger: PbacLogger | None = None,
    ):
        self.providers: list[RelationshipProvider] = (
            list(providers) if providers is not None else default_providers()
        )
        self.logger = pbac_logger or PbacLogger()

    def add_provider(self, provider: RelationshipProvider) -> None:
        self.providers.append(provider)

    def resolve(self, principal: Any) -> TargetSet:
        category, key = identity_of(principal)
        targets = TargetSet()
        targets.add(category, key)

        for provider in self.providers:
            if not provider.applies_to(principal):
                continue
            try:
                for member_category, member_id in provider.members_of(principal):
                    if member_id is None:
                        self.logger.warning(
                            "Skipping %s entity of type %s without an id",
                            provider.name,
                            member_category,
                        )
                        continue
                    targets.add(member_category, member_id)
            except MissingAccessorError as e:
                self.logger.warning("PBAC Warning: %s", e)

        return targets
