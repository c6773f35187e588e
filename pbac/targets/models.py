"""Target-side models: capability markers, membership entities, and TargetSet."""

from __future__ import annotations

from typing import Any, ClassVar, Iterable, Mapping

from pydantic import BaseModel, Field

EntityId = int | str


def type_name_of(obj: Any) -> str:
    """Category name for a class or instance.

    Honours an explicit `pbac_type_name` class attribute, otherwise the
    class name.
    """
    cls = obj if isinstance(obj, type) else type(obj)
    return getattr(cls, "pbac_type_name", None) or cls.__name__


def identity_of(obj: Any) -> tuple[str, EntityId | None]:
    """(category, id) pair for a domain object."""
    if isinstance(obj, HasPbacAccessControl):
        return obj.get_pbac_type(), obj.get_pbac_key()
    return type_name_of(obj), getattr(obj, "id", None)


class HasPbacAccessControl:
    """Capability marker: the principal takes part in PBAC evaluation.

    Principals without this mixin are always denied.
    """

    pbac_type_name: ClassVar[str | None] = None
    pbac_key_attribute: ClassVar[str] = "id"

    def get_pbac_type(self) -> str:
        return type_name_of(self)

    def get_pbac_key(self) -> EntityId | None:
        return getattr(self, self.pbac_key_attribute, None)

    def can(self, ability: str, arguments: Any = None) -> bool:
        """Check an ability through the process-wide PBAC service."""
        from pbac.authz.service import get_pbac_service

        return get_pbac_service().can(self, ability, arguments)


class HasPbacGroups:
    """Capability marker: the principal exposes PBAC group memberships as `groups`."""


class HasPbacTeams:
    """Capability marker: the principal exposes PBAC team memberships as `teams`."""


class AccessGroup(BaseModel):
    """A PBAC group (admins, guests, owners...)."""

    pbac_type_name: ClassVar[str] = "AccessGroup"

    id: EntityId
    name: str
    description: str = ""


class AccessTeam(BaseModel):
    """A PBAC team (development, marketing, sales...)."""

    pbac_type_name: ClassVar[str] = "AccessTeam"

    id: EntityId
    name: str
    description: str = ""


class TargetSet(BaseModel):
    """Category name -> ids applicable to one principal for one evaluation."""

    entries: dict[str, frozenset[EntityId]] = Field(default_factory=dict)

    @classmethod
    def of(cls, mapping: Mapping[str, Iterable[EntityId]]) -> TargetSet:
        target_set = cls()
        for category, ids in mapping.items():
            target_set.add_all(category, ids)
        return target_set

    def add(self, category: str, entity_id: EntityId) -> None:
        self.add_all(category, [entity_id])

    def add_all(self, category: str, ids: Iterable[EntityId]) -> None:
        current = self.entries.get(category, frozenset())
        self.entries[category] = current | frozenset(ids)

    def merge(self, other: TargetSet) -> None:
        for category, ids in other.entries.items():
            self.add_all(category, ids)

    def categories(self) -> list[str]:
        return list(self.entries)

    def ids_for(self, category: str) -> frozenset[EntityId]:
        return self.entries.get(category, frozenset())

    def restricted_to(self, categories: Iterable[str]) -> TargetSet:
        """Copy keeping only the given categories."""
        keep = set(categories)
        return TargetSet(
            entries={c: ids for c, ids in self.entries.items() if c in keep}
        )

    def __contains__(self, category: object) -> bool:
        return category in self.entries

    def __len__(self) -> int:
        return len(self.entries)
