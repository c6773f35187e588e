"""Type registry implementations."""

import logging
import threading
from typing import Callable, Protocol

from pbac.registry.models import TypeKind, TypeRecord, TypeResolution, UNREGISTERED

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


class TypeRegistry(Protocol):
    """Read side required by the decision engine, plus authoring writes."""

    def resolve(self, kind: TypeKind, name: str) -> TypeResolution: ...

    def register(
        self,
        kind: TypeKind,
        name: str,
        description: str = "",
        active: bool = True,
    ) -> TypeRecord: ...

    def set_active(self, kind: TypeKind, name: str, active: bool) -> bool: ...


class InMemoryTypeRegistry:
    """Thread-safe in-process type registry.

    Usage:
        registry = InMemoryTypeRegistry()
        registry.register(TypeKind.RESOURCE, "Document")
        registry.resolve(TypeKind.RESOURCE, "Document").usable  # True
    """

    def __init__(self):
        self._records: dict[TypeKind, dict[str, TypeRecord]] = {
            TypeKind.TARGET: {},
            TypeKind.RESOURCE: {},
        }
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        """Call `listener` synchronously after every write."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()

    def resolve(self, kind: TypeKind, name: str) -> TypeResolution:
        with self._lock:
            record = self._records[kind].get(name)
        if record is None:
            return UNREGISTERED
        return TypeResolution(registered=True, active=record.is_active)

    def register(
        self,
        kind: TypeKind,
        name: str,
        description: str = "",
        active: bool = True,
    ) -> TypeRecord:
        """Register a type, returning the existing record if already present."""
        with self._lock:
            existing = self._records[kind].get(name)
            if existing is not None:
                return existing
            record = TypeRecord(type=name, is_active=active, description=description)
            self._records[kind][name] = record
        logger.debug("Registered %s type: %s", kind.value, name)
        self._notify()
        return record

    def set_active(self, kind: TypeKind, name: str, active: bool) -> bool:
        """Toggle a type's active flag. Returns False if the type is unknown."""
        with self._lock:
            record = self._records[kind].get(name)
            if record is None:
                return False
            self._records[kind][name] = record.model_copy(update={"is_active": active})
        logger.info("Set %s type %s active=%s", kind.value, name, active)
        self._notify()
        return True

    def get(self, kind: TypeKind, name: str) -> TypeRecord | None:
        with self._lock:
            return self._records[kind].get(name)

    def list_types(self, kind: TypeKind) -> list[TypeRecord]:
        with self._lock:
            return sorted(self._records[kind].values(), key=lambda r: r.type)
