"""PBAC type registry.

Tracks known target and resource categories and whether each is active.
Whether an unknown or inactive category is a hard deny or a fall-back to
wildcard-only matching is decided by the evaluator's strictness settings.
"""

from pbac.registry.models import TypeKind, TypeRecord, TypeResolution
from pbac.registry.registry import InMemoryTypeRegistry, TypeRegistry

__all__ = [
    "TypeKind",
    "TypeRecord",
    "TypeResolution",
    "TypeRegistry",
    "InMemoryTypeRegistry",
]
