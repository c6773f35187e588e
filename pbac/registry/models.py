"""Type registry data models.

A type record names a target category (who a rule applies to) or a
resource category (what a rule applies to).
"""

from enum import Enum

from pydantic import BaseModel, Field


class TypeKind(str, Enum):
    """Which side of a rule a type record belongs to."""

    TARGET = "target"
    RESOURCE = "resource"


class TypeRecord(BaseModel):
    """A registered target or resource category."""

    type: str = Field(min_length=1, description="Unique category name")
    is_active: bool = Field(default=True, description="Inactive types never match")
    description: str = Field(default="", description="Free-form description")


class TypeResolution(BaseModel):
    """Outcome of looking a category up in the registry."""

    registered: bool = False
    active: bool = False

    @property
    def usable(self) -> bool:
        """Registered and active."""
        return self.registered and self.active


UNREGISTERED = TypeResolution(registered=False, active=False)
