"""Decision audit records.

The audit channel is where the reason behind a decision is kept; callers
of the evaluator only ever see a boolean.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class DecisionReason(str, Enum):
    """Why the evaluator reached its decision."""

    SUPER_ADMIN_BYPASS = "super_admin_bypass"
    NOT_PBAC_ENABLED = "not_pbac_enabled"
    UNREGISTERED_RESOURCE_TYPE = "unregistered_resource_type"
    UNREGISTERED_TARGET_TYPE = "unregistered_target_type"
    DENY_RULE = "deny_rule"
    ALLOW_RULE = "allow_rule"
    DEFAULT_DENY = "default_deny"


class DecisionRecord(BaseModel):
    """One evaluation outcome."""

    record_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    principal_type: str
    principal_id: str | None = None
    action: str
    resource_type: str | None = None
    resource_id: str | None = None

    allowed: bool
    reason: DecisionReason
    matched_rule_id: str | None = None
    evaluated_rules: int = 0
    cache_hit: bool = False
