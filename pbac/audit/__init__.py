"""PBAC decision audit.

Usage:
    from pbac.audit import InMemoryAuditStorage

    audit = InMemoryAuditStorage()
    evaluator = PolicyEvaluator(..., audit_sink=audit)
    evaluator.evaluate(user, "view", document)
    audit.all()[-1].reason  # DecisionReason.ALLOW_RULE
"""

from pbac.audit.models import DecisionReason, DecisionRecord
from pbac.audit.storage import AuditSink, FileAuditStorage, InMemoryAuditStorage

__all__ = [
    "DecisionReason",
    "DecisionRecord",
    "AuditSink",
    "FileAuditStorage",
    "InMemoryAuditStorage",
]
