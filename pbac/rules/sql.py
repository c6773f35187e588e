"""SQLAlchemy-backed policy store.

Holds type records and rules in three tables (`pbac_access_targets`,
`pbac_access_resources`, `pbac_accesses`) and serves both the type
registry and the rule index interfaces.

The SQL query narrows candidates on the type columns only. Instance ids
and the action list are JSON and are matched with the shared predicate
in Python, so results are identical to `InMemoryRuleIndex` on any backend.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine, Row
from sqlalchemy.pool import StaticPool

from pbac.registry.models import TypeKind, TypeRecord, TypeResolution, UNREGISTERED
from pbac.rules.matching import order_candidates, rule_matches
from pbac.rules.models import Rule, RuleEffect
from pbac.targets.models import EntityId, TargetSet

logger = logging.getLogger(__name__)

metadata = MetaData()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


access_targets = Table(
    "pbac_access_targets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=False, default=""),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
)

access_resources = Table(
    "pbac_access_resources",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=False, default=""),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
)

accesses = Table(
    "pbac_accesses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "pbac_access_target_id",
        Integer,
        ForeignKey("pbac_access_targets.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    ),
    Column("target_id", JSON(none_as_null=True), nullable=True),
    Column(
        "pbac_access_resource_id",
        Integer,
        ForeignKey("pbac_access_resources.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    ),
    Column("resource_id", JSON(none_as_null=True), nullable=True),
    Column("action", JSON(none_as_null=True), nullable=True),
    Column("effect", String(8), nullable=False, default=RuleEffect.ALLOW.value),
    Column("extras", JSON(none_as_null=True), nullable=True),
    Column("priority", Integer, nullable=False, default=0, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=_utcnow),
)

TYPE_TABLES = {
    TypeKind.TARGET: access_targets,
    TypeKind.RESOURCE: access_resources,
}


def make_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url)


class SqlPolicyStore:
    """Durable type registry and rule index.

    Usage:
        store = SqlPolicyStore("sqlite:///pbac.db")
        store.create_all()
        store.create_rule(Rule(actions={"view"}, resource_type="Document"))
    """

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        if engine is None:
            if database_url is None:
                raise ValueError("database_url or engine is required")
            engine = make_engine(database_url)
        self.engine = engine
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    def create_all(self) -> None:
        metadata.create_all(self.engine)

    def drop_all(self) -> None:
        metadata.drop_all(self.engine)

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()

    # ------------------------------------------------------------------
    # Type registry
    # ------------------------------------------------------------------

    def resolve(self, kind: TypeKind, name: str) -> TypeResolution:
        table = TYPE_TABLES[kind]
        with self.engine.connect() as conn:
            row = conn.execute(
                select(table.c.is_active).where(table.c.type == name)
            ).first()
        if row is None:
            return UNREGISTERED
        return TypeResolution(registered=True, active=bool(row.is_active))

    def register(
        self,
        kind: TypeKind,
        name: str,
        description: str = "",
        active: bool = True,
    ) -> TypeRecord:
        """Register a type if absent. Existing records are returned unchanged."""
        table = TYPE_TABLES[kind]
        with self._lock, self.engine.begin() as conn:
            row = conn.execute(select(table).where(table.c.type == name)).first()
            if row is not None:
                return _type_record(row)
            conn.execute(
                insert(table).values(type=name, description=description, is_active=active)
            )
        logger.info("Registered %s type: %s", kind.value, name)
        self._notify()
        return TypeRecord(type=name, is_active=active, description=description)

    def set_active(self, kind: TypeKind, name: str, active: bool) -> bool:
        table = TYPE_TABLES[kind]
        with self.engine.begin() as conn:
            result = conn.execute(
                update(table).where(table.c.type == name).values(is_active=active)
            )
        if result.rowcount == 0:
            return False
        logger.info("Set %s type %s active=%s", kind.value, name, active)
        self._notify()
        return True

    def get(self, kind: TypeKind, name: str) -> TypeRecord | None:
        table = TYPE_TABLES[kind]
        with self.engine.connect() as conn:
            row = conn.execute(select(table).where(table.c.type == name)).first()
        return _type_record(row) if row is not None else None

    def list_types(self, kind: TypeKind) -> list[TypeRecord]:
        table = TYPE_TABLES[kind]
        with self.engine.connect() as conn:
            rows = conn.execute(select(table).order_by(table.c.type)).all()
        return [_type_record(row) for row in rows]

    def _type_pk(self, conn: Any, kind: TypeKind, name: str | None) -> int | None:
        if name is None:
            return None
        table = TYPE_TABLES[kind]
        return conn.execute(select(table.c.id).where(table.c.type == name)).scalar()

    # ------------------------------------------------------------------
    # Rule authoring
    # ------------------------------------------------------------------

    def create_rule(self, rule: Rule, register_types: bool = True) -> Rule:
        """Persist a rule and return it with its database id.

        Referenced types are registered on the fly unless `register_types`
        is False, in which case unknown types raise LookupError.
        """
        if register_types:
            if rule.target_type is not None:
                self.register(TypeKind.TARGET, rule.target_type)
            if rule.resource_type is not None:
                self.register(TypeKind.RESOURCE, rule.resource_type)

        with self.engine.begin() as conn:
            values = self._rule_values(conn, rule)
            if rule.id is not None:
                values["id"] = rule.id
            result = conn.execute(insert(accesses).values(**values))
            rule_id = result.inserted_primary_key[0]

        self._notify()
        return rule.model_copy(update={"id": rule_id})

    def update_rule(self, rule: Rule) -> bool:
        if rule.id is None:
            return False
        with self.engine.begin() as conn:
            values = self._rule_values(conn, rule)
            values["updated_at"] = _utcnow()
            result = conn.execute(
                update(accesses).where(accesses.c.id == rule.id).values(**values)
            )
        if result.rowcount == 0:
            return False
        self._notify()
        return True

    def delete_rule(self, rule_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(delete(accesses).where(accesses.c.id == rule_id))
        if result.rowcount == 0:
            return False
        self._notify()
        return True

    def get_rule(self, rule_id: int) -> Rule | None:
        with self.engine.connect() as conn:
            row = conn.execute(self._rule_select().where(accesses.c.id == rule_id)).first()
        return _rule_from_row(row) if row is not None else None

    def list_rules(self) -> list[Rule]:
        with self.engine.connect() as conn:
            rows = conn.execute(self._rule_select()).all()
        return order_candidates(_rule_from_row(row) for row in rows)

    def _rule_values(self, conn: Any, rule: Rule) -> dict[str, Any]:
        target_pk = self._type_pk(conn, TypeKind.TARGET, rule.target_type)
        resource_pk = self._type_pk(conn, TypeKind.RESOURCE, rule.resource_type)
        if rule.target_type is not None and target_pk is None:
            raise LookupError(f"Target type '{rule.target_type}' is not registered")
        if rule.resource_type is not None and resource_pk is None:
            raise LookupError(f"Resource type '{rule.resource_type}' is not registered")
        return {
            "pbac_access_target_id": target_pk,
            "target_id": rule.target_id,
            "pbac_access_resource_id": resource_pk,
            "resource_id": rule.resource_id,
            "action": sorted(rule.actions),
            "effect": rule.effect.value,
            "extras": rule.conditions or None,
            "priority": rule.priority,
        }

    # ------------------------------------------------------------------
    # Rule index
    # ------------------------------------------------------------------

    def _rule_select(self):
        return (
            select(
                accesses,
                access_targets.c.type.label("target_type"),
                access_resources.c.type.label("resource_type"),
            )
            .select_from(
                accesses.outerjoin(
                    access_targets, accesses.c.pbac_access_target_id == access_targets.c.id
                ).outerjoin(
                    access_resources,
                    accesses.c.pbac_access_resource_id == access_resources.c.id,
                )
            )
            .order_by(accesses.c.priority.desc(), accesses.c.id.asc())
        )

    def query(
        self,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        targets: TargetSet,
    ) -> list[Rule]:
        stmt = self._rule_select()

        resource_clause = accesses.c.pbac_access_resource_id.is_(None)
        if resource_type is not None:
            resource_clause = or_(resource_clause, access_resources.c.type == resource_type)

        target_clause = accesses.c.pbac_access_target_id.is_(None)
        categories = targets.categories()
        if categories:
            target_clause = or_(target_clause, access_targets.c.type.in_(categories))

        stmt = stmt.where(resource_clause).where(target_clause)

        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()

        candidates = (_rule_from_row(row) for row in rows)
        return order_candidates(
            rule
            for rule in candidates
            if rule_matches(rule, action, resource_type, resource_id, targets)
        )


def _type_record(row: Row) -> TypeRecord:
    return TypeRecord(
        type=row.type,
        is_active=bool(row.is_active),
        description=row.description or "",
    )


def _rule_from_row(row: Row) -> Rule:
    return Rule(
        id=row.id,
        target_type=row.target_type,
        target_id=row.target_id,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        actions=row.action,
        effect=RuleEffect(row.effect),
        priority=row.priority,
        conditions=row.extras or None,
    )
