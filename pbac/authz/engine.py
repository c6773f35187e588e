"""Policy evaluator.

Decides allow/deny for (principal, action, resource, context) against a
prioritized rule set.

Evaluation order:
0. Super-admin bypass (optional)
1. Principal must carry the HasPbacAccessControl capability
2. Resolve the resource category through the type registry
3. Resolve the principal's targets through the relationship providers
4. Query candidate rules, priority descending
5. Any deny rule whose conditions hold denies
6. Otherwise the first allow rule whose conditions hold allows
7. Default deny
"""

from typing import Any, Callable

from pbac.audit.models import DecisionReason, DecisionRecord
from pbac.audit.storage import AuditSink
from pbac.cache import DecisionCache
from pbac.conditions.evaluator import ConditionEvaluator
from pbac.conditions.registry import ConditionRegistry, default_condition_registry
from pbac.config import PbacSettings, get_settings
from pbac.errors import ContractViolationError, CapabilityError, UnregisteredTypeError
from pbac.authz.models import AccessDecision, normalize_context, resolve_resource
from pbac.registry.models import TypeKind
from pbac.registry.registry import InMemoryTypeRegistry, TypeRegistry
from pbac.rules.index import InMemoryRuleIndex, RuleIndex
from pbac.rules.models import Rule, RuleEffect
from pbac.support.logger import PbacLogger
from pbac.targets.models import EntityId, HasPbacAccessControl, TargetSet, identity_of
from pbac.targets.providers import RelationshipProvider
from pbac.targets.resolver import TargetResolver

Bypass = Callable[[Any], bool]


def super_admin_bypass(attribute: str | None) -> Bypass | None:
    """Pre-check granting access when `principal.<attribute>` is truthy.

    Returns None when no attribute is configured.
    """
    if not attribute:
        return None

    def check(principal: Any) -> bool:
        return bool(getattr(principal, attribute, False))

    check.__name__ = f"super_admin_bypass_{attribute}"
    return check


class PolicyEvaluator:
    """PBAC decision engine.

    Usage:
        evaluator = build_policy_evaluator()
        evaluator.type_registry.register(TypeKind.RESOURCE, "Document")
        evaluator.rule_index.add(Rule(actions={"view"}, resource_type="Document"))

        if evaluator.evaluate(user, "view", ResourceRef(category="Document", instance_id=7)):
            # Allowed
            pass

    `evaluate` never raises for policy-data problems; the only exception it
    lets through is ContractViolationError for a malformed argument.
    """

    def __init__(
        self,
        type_registry: TypeRegistry,
        rule_index: RuleIndex,
        condition_evaluator: ConditionEvaluator,
        target_resolver: TargetResolver | None = None,
        settings: PbacSettings | None = None,
        bypass: Bypass | None = None,
        cache: DecisionCache | None = None,
        audit_sink: AuditSink | None = None,
        pbac_logger: PbacLogger | None = None,
    ):
        self.settings = settings or get_settings()
        self.type_registry = type_registry
        self.rule_index = rule_index
        self.condition_evaluator = condition_evaluator
        self.target_resolver = target_resolver or TargetResolver()
        self.bypass = bypass
        self.cache = cache
        self.audit_sink = audit_sink
        self.logger = pbac_logger or PbacLogger(self.settings)

    def evaluate(
        self,
        principal: Any,
        action: str,
        resource: Any = None,
        context: Any = None,
    ) -> bool:
        """Return True if `principal` may perform `action` on `resource`."""
        return self.decide(principal, action, resource, context).allowed

    def decide(
        self,
        principal: Any,
        action: str,
        resource: Any = None,
        context: Any = None,
    ) -> AccessDecision:
        """Run the full evaluation and return the decision with its reason."""
        if not isinstance(action, str):
            raise ContractViolationError(f"Action must be a string, got {type(action).__name__}")
        resource_type, resource_id = resolve_resource(resource)

        if self.bypass is not None and self.bypass(principal):
            self.logger.info("PBAC Allow: super admin bypass for action '%s'.", action)
            decision = AccessDecision(
                allowed=True,
                reason=DecisionReason.SUPER_ADMIN_BYPASS,
                resource_type=resource_type,
                resource_id=resource_id,
            )
            self._audit(principal, action, decision)
            return decision

        context = normalize_context(context)
        # Read before any registry or index lookup so a concurrent write
        # keeps this decision out of the cache.
        generation = self.cache.generation if self.cache is not None else None

        try:
            self._validate_principal(principal)
            resource_type, resource_id = self._resolve_resource_type(resource_type, resource_id)
        except CapabilityError as e:
            self.logger.error("PBAC Error: %s", e.message)
            decision = AccessDecision(
                allowed=False,
                reason=DecisionReason.NOT_PBAC_ENABLED,
                resource_type=resource_type,
                resource_id=resource_id,
            )
            self._audit(principal, action, decision)
            return decision
        except UnregisteredTypeError as e:
            self.logger.info("PBAC Deny: Strict resource registration is enabled. %s", e.message)
            decision = AccessDecision(
                allowed=False,
                reason=DecisionReason.UNREGISTERED_RESOURCE_TYPE,
                resource_type=resource_type,
                resource_id=resource_id,
            )
            self._audit(principal, action, decision)
            return decision

        principal_type, principal_id = identity_of(principal)

        try:
            targets = self._resolve_targets(principal)
        except UnregisteredTypeError:
            self.logger.info("PBAC Deny: Principal's target types are not registered or are inactive.")
            decision = AccessDecision(
                allowed=False,
                reason=DecisionReason.UNREGISTERED_TARGET_TYPE,
                resource_type=resource_type,
                resource_id=resource_id,
            )
            self._audit(principal, action, decision)
            return decision

        cache_key = None
        if self.cache is not None:
            cache_key = self.cache.make_key(
                principal_type, principal_id, action, resource_type, resource_id, context, targets.entries
            )
            cached = self.cache.get(cache_key)
            if cached is not None:
                self._audit(principal, action, cached, cache_hit=True)
                return cached

        decision = self._evaluate_rules(principal, action, resource_type, resource_id, context, targets)

        if cache_key is not None:
            self.cache.set(cache_key, decision, principal_type, principal_id, generation)
        self._audit(principal, action, decision)
        return decision

    def _validate_principal(self, principal: Any) -> None:
        if not isinstance(principal, HasPbacAccessControl):
            raise CapabilityError(type(principal).__name__)

    def _resolve_resource_type(
        self, resource_type: str | None, resource_id: EntityId | None
    ) -> tuple[str | None, EntityId | None]:
        """Apply the registry to the resource category.

        Lenient mode folds an unusable category into "no specific resource",
        so only rules for any resource type can still match.
        """
        if resource_type is None:
            return None, None

        resolution = self.type_registry.resolve(TypeKind.RESOURCE, resource_type)
        if resolution.usable:
            return resource_type, resource_id

        if not resolution.registered:
            self.logger.warning(
                "PBAC Warning: Resource type '%s' not registered in pbac_access_resources.",
                resource_type,
            )
        else:
            self.logger.warning("PBAC Warning: Resource type '%s' is inactive.", resource_type)

        if self.settings.strict_resource_registration:
            raise UnregisteredTypeError(TypeKind.RESOURCE.value, resource_type)

        self.logger.debug(
            "PBAC Info: Non-strict mode, resource type '%s' not found or inactive. "
            "Proceeding with general resource rules.",
            resource_type,
        )
        return None, None

    def _resolve_targets(self, principal: Any) -> TargetSet:
        """Principal's targets restricted to registered, active categories.

        Raises:
            UnregisteredTypeError: strict mode and no category is usable
        """
        targets = self.target_resolver.resolve(principal)
        usable = []
        for category in targets.categories():
            if self.type_registry.resolve(TypeKind.TARGET, category).usable:
                usable.append(category)
            else:
                self.logger.warning(
                    "PBAC Warning: Target type '%s' used by principal is not registered "
                    "or is inactive in pbac_access_targets.",
                    category,
                )

        if not usable and self.settings.strict_target_registration:
            raise UnregisteredTypeError(TypeKind.TARGET.value, ", ".join(targets.categories()))

        return targets.restricted_to(usable)

    def _evaluate_rules(
        self,
        principal: Any,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        context: dict[str, Any],
        targets: TargetSet,
    ) -> AccessDecision:
        principal_type, principal_id = identity_of(principal)

        candidates = self.rule_index.query(action, resource_type, resource_id, targets)
        deny_rules = [r for r in candidates if r.effect == RuleEffect.DENY]
        allow_rules = [r for r in candidates if r.effect == RuleEffect.ALLOW]

        # Deny is checked over every deny candidate before any allow rule.
        for rule in deny_rules:
            if self._conditions_hold(rule, principal, action, resource_type, resource_id, context):
                self.logger.info(
                    "PBAC Deny: %s ID %s denied action '%s' on resource type '%s' (ID: %s) by rule ID %s.",
                    principal_type, principal_id, action, resource_type, resource_id, rule.id,
                )
                return AccessDecision(
                    allowed=False,
                    reason=DecisionReason.DENY_RULE,
                    matched_rule_id=rule.id,
                    evaluated_rules=len(candidates),
                    resource_type=resource_type,
                    resource_id=resource_id,
                )

        for rule in allow_rules:
            if self._conditions_hold(rule, principal, action, resource_type, resource_id, context):
                self.logger.info(
                    "PBAC Allow: %s ID %s allowed action '%s' on resource type '%s' (ID: %s) by rule ID %s.",
                    principal_type, principal_id, action, resource_type, resource_id, rule.id,
                )
                return AccessDecision(
                    allowed=True,
                    reason=DecisionReason.ALLOW_RULE,
                    matched_rule_id=rule.id,
                    evaluated_rules=len(candidates),
                    resource_type=resource_type,
                    resource_id=resource_id,
                )

        self.logger.info(
            "PBAC Default Deny: %s ID %s denied action '%s' on resource type '%s' (ID: %s). "
            "No matching allow rule found after context evaluation.",
            principal_type, principal_id, action, resource_type, resource_id,
        )
        return AccessDecision(
            allowed=False,
            reason=DecisionReason.DEFAULT_DENY,
            evaluated_rules=len(candidates),
            resource_type=resource_type,
            resource_id=resource_id,
        )

    def _conditions_hold(
        self,
        rule: Rule,
        principal: Any,
        action: str,
        resource_type: str | None,
        resource_id: EntityId | None,
        context: dict[str, Any],
    ) -> bool:
        outcome = self.condition_evaluator.explain(
            rule, principal, action, resource_type, resource_id, context
        )
        if not outcome.passed:
            self.logger.debug(
                "Rule ID %s skipped: condition '%s' %s.", rule.id, outcome.failed_key, outcome.reason
            )
        return outcome.passed

    def _audit(
        self, principal: Any, action: str, decision: AccessDecision, cache_hit: bool = False
    ) -> None:
        if self.audit_sink is None:
            return
        principal_type, principal_id = identity_of(principal)
        record = DecisionRecord(
            principal_type=principal_type,
            principal_id=None if principal_id is None else str(principal_id),
            action=action,
            resource_type=decision.resource_type,
            resource_id=None if decision.resource_id is None else str(decision.resource_id),
            allowed=decision.allowed,
            reason=decision.reason,
            matched_rule_id=None if decision.matched_rule_id is None else str(decision.matched_rule_id),
            evaluated_rules=decision.evaluated_rules,
            cache_hit=cache_hit,
        )
        try:
            self.audit_sink.append(record)
        except Exception as e:
            # The decision stands even when the audit trail cannot be written.
            self.logger.error("PBAC Error: audit sink failed for action '%s': %s", action, e)


def build_policy_evaluator(
    settings: PbacSettings | None = None,
    type_registry: TypeRegistry | None = None,
    rule_index: RuleIndex | None = None,
    conditions: ConditionRegistry | None = None,
    providers: list[RelationshipProvider] | None = None,
    resource_lookup: Callable[[str, EntityId], Any] | None = None,
    audit_sink: AuditSink | None = None,
) -> PolicyEvaluator:
    """Wire a PolicyEvaluator from settings, defaulting to in-memory stores.

    When caching is enabled, the cache is registered as a change listener on
    the rule index and the type registry so writes invalidate it at once.
    """
    settings = settings or get_settings()
    pbac_logger = PbacLogger(settings)
    type_registry = type_registry if type_registry is not None else InMemoryTypeRegistry()
    rule_index = rule_index if rule_index is not None else InMemoryRuleIndex()
    if conditions is None:
        conditions = default_condition_registry(resource_lookup, pbac_logger)

    cache = None
    if settings.cache_enabled:
        cache = DecisionCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
            key_prefix=settings.cache_key_prefix,
        )
        for source in (type_registry, rule_index):
            add_listener = getattr(source, "add_listener", None)
            if add_listener is None:
                raise TypeError(
                    f"{type(source).__name__} cannot notify the decision cache; "
                    "disable caching or provide add_listener()"
                )
            add_listener(cache.invalidate_all)

    if audit_sink is None and settings.audit_enabled:
        from pbac.audit.storage import FileAuditStorage

        audit_sink = FileAuditStorage(settings.audit_storage_path)

    evaluator = PolicyEvaluator(
        type_registry=type_registry,
        rule_index=rule_index,
        condition_evaluator=ConditionEvaluator(conditions, pbac_logger),
        target_resolver=TargetResolver(providers, pbac_logger),
        settings=settings,
        bypass=super_admin_bypass(settings.super_admin_attribute),
        cache=cache,
        audit_sink=audit_sink,
        pbac_logger=pbac_logger,
    )
    pbac_logger.info(
        "PolicyEvaluator initialized (strict_resource=%s, strict_target=%s, cache=%s)",
        settings.strict_resource_registration,
        settings.strict_target_registration,
        cache is not None,
    )
    return evaluator
