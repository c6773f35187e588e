"""Tests for rules: model, matching predicate, index, builder and loader."""

import pytest

from pbac.errors import RuleValidationError
from pbac.registry import InMemoryTypeRegistry, TypeKind
from pbac.rules import (
    InMemoryRuleIndex,
    Rule,
    RuleBuilder,
    RuleEffect,
    RuleLoader,
    order_candidates,
    rule_matches,
)
from pbac.targets import AccessGroup, AccessTeam, HasPbacAccessControl, TargetSet


class User(HasPbacAccessControl):
    def __init__(self, id):
        self.id = id


@pytest.fixture
def targets() -> TargetSet:
    """User 1 in group 5."""
    return TargetSet.of({"User": [1], "AccessGroup": [5]})


@pytest.fixture
def index() -> InMemoryRuleIndex:
    """Empty rule index."""
    return InMemoryRuleIndex()


# ============================================================================
# Rule model
# ============================================================================

class TestRuleModel:
    """Test rule construction invariants."""

    def test_single_action_is_wrapped(self):
        rule = Rule(actions="view")
        assert rule.actions == frozenset({"view"})

    def test_no_actions_means_empty(self):
        assert Rule(actions=None).actions == frozenset()

    def test_resource_id_without_type_rejected(self):
        with pytest.raises(RuleValidationError):
            Rule(actions={"view"}, resource_id=7)

    def test_target_id_without_type_rejected(self):
        with pytest.raises(RuleValidationError):
            Rule(actions={"view"}, target_id=1)

    def test_effect_from_string(self):
        assert Rule(actions={"view"}, effect="deny").effect == RuleEffect.DENY

    def test_is_conditional(self):
        assert Rule(actions={"view"}).is_conditional is False
        assert Rule(actions={"view"}, conditions={}).is_conditional is False
        assert Rule(actions={"view"}, conditions={"min_level": 3}).is_conditional is True

    def test_rules_are_immutable(self):
        rule = Rule(actions={"view"})
        with pytest.raises(Exception):
            rule.priority = 5


# ============================================================================
# Matching predicate
# ============================================================================

class TestRuleMatches:
    """Test the candidate predicate."""

    def test_action_must_be_listed(self, targets):
        rule = Rule(actions={"view"})
        assert rule_matches(rule, "view", None, None, targets)
        assert not rule_matches(rule, "update", None, None, targets)

    def test_empty_actions_never_match(self, targets):
        assert not rule_matches(Rule(actions=[]), "view", None, None, targets)

    def test_wildcard_resource_matches_anything(self, targets):
        rule = Rule(actions={"view"})
        assert rule_matches(rule, "view", "Document", 7, targets)
        assert rule_matches(rule, "view", None, None, targets)

    def test_resource_type_rule_matches_any_instance(self, targets):
        rule = Rule(actions={"view"}, resource_type="Document")
        assert rule_matches(rule, "view", "Document", 7, targets)
        assert rule_matches(rule, "view", "Document", None, targets)
        assert not rule_matches(rule, "view", "Invoice", 7, targets)
        assert not rule_matches(rule, "view", None, None, targets)

    def test_resource_instance_rule_needs_that_instance(self, targets):
        rule = Rule(actions={"view"}, resource_type="Document", resource_id=7)
        assert rule_matches(rule, "view", "Document", 7, targets)
        assert not rule_matches(rule, "view", "Document", 8, targets)
        assert not rule_matches(rule, "view", "Document", None, targets)

    def test_wildcard_target_matches_everyone(self):
        rule = Rule(actions={"view"})
        assert rule_matches(rule, "view", None, None, TargetSet())

    def test_target_category_and_instance(self, targets):
        group_rule = Rule(actions={"view"}, target_type="AccessGroup")
        group_five = Rule(actions={"view"}, target_type="AccessGroup", target_id=5)
        group_six = Rule(actions={"view"}, target_type="AccessGroup", target_id=6)
        team_rule = Rule(actions={"view"}, target_type="AccessTeam")

        assert rule_matches(group_rule, "view", None, None, targets)
        assert rule_matches(group_five, "view", None, None, targets)
        assert not rule_matches(group_six, "view", None, None, targets)
        assert not rule_matches(team_rule, "view", None, None, targets)


class TestOrderCandidates:
    """Test candidate ordering."""

    def test_priority_descending_then_id(self):
        rules = [
            Rule(id=3, actions={"view"}, priority=10),
            Rule(id=1, actions={"view"}, priority=10),
            Rule(id=2, actions={"view"}, priority=50),
            Rule(id=4, actions={"view"}, priority=-1),
        ]
        assert [r.id for r in order_candidates(rules)] == [2, 1, 3, 4]


# ============================================================================
# In-memory index
# ============================================================================

class TestInMemoryRuleIndex:
    """Test rule storage and querying."""

    def test_add_assigns_ids(self, index):
        first = index.add(Rule(actions={"view"}))
        second = index.add(Rule(actions={"view"}))
        assert first.id == 1
        assert second.id == 2
        assert len(index) == 2

    def test_query_filters_and_orders(self, index, targets):
        low = index.add(Rule(actions={"view"}, priority=1))
        high = index.add(Rule(actions={"view"}, resource_type="Document", priority=9))
        index.add(Rule(actions={"update"}, priority=100))
        index.add(Rule(actions={"view"}, target_type="AccessTeam", priority=100))

        result = index.query("view", "Document", 7, targets)
        assert [r.id for r in result] == [high.id, low.id]

    def test_update_and_remove(self, index):
        rule = index.add(Rule(actions={"view"}))
        assert index.update(rule.model_copy(update={"priority": 7})) is True
        assert index.get(rule.id).priority == 7
        assert index.remove(rule.id) is True
        assert index.remove(rule.id) is False
        assert index.update(rule) is False

    def test_listener_notified_on_writes(self, index):
        calls = []
        index.add_listener(lambda: calls.append(1))
        rule = index.add(Rule(actions={"view"}))
        index.remove(rule.id)
        index.clear()
        assert len(calls) == 3


# ============================================================================
# Builder
# ============================================================================

class TestRuleBuilder:
    """Test the fluent builder."""

    def test_build_group_rule(self):
        rule = (
            RuleBuilder.allow()
            .for_group(AccessGroup(id=5, name="admins"))
            .for_resource("Document")
            .with_action(["view", "update"])
            .with_priority(80)
            .build()
        )
        assert rule.target_type == "AccessGroup"
        assert rule.target_id == 5
        assert rule.resource_type == "Document"
        assert rule.actions == frozenset({"view", "update"})
        assert rule.priority == 80
        assert rule.effect == RuleEffect.ALLOW

    def test_for_user_and_team(self):
        user_rule = RuleBuilder.deny().for_user(User(3)).with_action("delete").build()
        assert (user_rule.target_type, user_rule.target_id) == ("User", 3)
        assert user_rule.effect == RuleEffect.DENY

        team_rule = RuleBuilder.allow().for_team(AccessTeam(id=9, name="sales")).with_action("view").build()
        assert (team_rule.target_type, team_rule.target_id) == ("AccessTeam", 9)

    def test_for_resource_accepts_class(self):
        class Document:
            pass

        rule = RuleBuilder.allow().for_resource(Document, 4).with_action("view").build()
        assert (rule.resource_type, rule.resource_id) == ("Document", 4)

    def test_wildcard_target_drops_id(self):
        rule = RuleBuilder.allow().for_target(None, 5).with_action("view").build()
        assert rule.target_type is None
        assert rule.target_id is None

    def test_create_registers_types(self, index):
        registry = InMemoryTypeRegistry()
        rule = (
            RuleBuilder.allow()
            .for_group(5)
            .for_resource("Document")
            .with_action("view")
            .with_conditions({"min_level": 3})
            .create(index, registry)
        )
        assert rule.id is not None
        assert index.get(rule.id) == rule
        assert registry.resolve(TypeKind.TARGET, "AccessGroup").usable
        assert registry.resolve(TypeKind.RESOURCE, "Document").usable


# ============================================================================
# Loader
# ============================================================================

POLICY_YAML = """
types:
  targets:
    - User
    - {type: AccessTeam, active: false}
  resources:
    - {type: Document, description: Shared docs}
rules:
  - effect: allow
    actions: [view, update]
    target: {type: AccessGroup, id: 5}
    resource: {type: Document}
    priority: 10
  - effect: deny
    actions: delete
    resource: {type: Document, id: 7}
    priority: 100
    conditions: {min_level: 5}
"""


class TestRuleLoader:
    """Test YAML and dict policy documents."""

    def test_load_from_yaml(self, tmp_path, index):
        path = tmp_path / "policies.yaml"
        path.write_text(POLICY_YAML)
        registry = InMemoryTypeRegistry()

        created = RuleLoader().load_from_yaml(path, index, registry)

        assert len(created) == 2
        assert len(index) == 2
        assert registry.resolve(TypeKind.TARGET, "User").usable
        assert not registry.resolve(TypeKind.TARGET, "AccessTeam").usable
        assert registry.resolve(TypeKind.TARGET, "AccessGroup").usable
        assert registry.get(TypeKind.RESOURCE, "Document").description == "Shared docs"

        deny = index.all()[0]
        assert deny.effect == RuleEffect.DENY
        assert deny.actions == frozenset({"delete"})
        assert deny.resource_id == 7
        assert deny.conditions == {"min_level": 5}

    def test_unsupported_action_rejected(self, index):
        loader = RuleLoader(supported_actions=["view"])
        with pytest.raises(RuleValidationError, match="Unsupported actions: fly"):
            loader.load_from_dict(
                {"rules": [{"actions": ["view", "fly"]}]}, index, InMemoryTypeRegistry()
            )
        assert len(index) == 0

    def test_unknown_effect_rejected(self):
        with pytest.raises(RuleValidationError):
            RuleLoader().parse_rule({"actions": ["view"], "effect": "maybe"})

    def test_missing_actions_rejected(self):
        with pytest.raises(RuleValidationError):
            RuleLoader().parse_rule({"effect": "allow"})
