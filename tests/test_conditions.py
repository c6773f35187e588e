"""Tests for condition handlers and the condition evaluator."""

import pytest

from pbac.conditions import (
    AllowedIpsHandler,
    ConditionEvaluator,
    ConditionRegistry,
    MinLevelHandler,
    RequiresAttributeValueHandler,
    default_condition_registry,
)
from pbac.conditions.handlers import ip_matches
from pbac.rules import Rule


class Document:
    def __init__(self, id, status, is_public=False):
        self.id = id
        self.status = status
        self.is_public = is_public


DOCUMENTS = {
    7: Document(7, "published", is_public=True),
    8: Document(8, "draft"),
}


def lookup(resource_type, resource_id):
    if resource_type == "Document":
        return DOCUMENTS.get(resource_id)
    return None


def call(handler, value, context=None, resource_type=None, resource_id=None):
    rule = Rule(id=1, actions={"view"})
    return handler.handle(None, "view", resource_type, resource_id, context or {}, value, rule)


class AlwaysTrue:
    def handle(self, principal, action, resource_type, resource_id, context, condition_value, rule):
        return True


class Exploding:
    def handle(self, principal, action, resource_type, resource_id, context, condition_value, rule):
        raise RuntimeError("boom")


@pytest.fixture
def evaluator() -> ConditionEvaluator:
    """Evaluator over the built-in handlers plus two test handlers."""
    registry = default_condition_registry(lookup)
    registry.register("always", AlwaysTrue())
    registry.register("explodes", Exploding())
    return ConditionEvaluator(registry)


class TestMinLevel:
    """Test the min_level handler."""

    def test_level_at_or_above_passes(self):
        assert call(MinLevelHandler(), 5, {"level": 5}) is True
        assert call(MinLevelHandler(), 5, {"level": "9"}) is True

    def test_level_below_fails(self):
        assert call(MinLevelHandler(), 5, {"level": 4}) is False

    def test_missing_level_fails(self):
        assert call(MinLevelHandler(), 5, {}) is False


class TestAllowedIps:
    """Test the allowed_ips handler."""

    def test_exact_match(self):
        assert call(AllowedIpsHandler(), ["10.0.0.1"], {"ip_address": "10.0.0.1"}) is True

    def test_cidr_match(self):
        assert call(AllowedIpsHandler(), ["192.168.0.0/16"], {"ip_address": "192.168.4.20"}) is True
        assert call(AllowedIpsHandler(), ["192.168.0.0/16"], {"ip_address": "10.1.1.1"}) is False

    def test_single_string_value(self):
        assert call(AllowedIpsHandler(), "127.0.0.1", {"ip": "127.0.0.1"}) is True

    def test_missing_ip_fails(self):
        assert call(AllowedIpsHandler(), ["127.0.0.1"], {}) is False

    def test_non_ip_strings_compare_literally(self):
        assert ip_matches("localhost", "localhost") is True
        assert ip_matches("localhost", "10.0.0.1") is False


class TestRequiresAttributeValue:
    """Test the requires_attribute_value handler."""

    def test_matching_attributes_pass(self):
        handler = RequiresAttributeValueHandler(lookup)
        assert call(handler, {"status": "published"}, resource_type="Document", resource_id=7) is True

    def test_mismatch_fails(self):
        handler = RequiresAttributeValueHandler(lookup)
        assert call(handler, {"status": "published"}, resource_type="Document", resource_id=8) is False

    def test_bool_comparison_is_loose(self):
        handler = RequiresAttributeValueHandler(lookup)
        assert call(handler, {"is_public": 1}, resource_type="Document", resource_id=7) is True
        assert call(handler, {"is_public": True}, resource_type="Document", resource_id=8) is False

    def test_missing_attribute_fails(self):
        handler = RequiresAttributeValueHandler(lookup)
        assert call(handler, {"owner": "x"}, resource_type="Document", resource_id=7) is False

    def test_no_resource_instance_fails(self):
        handler = RequiresAttributeValueHandler(lookup)
        assert call(handler, {"status": "published"}, resource_type="Document") is False

    def test_unknown_instance_fails(self):
        handler = RequiresAttributeValueHandler(lookup)
        assert call(handler, {"status": "published"}, resource_type="Document", resource_id=99) is False

    def test_no_lookup_configured_fails(self):
        handler = RequiresAttributeValueHandler()
        assert call(handler, {"status": "published"}, resource_type="Document", resource_id=7) is False

    def test_dict_resources(self):
        handler = RequiresAttributeValueHandler(lambda t, i: {"status": "published"})
        assert call(handler, {"status": "published"}, resource_type="Post", resource_id=1) is True


class TestConditionRegistry:
    """Test handler registration."""

    def test_defaults(self):
        registry = default_condition_registry()
        assert registry.keys() == ["allowed_ips", "min_level", "requires_attribute_value"]

    def test_frozen_registry_rejects_writes(self):
        registry = ConditionRegistry()
        registry.register("always", AlwaysTrue())
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RuntimeError):
            registry.register("other", AlwaysTrue())
        with pytest.raises(RuntimeError):
            registry.unregister("always")
        assert "always" in registry


class TestConditionEvaluator:
    """Test per-rule condition evaluation."""

    def test_unconditional_rule_passes(self, evaluator):
        rule = Rule(id=1, actions={"view"})
        assert evaluator.check(rule, None, "view", None, None, {}) is True

    def test_all_conditions_must_pass(self, evaluator):
        rule = Rule(id=1, actions={"view"}, conditions={"always": True, "min_level": 5})
        assert evaluator.check(rule, None, "view", None, None, {"level": 6}) is True
        outcome = evaluator.explain(rule, None, "view", None, None, {"level": 1})
        assert outcome.passed is False
        assert outcome.failed_key == "min_level"
        assert outcome.reason == "condition_not_met"

    def test_missing_handler_fails_rule(self, evaluator, caplog):
        rule = Rule(id=3, actions={"view"}, conditions={"unknown_key": 1})
        outcome = evaluator.explain(rule, None, "view", None, None, {})
        assert outcome.passed is False
        assert outcome.reason == "condition_handler_missing"
        assert "unknown_key" in caplog.text

    def test_handler_fault_fails_rule(self, evaluator, caplog):
        rule = Rule(id=4, actions={"view"}, conditions={"explodes": True})
        outcome = evaluator.explain(rule, None, "view", None, None, {})
        assert outcome.passed is False
        assert outcome.reason == "condition_handler_fault"
        assert "boom" in caplog.text

    def test_falsy_return_fails_rule(self):
        registry = ConditionRegistry()
        registry.register("none", type("NoneHandler", (), {"handle": lambda self, *a: None})())
        rule = Rule(id=5, actions={"view"}, conditions={"none": True})
        assert ConditionEvaluator(registry).check(rule, None, "view", None, None, {}) is False
