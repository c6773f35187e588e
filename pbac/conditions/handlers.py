"""Built-in condition handlers."""

import ipaddress
from typing import Any, Callable

from pbac.support.logger import PbacLogger
from pbac.targets.models import EntityId

ResourceLookup = Callable[[str, EntityId], Any]


class MinLevelHandler:
    """Passes when context `level` is at least the rule's value."""

    def __init__(self, pbac_logger: PbacLogger | None = None):
        self.logger = pbac_logger or PbacLogger()

    def handle(self, principal, action, resource_type, resource_id, context, condition_value, rule) -> bool:
        if context.get("level") is None:
            self.logger.debug("Rule ID %s requires a 'level', but none was provided in the context.", rule.id)
            return False

        required_level = int(condition_value)
        user_level = int(context["level"])
        if user_level < required_level:
            self.logger.debug(
                "Rule ID %s failed 'min_level' condition: user level %d < required %d.",
                rule.id, user_level, required_level,
            )
            return False
        return True


def ip_matches(address: str, allowed: str) -> bool:
    """Exact match, or membership when `allowed` is a CIDR block."""
    try:
        ip = ipaddress.ip_address(address)
        if "/" in allowed:
            return ip in ipaddress.ip_network(allowed, strict=False)
        return ip == ipaddress.ip_address(allowed)
    except ValueError:
        return address == allowed


class AllowedIpsHandler:
    """Passes when context `ip_address` (or `ip`) is listed or inside a listed CIDR."""

    def __init__(self, pbac_logger: PbacLogger | None = None):
        self.logger = pbac_logger or PbacLogger()

    def handle(self, principal, action, resource_type, resource_id, context, condition_value, rule) -> bool:
        user_ip = context.get("ip_address") or context.get("ip")
        if not user_ip:
            self.logger.debug("Rule ID %s requires an IP, but none was provided in the context.", rule.id)
            return False

        allowed_ips = [condition_value] if isinstance(condition_value, str) else list(condition_value)
        if any(ip_matches(str(user_ip), str(allowed)) for allowed in allowed_ips):
            return True

        self.logger.debug("Rule ID %s failed 'allowed_ips' condition: IP %s not in allowed list.", rule.id, user_ip)
        return False


def _loosely_equal(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    if isinstance(expected, bool) or isinstance(actual, bool):
        return bool(actual) == bool(expected)
    return str(actual) == str(expected)


class RequiresAttributeValueHandler:
    """Passes when the loaded resource has every required attribute value.

    The resource object is fetched through a lookup supplied by the host
    application; without one, or when the lookup finds nothing, the
    condition fails.
    """

    def __init__(
        self,
        resource_lookup: ResourceLookup | None = None,
        pbac_logger: PbacLogger | None = None,
    ):
        self.resource_lookup = resource_lookup
        self.logger = pbac_logger or PbacLogger()

    def handle(self, principal, action, resource_type, resource_id, context, condition_value, rule) -> bool:
        if resource_type is None or resource_id is None:
            self.logger.debug("Rule ID %s requires a resource, but none was provided for attribute check.", rule.id)
            return False
        if self.resource_lookup is None:
            self.logger.warning("Rule ID %s uses 'requires_attribute_value' but no resource lookup is configured.", rule.id)
            return False

        resource = self.resource_lookup(resource_type, resource_id)
        if resource is None:
            self.logger.debug(
                "Rule ID %s could not load resource for 'requires_attribute_value' condition: %s:%s.",
                rule.id, resource_type, resource_id,
            )
            return False

        for attribute, required in dict(condition_value).items():
            if isinstance(resource, dict):
                present, actual = attribute in resource, resource.get(attribute)
            else:
                present, actual = hasattr(resource, attribute), getattr(resource, attribute, None)
            if not present or actual is None or not _loosely_equal(actual, required):
                self.logger.debug(
                    "Rule ID %s failed 'requires_attribute_value' for resource %s:%s. Attribute '%s' does not match.",
                    rule.id, resource_type, resource_id, attribute,
                )
                return False
        return True
