"""PBAC exception taxonomy.

`PolicyEvaluator.evaluate` turns every `PbacError` except
`ContractViolationError` into a plain deny.
"""


class PbacError(Exception):
    """Base class for PBAC errors."""

    def __init__(self, message: str, code: str = "pbac_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CapabilityError(PbacError):
    """Principal is not PBAC-enabled."""

    def __init__(self, principal_type: str):
        super().__init__(
            f"{principal_type} does not use the HasPbacAccessControl capability",
            "not_pbac_enabled",
        )


class UnregisteredTypeError(PbacError):
    """Strict mode met an unknown or inactive category."""

    def __init__(self, kind: str, type_name: str):
        self.kind = kind
        self.type_name = type_name
        super().__init__(
            f"{kind.capitalize()} type '{type_name}' is not registered or inactive",
            "unregistered_type",
        )


class ConditionHandlerMissing(PbacError):
    """A rule carries a condition key with no registered handler."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No condition handler registered for '{key}'", "condition_handler_missing")


class ConditionHandlerFault(PbacError):
    """A condition handler raised while evaluating."""

    def __init__(self, key: str, error: Exception):
        self.key = key
        self.error = error
        super().__init__(
            f"Condition handler '{key}' failed: {error}", "condition_handler_fault"
        )


class ContractViolationError(PbacError, TypeError):
    """Caller passed an argument of the wrong shape. This is a bug at the call site."""

    def __init__(self, message: str):
        super().__init__(message, "contract_violation")


class RuleValidationError(PbacError):
    """A rule breaks the data-model invariants."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_rule")
