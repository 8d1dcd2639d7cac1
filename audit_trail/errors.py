"""Errors raised while building the audit trail resource graph."""

from typing import Optional


class AuditTrailError(Exception):
    """Base error; ``field`` names the configuration input at fault."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class ConfigError(AuditTrailError):
    pass


class ConfigurationConflict(AuditTrailError):
    """A setting depends on an optional resource that is disabled."""


class MissingRequiredIdentity(AuditTrailError):
    pass


class EmptyExpansionSet(AuditTrailError):
    """An ARN or condition expansion input is empty where it must not be."""


class ProvisioningError(AuditTrailError):
    pass
