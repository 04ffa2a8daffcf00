"""
Error taxonomy.

Every external call site declares which of these its failure maps to:
fatal (propagates to the orchestrator), warned-and-skipped (optional
capability), or swallowed as an idempotent no-op. Nothing defaults to
"ignore".
"""

from __future__ import annotations


class DevstackError(Exception):
    """Base class for all devstack errors."""

    def __init__(self, message: str, *, resource_key: str | None = None):
        super().__init__(message)
        self.resource_key = resource_key


class ConfigError(DevstackError):
    """Settings file missing, unreadable or invalid."""


class ValidationError(DevstackError):
    """Malformed or missing request fields. Raised before any mutation."""


class CapabilityUnavailableError(DevstackError):
    """A required external tool or daemon is absent."""

    def __init__(self, capability: str, message: str | None = None, **kwargs):
        super().__init__(message or f"Required tool not available: {capability}", **kwargs)
        self.capability = capability


class ExternalToolError(DevstackError):
    """A spawned operation returned non-zero (or timed out)."""

    def __init__(
        self,
        message: str,
        *,
        tool: str = "",
        returncode: int | None = None,
        output: str = "",
        resource_key: str | None = None,
    ):
        super().__init__(message, resource_key=resource_key)
        self.tool = tool
        self.returncode = returncode
        self.output = output


class ResourceConflictError(DevstackError):
    """A resource key maps to a different, incompatible existing resource."""


class LockUnavailableError(ResourceConflictError):
    """Another run holds the lock for this domain."""


class BackupRequiredError(DevstackError):
    """A mutate-in-place operation could not take its pre-mutation backup."""


class CertificateError(DevstackError):
    """Neither the local CA nor the self-signed fallback produced a bundle."""


class DatabaseProvisionError(ExternalToolError):
    """The database engine's client or server is unreachable or refused."""


class ScaffoldError(ExternalToolError):
    """A stack generator failed to materialize the project skeleton."""
