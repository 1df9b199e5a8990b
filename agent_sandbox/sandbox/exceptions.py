"""Sandbox exceptions."""


class SandboxError(Exception):
    """Base exception for all sandbox errors."""

    pass


class ConfigurationError(SandboxError, ValueError):
    """Missing or invalid provider configuration (credentials, provider name)."""

    pass


class ProvisioningError(SandboxError):
    """Sandbox creation failed. Partially created resources were rolled back."""

    pass


class NotFoundError(SandboxError):
    """No backing resource matches the requested sandbox id."""

    pass


class ExecutionError(SandboxError):
    """Command execution failed at the transport level."""

    pass


class SandboxNotInitializedError(ExecutionError):
    """Operation attempted on a sandbox that was never started or already stopped."""

    pass


class RuntimeTimeoutError(ExecutionError):
    """The container runtime did not answer within the allotted time."""

    pass


class TeardownError(SandboxError):
    """Cleanup step failed. Logged by the engine, never raised to callers."""

    pass


class MetricsFieldError(SandboxError, ValueError):
    """A single metrics field could not be parsed."""

    pass
