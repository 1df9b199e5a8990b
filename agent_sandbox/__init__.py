"""agent-sandbox - isolated execution environments for coding agents."""

from agent_sandbox.sandbox import (
    CommandOptions,
    CommandResult,
    ResourceMetrics,
    SafeCommandExecutor,
    SandboxConfig,
    SandboxHandle,
    SandboxProvider,
    get_sandbox_provider,
)

__all__ = [
    "CommandOptions",
    "CommandResult",
    "ResourceMetrics",
    "SafeCommandExecutor",
    "SandboxConfig",
    "SandboxHandle",
    "SandboxProvider",
    "get_sandbox_provider",
]

__version__ = "0.1.0"
