"""
Isolated execution environments for agent-generated commands.

This module provides short-lived sandboxes behind one small interface, with
interchangeable backends.

Architecture:
- SandboxProvider: Abstract base class defining the sandbox interface
- E2BSandboxProvider: Managed E2B cloud sandboxes
- DockerSandboxProvider: Local containers (volume + network + container per sandbox)
- StubSandboxProvider: Deterministic no-op double (default)
- get_sandbox_provider(): Factory selecting a provider from SANDBOX_PROVIDER
- SafeCommandExecutor: Injection-safe, retrying, redacting command runner

Security Features:
- Single-quote argument encoding for the string-based command transport
- Secret redaction of every logged or returned command line and output
- Resource limits (CPU, memory) and per-sandbox workspace volumes
- Best-effort cleanup of containers and volumes
"""

from agent_sandbox.sandbox.config import (
    DockerEngineConfig,
    SandboxConfig,
    SandboxResources,
    SandboxSource,
)
from agent_sandbox.sandbox.exceptions import (
    ConfigurationError,
    ExecutionError,
    MetricsFieldError,
    NotFoundError,
    ProvisioningError,
    SandboxError,
    SandboxNotInitializedError,
    TeardownError,
)
from agent_sandbox.sandbox.executor import (
    CommandLogger,
    CommandOptions,
    MockCommandExecutor,
    ProviderTransport,
    SafeCommandExecutor,
    StructlogCommandLogger,
)
from agent_sandbox.sandbox.factory import ProviderType, get_sandbox_provider
from agent_sandbox.sandbox.protocol import (
    CommandResult,
    OperationResult,
    ResourceMetrics,
    SandboxHandle,
    SandboxProvider,
    SandboxResult,
)

__all__ = [
    "CommandLogger",
    "CommandOptions",
    "CommandResult",
    "ConfigurationError",
    "DockerEngineConfig",
    "ExecutionError",
    "MetricsFieldError",
    "MockCommandExecutor",
    "NotFoundError",
    "OperationResult",
    "ProviderTransport",
    "ProviderType",
    "ProvisioningError",
    "ResourceMetrics",
    "SafeCommandExecutor",
    "SandboxConfig",
    "SandboxError",
    "SandboxHandle",
    "SandboxNotInitializedError",
    "SandboxProvider",
    "SandboxResources",
    "SandboxResult",
    "SandboxSource",
    "StructlogCommandLogger",
    "TeardownError",
    "get_sandbox_provider",
]
