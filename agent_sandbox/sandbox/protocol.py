"""
Sandbox provider protocol and data structures.

This module defines the abstract interface shared by every sandbox provider
and the provider-agnostic result types that cross it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from agent_sandbox.sandbox.config import SandboxConfig
from agent_sandbox.sandbox.exceptions import SandboxNotInitializedError

NOT_INITIALIZED_ERROR = "Sandbox not initialized"


@dataclass
class CommandResult:
    """
    Result of a command run inside a sandbox.

    Attributes:
        success: True when the command exited with status 0
        output: Standard output
        error: Standard error or a failure description
        exit_code: Process exit code, when the transport reports one
    """

    success: bool
    output: str = ""
    error: Optional[str] = None
    exit_code: Optional[int] = None


@dataclass
class ResourceMetrics:
    """
    Point-in-time resource usage snapshot.

    Attributes:
        cpu: CPU usage percentage
        memory: Memory usage in MB
        memory_limit: Memory limit in MB
        disk_usage: Workspace disk usage in MB
        network_rx: Bytes received
        network_tx: Bytes transmitted
    """

    cpu: float = 0.0
    memory: float = 0.0
    memory_limit: float = 0.0
    disk_usage: float = 0.0
    network_rx: float = 0.0
    network_tx: float = 0.0


@dataclass
class SandboxHandle:
    """
    Opaque reference to a provisioned sandbox.

    Valid between a successful ``create``/``connect`` and ``shutdown``.
    ``active`` is cleared by ``shutdown``; providers refuse further work on
    an inactive handle.
    """

    sandbox_id: str
    provider: str
    ports: List[int] = field(default_factory=list)
    resolver: Optional[Callable[[int], str]] = field(default=None, repr=False)
    active: bool = True

    def domain(self, port: int) -> str:
        """Resolve the externally reachable address for a sandbox port."""
        if self.resolver is None:
            return f"localhost:{port}"
        return self.resolver(port)


@dataclass
class SandboxResult:
    """Outcome of ``create``/``connect``."""

    success: bool
    handle: Optional[SandboxHandle] = None
    domain: Optional[str] = None
    error: Optional[str] = None


@dataclass
class OperationResult:
    """Outcome of an operation that yields no value (e.g. ``shutdown``)."""

    success: bool
    error: Optional[str] = None


class SandboxProvider(ABC):
    """
    Abstract base class for sandbox providers.

    Implementations:
    - E2BSandboxProvider: managed cloud sandboxes (E2B)
    - DockerSandboxProvider: local containers driven through the docker CLI
    - StubSandboxProvider: deterministic no-op double

    Callers hold a SandboxHandle and never a provider-specific object.
    """

    name: str = "abstract"

    @abstractmethod
    async def create(self, config: SandboxConfig) -> SandboxResult:
        """
        Provision a new sandbox.

        Args:
            config: Provider-agnostic sandbox configuration

        Returns:
            SandboxResult with a handle and the domain of the first port on
            success, or an error message on failure.

        Example:
            >>> provider = get_sandbox_provider()
            >>> result = await provider.create(SandboxConfig(ports=[3000]))
            >>> result.domain
            'stub-sandbox.local:3000'
        """
        pass

    @abstractmethod
    async def connect(self, sandbox_id: str) -> SandboxResult:
        """Reattach to an existing sandbox by id."""
        pass

    @abstractmethod
    async def run_command(
        self,
        handle: SandboxHandle,
        command: str,
        args: Optional[Sequence[str]] = None,
        *,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run a command inside the sandbox.

        ``command`` and ``args`` are joined with spaces and interpreted by the
        sandbox shell. Quote untrusted arguments with SafeCommandExecutor
        before they reach this method.
        """
        pass

    @abstractmethod
    async def shutdown(self, handle: SandboxHandle) -> OperationResult:
        """Release the sandbox and invalidate the handle."""
        pass

    @abstractmethod
    async def get_metrics(self, handle: SandboxHandle) -> ResourceMetrics:
        """
        Take one resource usage snapshot.

        Raises:
            SandboxNotInitializedError: If the handle is no longer active
            ExecutionError: If the provider cannot be queried at all
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the sandbox provider is healthy and ready.

        Returns:
            True if healthy, False otherwise
        """
        pass

    def _inactive_result(self, handle: SandboxHandle) -> Optional[CommandResult]:
        if handle.active:
            return None
        return CommandResult(success=False, error=NOT_INITIALIZED_ERROR)

    def _require_active(self, handle: SandboxHandle) -> None:
        if not handle.active:
            raise SandboxNotInitializedError(NOT_INITIALIZED_ERROR)


def join_command(command: str, args: Optional[Sequence[str]] = None) -> str:
    """Join a command and its (already quoted) arguments into one string."""
    if not args:
        return command
    return " ".join([command, *args])
