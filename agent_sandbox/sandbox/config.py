"""
Sandbox configuration.

This module holds the provider-agnostic SandboxConfig callers pass to
``create`` and the container engine settings derived from Settings.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agent_sandbox.config.settings import Settings


@dataclass
class SandboxResources:
    """Requested compute resources."""

    vcpus: Optional[int] = None


@dataclass
class SandboxSource:
    """
    Git repository to check out into the sandbox workspace.

    Attributes:
        url: Clone URL
        revision: Branch or tag (default: main)
        depth: Shallow clone depth (default: 1)
    """

    url: str
    revision: Optional[str] = None
    depth: Optional[int] = None


@dataclass
class SandboxConfig:
    """
    Provider-agnostic sandbox configuration.

    Fields a provider does not need are ignored by it: the stub ignores
    everything but ``ports``, the container engine ignores the credentials.

    Attributes:
        team_id: Managed-service team identifier
        project_id: Managed-service project identifier
        token: Managed-service access token
        timeout: Sandbox lifetime in seconds
        ports: Ports to expose, in order; the first one is the primary port
        runtime: Runtime hint (e.g. "node22", "python3.13")
        resources: Requested compute resources
        source: Optional repository to clone into the workspace
    """

    team_id: Optional[str] = None
    project_id: Optional[str] = None
    token: Optional[str] = None
    timeout: int = 300
    ports: List[int] = field(default_factory=list)
    runtime: Optional[str] = None
    resources: SandboxResources = field(default_factory=SandboxResources)
    source: Optional[SandboxSource] = None


@dataclass
class DockerEngineConfig:
    """
    Container engine configuration.

    Defaults match Settings; use ``from_settings`` to load them from the
    environment.
    """

    binary: str = "docker"
    image: str = "coding-agent-sandbox:latest"
    network_name: str = "coding-agent-network"
    memory_limit: str = "2g"
    cpu_limit: str = "2"
    keep_volume: bool = False
    project_dir: str = "/workspace/project"
    workspace_mount: str = "/workspace"
    command_timeout: float = 120.0
    default_port: int = 3000
    host_gateway: bool = True
    environment: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DockerEngineConfig":
        """Build the engine configuration from application settings."""
        return cls(
            binary=settings.docker_binary,
            image=settings.sandbox_docker_image,
            network_name=settings.docker_network,
            memory_limit=settings.sandbox_memory_limit,
            cpu_limit=settings.sandbox_cpu_limit,
            keep_volume=settings.sandbox_keep_volume,
            project_dir=settings.sandbox_project_dir,
            workspace_mount=settings.sandbox_workspace_mount,
            command_timeout=settings.sandbox_command_timeout,
            default_port=settings.sandbox_default_port,
            host_gateway=settings.sandbox_host_gateway,
        )

    def resolve_ports(self, config: SandboxConfig) -> List[int]:
        return list(config.ports) if config.ports else [self.default_port]

    def resolve_cpu_limit(self, config: SandboxConfig) -> str:
        if config.resources and config.resources.vcpus:
            return str(config.resources.vcpus)
        return self.cpu_limit
