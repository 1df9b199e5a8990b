"""Local container engine driven through the docker CLI."""

from agent_sandbox.sandbox.docker.engine import (
    ContainerRecord,
    ContainerRegistry,
    DockerSandbox,
    SandboxState,
)
from agent_sandbox.sandbox.docker.runtime import ContainerRuntime, DockerCLI, RuntimeOutput

__all__ = [
    "ContainerRecord",
    "ContainerRegistry",
    "ContainerRuntime",
    "DockerCLI",
    "DockerSandbox",
    "RuntimeOutput",
    "SandboxState",
]
