"""Sandbox provider implementations."""

from agent_sandbox.sandbox.providers.docker_provider import DockerSandboxProvider
from agent_sandbox.sandbox.providers.e2b_provider import E2BSandboxProvider
from agent_sandbox.sandbox.providers.stub_provider import StubSandboxProvider

__all__ = ["DockerSandboxProvider", "E2BSandboxProvider", "StubSandboxProvider"]
