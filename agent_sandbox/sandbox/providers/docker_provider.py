"""
Docker Sandbox Provider.

Adapts the container engine (DockerSandbox) to the SandboxProvider interface.
Engine exceptions are translated into failed results with redacted messages.
"""

import logging
from typing import Dict, Optional, Sequence

from agent_sandbox.sandbox.config import DockerEngineConfig, SandboxConfig
from agent_sandbox.sandbox.docker.engine import ContainerRegistry, DockerSandbox
from agent_sandbox.sandbox.docker.runtime import ContainerRuntime, DockerCLI
from agent_sandbox.sandbox.exceptions import SandboxError
from agent_sandbox.sandbox.protocol import (
    CommandResult,
    OperationResult,
    ResourceMetrics,
    SandboxHandle,
    SandboxProvider,
    SandboxResult,
)
from agent_sandbox.sandbox.redaction import redact_sensitive_info

logger = logging.getLogger(__name__)


class DockerSandboxProvider(SandboxProvider):
    """
    Local container sandbox provider.

    Each provider instance owns its own ContainerRegistry, so several
    providers (or tests) can coexist in one process.

    Example:
        >>> provider = DockerSandboxProvider(DockerEngineConfig.from_settings(settings))
        >>> result = await provider.create(SandboxConfig(ports=[3000, 5173]))
        >>> result.domain
        'localhost:3000'
    """

    name = "container-engine"

    def __init__(
        self,
        engine_config: Optional[DockerEngineConfig] = None,
        runtime: Optional[ContainerRuntime] = None,
        registry: Optional[ContainerRegistry] = None,
    ):
        self.engine_config = engine_config or DockerEngineConfig()
        self.runtime = runtime or DockerCLI(self.engine_config.binary)
        self.registry = registry if registry is not None else ContainerRegistry()

    async def create(self, config: SandboxConfig) -> SandboxResult:
        try:
            sandbox = await DockerSandbox.create(
                config,
                runtime=self.runtime,
                engine_config=self.engine_config,
                registry=self.registry,
            )
        except SandboxError as e:
            logger.error(f"Docker sandbox creation failed: {redact_sensitive_info(str(e))}")
            return SandboxResult(success=False, error=redact_sensitive_info(str(e)))
        return self._result_for(sandbox)

    async def connect(self, sandbox_id: str) -> SandboxResult:
        try:
            sandbox = await self._lookup(sandbox_id)
        except SandboxError as e:
            return SandboxResult(success=False, error=redact_sensitive_info(str(e)))
        return self._result_for(sandbox)

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
        inactive = self._inactive_result(handle)
        if inactive:
            return inactive
        try:
            sandbox = await self._lookup(handle.sandbox_id)
        except SandboxError as e:
            return CommandResult(success=False, error=redact_sensitive_info(str(e)))

        result = await sandbox.run_command(command, args or (), cwd=cwd, env=env, timeout=timeout)
        return CommandResult(
            success=result.success,
            output=redact_sensitive_info(result.output),
            error=redact_sensitive_info(result.error) if result.error else None,
            exit_code=result.exit_code,
        )

    async def shutdown(self, handle: SandboxHandle) -> OperationResult:
        handle.active = False
        try:
            sandbox = await self._lookup(handle.sandbox_id)
        except SandboxError as e:
            return OperationResult(success=False, error=redact_sensitive_info(str(e)))
        await sandbox.stop()
        return OperationResult(success=True)

    async def get_metrics(self, handle: SandboxHandle) -> ResourceMetrics:
        self._require_active(handle)
        sandbox = await self._lookup(handle.sandbox_id)
        return await sandbox.get_metrics()

    async def health_check(self) -> bool:
        try:
            result = await self.runtime.run(
                ["version", "--format", "{{.Server.Version}}"], timeout=10
            )
        except SandboxError as e:
            logger.error(f"Docker health check failed: {e}")
            return False
        return result.ok

    async def _lookup(self, sandbox_id: str) -> DockerSandbox:
        return await DockerSandbox.get(
            sandbox_id,
            runtime=self.runtime,
            engine_config=self.engine_config,
            registry=self.registry,
        )

    def _result_for(self, sandbox: DockerSandbox) -> SandboxResult:
        handle = SandboxHandle(
            sandbox_id=sandbox.sandbox_id,
            provider=self.name,
            ports=sandbox.ports,
            resolver=sandbox.domain,
        )
        return SandboxResult(success=True, handle=handle, domain=handle.domain(handle.ports[0]))
