"""
E2B Sandbox Provider.

This module implements the managed-service sandbox variant using E2B Cloud
Sandboxes. E2B reclaims sandboxes automatically once their timeout expires,
so shutdown only stops long-running interpreters.

Reference: https://e2b.dev/docs
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from e2b import CommandExitException, Sandbox

from agent_sandbox.sandbox.config import SandboxConfig, SandboxSource
from agent_sandbox.sandbox.docker.parsing import parse_disk_usage, parse_free_memory
from agent_sandbox.sandbox.exceptions import ExecutionError, MetricsFieldError
from agent_sandbox.sandbox.protocol import (
    CommandResult,
    OperationResult,
    ResourceMetrics,
    SandboxHandle,
    SandboxProvider,
    SandboxResult,
    join_command,
)
from agent_sandbox.sandbox.quoting import build_command
from agent_sandbox.sandbox.redaction import redact_sensitive_info

logger = logging.getLogger(__name__)

WORKSPACE_DIR = "/home/user"
PROJECT_DIR = "/home/user/project"
DEFAULT_PORT = 3000

# Interpreters terminated on shutdown. Bracketed so pkill -f does not match
# the wrapping shell whose command line contains the pattern.
LONG_RUNNING_PROCESSES = ["[n]ode", "[p]ython"]

# pkill exit status when no process matched
PKILL_NO_MATCH = 1


class E2BSandboxProvider(SandboxProvider):
    """
    E2B cloud sandbox provider.

    Features:
    - Cloud-based isolated environments
    - Automatic reclamation after ``SandboxConfig.timeout``
    - Public host names for exposed ports
    - Optional repository checkout on create

    Example:
        >>> provider = E2BSandboxProvider(api_key="e2b_...")
        >>> result = await provider.create(SandboxConfig(ports=[3000], timeout=600))
        >>> await provider.run_command(result.handle, "ls", ["-la"])
    """

    name = "managed"

    def __init__(self, api_key: Optional[str] = None, template_id: Optional[str] = None):
        """
        Initialize E2B sandbox provider.

        Args:
            api_key: E2B API key from https://e2b.dev (``SandboxConfig.token``
                    takes precedence when set)
            template_id: Custom template ID. If None, uses the default
                        E2B base template
        """
        self.api_key = api_key
        self.template_id = template_id
        self._active_sandboxes: Dict[str, Any] = {}

    async def create(self, config: SandboxConfig) -> SandboxResult:
        api_key = config.token or self.api_key
        if not api_key:
            return SandboxResult(success=False, error="Missing required config: token (E2B API key)")

        ports = list(config.ports) or [DEFAULT_PORT]
        metadata = {
            key: value
            for key, value in (("team_id", config.team_id), ("project_id", config.project_id))
            if value
        }

        try:
            sandbox = await asyncio.to_thread(
                Sandbox.create,
                template=self.template_id,
                timeout=config.timeout,
                metadata=metadata or None,
                api_key=api_key,
            )
        except Exception as e:
            logger.error(f"E2B sandbox creation failed: {redact_sensitive_info(str(e))}")
            return SandboxResult(success=False, error=redact_sensitive_info(str(e)))

        self._active_sandboxes[sandbox.sandbox_id] = sandbox
        logger.info(f"E2B sandbox created: {sandbox.sandbox_id}")

        if config.source:
            cloned = await self._clone_source(sandbox, config.source)
            if not cloned.success:
                await self._kill(sandbox)
                return SandboxResult(success=False, error=cloned.error)

        handle = self._handle_for(sandbox, ports)
        return SandboxResult(success=True, handle=handle, domain=handle.domain(ports[0]))

    async def connect(self, sandbox_id: str) -> SandboxResult:
        if not self.api_key:
            return SandboxResult(success=False, error="Missing required config: E2B API key")
        try:
            sandbox = await asyncio.to_thread(Sandbox.connect, sandbox_id, api_key=self.api_key)
        except Exception as e:
            return SandboxResult(success=False, error=redact_sensitive_info(str(e)))

        self._active_sandboxes[sandbox_id] = sandbox
        handle = self._handle_for(sandbox, [DEFAULT_PORT])
        return SandboxResult(success=True, handle=handle, domain=handle.domain(DEFAULT_PORT))

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
        sandbox = self._active_sandboxes.get(handle.sandbox_id)
        if sandbox is None:
            return CommandResult(success=False, error=f"Unknown E2B sandbox: {handle.sandbox_id}")
        return await self._run(sandbox, join_command(command, args), cwd=cwd, env=env, timeout=timeout)

    async def shutdown(self, handle: SandboxHandle) -> OperationResult:
        handle.active = False
        sandbox = self._active_sandboxes.pop(handle.sandbox_id, None)
        if sandbox is None:
            return OperationResult(success=True)

        for process in LONG_RUNNING_PROCESSES:
            try:
                await asyncio.to_thread(sandbox.commands.run, build_command("pkill", ["-f", process]))
            except CommandExitException as e:
                if e.exit_code == PKILL_NO_MATCH:
                    continue
                logger.warning(f"pkill {process} failed in {handle.sandbox_id}: exit {e.exit_code}")
                return OperationResult(
                    success=False,
                    error=redact_sensitive_info(e.stderr) or f"pkill exited with {e.exit_code}",
                )
            except Exception as e:
                logger.warning(f"Failed to stop {process} in {handle.sandbox_id}: {e}")
                return OperationResult(success=False, error=redact_sensitive_info(str(e)))

        logger.info(f"E2B sandbox released: {handle.sandbox_id}")
        return OperationResult(success=True)

    async def get_metrics(self, handle: SandboxHandle) -> ResourceMetrics:
        """
        Sample memory and workspace disk usage from inside the sandbox.

        CPU and network counters are not exposed this way and stay at zero.
        """
        self._require_active(handle)
        sandbox = self._active_sandboxes.get(handle.sandbox_id)
        if sandbox is None:
            raise ExecutionError(f"Unknown E2B sandbox: {handle.sandbox_id}")

        metrics = ResourceMetrics()
        memory = await self._run(sandbox, "free -m")
        if memory.success:
            usage = parse_free_memory(memory.output)
            if usage:
                metrics.memory, metrics.memory_limit = usage

        disk = await self._run(sandbox, build_command("du", ["-sm", WORKSPACE_DIR]))
        if disk.success:
            try:
                metrics.disk_usage = parse_disk_usage(disk.output)
            except MetricsFieldError as e:
                logger.warning(str(e))
        return metrics

    async def health_check(self) -> bool:
        """
        Check if E2B sandbox provider is healthy.

        Returns:
            True if a sandbox can be created and run a command, False otherwise
        """
        try:
            sandbox = await asyncio.to_thread(
                Sandbox.create, template=self.template_id, api_key=self.api_key
            )
            execution = await asyncio.to_thread(sandbox.commands.run, "echo 'E2B health check OK'")
            await asyncio.to_thread(sandbox.kill)
            return execution.exit_code == 0
        except Exception as e:
            logger.error(f"E2B health check failed: {e}")
            return False

    async def _run(
        self,
        sandbox: Any,
        command_line: str,
        *,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        kwargs: Dict[str, Any] = {"cwd": cwd, "envs": env}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            execution = await asyncio.to_thread(sandbox.commands.run, command_line, **kwargs)
        except CommandExitException as e:
            return _to_command_result(e)
        except Exception as e:
            return CommandResult(success=False, output="", error=redact_sensitive_info(str(e)))
        return _to_command_result(execution)

    async def _clone_source(self, sandbox: Any, source: SandboxSource) -> CommandResult:
        clone = build_command(
            "git",
            [
                "clone",
                "--depth",
                str(source.depth or 1),
                "-b",
                source.revision or "main",
                source.url,
                PROJECT_DIR,
            ],
        )
        result = await self._run(sandbox, clone)
        if not result.success:
            logger.error(f"Repository checkout failed in {sandbox.sandbox_id}: {result.error}")
        return result

    async def _kill(self, sandbox: Any) -> None:
        self._active_sandboxes.pop(sandbox.sandbox_id, None)
        try:
            await asyncio.to_thread(sandbox.kill)
        except Exception as e:
            logger.warning(f"Failed to kill sandbox {sandbox.sandbox_id}: {e}")

    def _handle_for(self, sandbox: Any, ports: Sequence[int]) -> SandboxHandle:
        return SandboxHandle(
            sandbox_id=sandbox.sandbox_id,
            provider=self.name,
            ports=list(ports),
            resolver=sandbox.get_host,
        )


def _to_command_result(execution: Any) -> CommandResult:
    """Translate an E2B command result (or exit exception) into a CommandResult."""
    exit_code = getattr(execution, "exit_code", None)
    stdout = redact_sensitive_info(getattr(execution, "stdout", "") or "")
    stderr = redact_sensitive_info(getattr(execution, "stderr", "") or "")
    error = getattr(execution, "error", None)

    if exit_code == 0 and not error:
        return CommandResult(success=True, output=stdout, exit_code=0)
    return CommandResult(
        success=False,
        output=stdout,
        error=stderr or redact_sensitive_info(str(error or "")) or "Command failed",
        exit_code=exit_code,
    )
