"""
Stub Sandbox Provider.

Simulates every operation without touching real resources, so tests and
local environments run without credentials or a container runtime.
"""

import logging
import secrets
import time
from typing import Dict, Optional, Sequence

from agent_sandbox.sandbox.config import SandboxConfig
from agent_sandbox.sandbox.protocol import (
    CommandResult,
    OperationResult,
    ResourceMetrics,
    SandboxHandle,
    SandboxProvider,
    SandboxResult,
    join_command,
)
from agent_sandbox.sandbox.redaction import redact_sensitive_info

logger = logging.getLogger(__name__)

STUB_HOST = "stub-sandbox.local"
STUB_OUTPUT = "Stub command output"
DEFAULT_PORT = 3000


def _stub_domain(port: int) -> str:
    return f"{STUB_HOST}:{port}"


class StubSandboxProvider(SandboxProvider):
    """Deterministic no-op provider."""

    name = "stub"

    async def create(self, config: SandboxConfig) -> SandboxResult:
        logger.info("StubSandboxProvider: creating sandbox (simulated)")
        ports = list(config.ports) or [DEFAULT_PORT]
        handle = SandboxHandle(
            sandbox_id=f"stub-{int(time.time() * 1000)}-{secrets.token_hex(3)}",
            provider=self.name,
            ports=ports,
            resolver=_stub_domain,
        )
        return SandboxResult(success=True, handle=handle, domain=handle.domain(ports[0]))

    async def connect(self, sandbox_id: str) -> SandboxResult:
        handle = SandboxHandle(
            sandbox_id=sandbox_id,
            provider=self.name,
            ports=[DEFAULT_PORT],
            resolver=_stub_domain,
        )
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
        full_command = redact_sensitive_info(join_command(command, args))
        logger.info(f"StubSandboxProvider: running command in {handle.sandbox_id}: {full_command}")
        return CommandResult(success=True, output=STUB_OUTPUT, exit_code=0)

    async def shutdown(self, handle: SandboxHandle) -> OperationResult:
        logger.info(f"StubSandboxProvider: shutting down sandbox {handle.sandbox_id}")
        handle.active = False
        return OperationResult(success=True)

    async def get_metrics(self, handle: SandboxHandle) -> ResourceMetrics:
        self._require_active(handle)
        return ResourceMetrics()

    async def health_check(self) -> bool:
        return True
