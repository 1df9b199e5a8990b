"""
Container runtime client.

The engine talks to the container runtime only through ``ContainerRuntime``.
``DockerCLI`` is the one implementation; it invokes the docker binary with an
argv list, so no host shell ever parses engine-built arguments.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from agent_sandbox.sandbox.exceptions import ExecutionError, RuntimeTimeoutError
from agent_sandbox.sandbox.quoting import render_command_line

logger = logging.getLogger(__name__)


@dataclass
class RuntimeOutput:
    """Completed runtime invocation."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ContainerRuntime(Protocol):
    """Capability to invoke the container runtime."""

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> RuntimeOutput:
        """
        Invoke the runtime with ``args`` (e.g. ``["volume", "create", "x"]``).

        Raises:
            RuntimeTimeoutError: If the invocation exceeds ``timeout``
            ExecutionError: If the runtime binary cannot be started
        """
        ...


class DockerCLI:
    """ContainerRuntime backed by the docker command line client."""

    def __init__(self, binary: str = "docker"):
        self.binary = binary

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> RuntimeOutput:
        argv = [self.binary, *args]
        logger.debug(f"Invoking runtime: {render_command_line(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ExecutionError(f"Container runtime binary not found: {self.binary}") from e
        except OSError as e:
            raise ExecutionError(f"Failed to start container runtime {self.binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise RuntimeTimeoutError(
                f"{args[0] if args else self.binary} exceeded timeout of {timeout}s"
            )

        return RuntimeOutput(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
