"""
Injection-safe command execution with retries and secret redaction.

Sandbox transports accept a single shell-interpretable string. The executor
builds that string with every argument single-quote encoded, so arguments
are never reinterpreted as shell syntax, and redacts everything it logs or
returns.

Example:
    >>> provider = get_sandbox_provider()
    >>> created = await provider.create(SandboxConfig(ports=[3000]))
    >>> executor = SafeCommandExecutor(
    ...     ProviderTransport(provider, created.handle),
    ...     StructlogCommandLogger(task_id="task-123"),
    ... )
    >>> result = await executor.execute_safe(
    ...     "git", ["commit", "-m", "fix: quote's & $(stuff)"],
    ...     CommandOptions(retries=2),
    ... )
"""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Sequence

from agent_sandbox.config.logging import get_logger
from agent_sandbox.sandbox.protocol import CommandResult, SandboxHandle, SandboxProvider
from agent_sandbox.sandbox.quoting import build_command, quote_argument
from agent_sandbox.sandbox.redaction import redact_sensitive_info

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_MESSAGE = "Command failed"
SCRIPT_DIR = "/tmp"


@dataclass
class CommandOptions:
    """
    Execution options for SafeCommandExecutor.

    Attributes:
        timeout: Per-attempt timeout in seconds
        retries: Extra attempts after the first failure (total = retries + 1)
        retry_delay: Seconds to wait between attempts
        cwd: Working directory inside the sandbox
        env: Extra environment variables for the command
    """

    timeout: float = 30.0
    retries: int = 0
    retry_delay: float = 1.0
    cwd: Optional[str] = None
    env: Optional[Dict[str, str]] = None


class CommandLogger(Protocol):
    """Log sink supplied by the caller. Receives redacted text only."""

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def command(self, message: str) -> None:
        ...


class StructlogCommandLogger:
    """CommandLogger backed by structlog."""

    def __init__(self, task_id: Optional[str] = None, name: str = "agent_sandbox.commands"):
        self._logger = get_logger(name)
        if task_id is not None:
            self._logger = self._logger.bind(task_id=task_id)

    def info(self, message: str) -> None:
        self._logger.info("command_output", message=message)

    def error(self, message: str) -> None:
        self._logger.error("command_error", message=message)

    def command(self, message: str) -> None:
        self._logger.info("command", command=message)


class CommandTransport(Protocol):
    """Anything that runs one shell command line inside a sandbox."""

    async def run(
        self,
        command_line: str,
        *,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        ...


class ProviderTransport:
    """CommandTransport that sends command lines through a SandboxProvider."""

    def __init__(self, provider: SandboxProvider, handle: SandboxHandle):
        self.provider = provider
        self.handle = handle

    async def run(
        self,
        command_line: str,
        *,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        return await self.provider.run_command(
            self.handle, command_line, [], cwd=cwd, env=env, timeout=timeout
        )


class SafeCommandExecutor:
    """
    Execute commands safely against a string-based transport.

    - Arguments are single-quote encoded (see ``quote_argument``).
    - Failures, including transport exceptions, are retried ``retries`` times
      with ``retry_delay`` seconds between attempts; only the last attempt's
      result is returned.
    - The command line, stdout and stderr are redacted before they reach the
      logger or the caller.
    """

    def __init__(self, transport: CommandTransport, command_logger: CommandLogger):
        self.transport = transport
        self.logger = command_logger

    async def execute_safe(
        self,
        command: str,
        args: Sequence[str] = (),
        options: Optional[CommandOptions] = None,
    ) -> CommandResult:
        """
        Execute ``command`` with ``args`` as literal arguments.

        Args:
            command: Program to run (trusted, emitted verbatim)
            args: Arguments (untrusted, each quoted)
            options: Timeout, retry and environment settings

        Returns:
            CommandResult of the final attempt, fully redacted
        """
        options = options or CommandOptions()
        safe_command = build_command(command, args)
        self.logger.command(redact_sensitive_info(safe_command))

        last_result = CommandResult(success=False, error=DEFAULT_FAILURE_MESSAGE)
        for attempt in range(options.retries + 1):
            if attempt > 0:
                self.logger.info(f"Retry attempt {attempt}/{options.retries}")
                await asyncio.sleep(options.retry_delay)

            last_result = await self._attempt(safe_command, options)
            if last_result.success:
                return last_result

        return last_result

    async def _attempt(self, safe_command: str, options: CommandOptions) -> CommandResult:
        try:
            result = await self.transport.run(
                safe_command,
                cwd=options.cwd,
                env=options.env,
                timeout=options.timeout,
            )
        except Exception as e:
            redacted_error = redact_sensitive_info(str(e)) or "Unknown error"
            self.logger.error(f"Command execution error: {redacted_error}")
            return CommandResult(success=False, output="", error=redacted_error)

        output = redact_sensitive_info((result.output or "").strip())
        if result.success:
            self.logger.info(output or "Command executed successfully")
            return CommandResult(success=True, output=output, exit_code=result.exit_code)

        redacted_error = redact_sensitive_info(result.error) or DEFAULT_FAILURE_MESSAGE
        self.logger.error(redacted_error)
        return CommandResult(
            success=False,
            output=output,
            error=redacted_error,
            exit_code=result.exit_code,
        )

    async def execute_script(
        self, script: str, options: Optional[CommandOptions] = None
    ) -> CommandResult:
        """
        Run a multi-line shell script.

        The script is written to a uniquely named file under /tmp, made
        executable, executed through ``execute_safe`` and removed afterwards,
        whether or not it succeeded.
        """
        script_path = f"{SCRIPT_DIR}/script_{int(time.time() * 1000)}_{secrets.token_hex(5)}.sh"

        # The script travels as one quoted printf argument; no line of it can
        # terminate the write early
        write_result = await self.execute_safe(
            "sh",
            ["-c", f"printf '%s\\n' {quote_argument(script)} > {quote_argument(script_path)}"],
        )
        try:
            if not write_result.success:
                return write_result

            chmod_result = await self.execute_safe("chmod", ["+x", script_path])
            if not chmod_result.success:
                return chmod_result

            return await self.execute_safe(quote_argument(script_path), [], options)
        finally:
            cleanup = await self.execute_safe("rm", ["-f", script_path])
            if not cleanup.success:
                logger.warning(f"Failed to remove script {script_path}: {cleanup.error}")


class MockCommandExecutor(SafeCommandExecutor):
    """
    Executor with canned results for tests.

    Results are keyed by the exact unquoted command string
    (``"git status"``, ``"ls -la /workspace"``). Unknown commands fall through
    to the real transport.
    """

    def __init__(self, transport: CommandTransport, command_logger: CommandLogger):
        super().__init__(transport, command_logger)
        self._mock_results: Dict[str, CommandResult] = {}

    def set_mock_result(self, command: str, result: CommandResult) -> None:
        self._mock_results[command] = result

    async def execute_safe(
        self,
        command: str,
        args: Sequence[str] = (),
        options: Optional[CommandOptions] = None,
    ) -> CommandResult:
        full_command = " ".join([command, *args])
        mock_result = self._mock_results.get(full_command)

        if mock_result is None:
            return await super().execute_safe(command, args, options)

        self.logger.info(f"[MOCK] {redact_sensitive_info(full_command)}")
        if mock_result.success:
            self.logger.info(redact_sensitive_info(mock_result.output))
        else:
            self.logger.error(redact_sensitive_info(mock_result.error) or "Mock command failed")
        return mock_result
