"""Shared fixtures: scripted container runtime, recording logger, fake transport."""

from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest

from agent_sandbox.sandbox.config import DockerEngineConfig
from agent_sandbox.sandbox.docker.engine import ContainerRegistry
from agent_sandbox.sandbox.docker.runtime import RuntimeOutput
from agent_sandbox.sandbox.protocol import CommandResult

Response = Union[RuntimeOutput, Exception, Callable[[List[str]], RuntimeOutput]]


def ok(stdout: str = "") -> RuntimeOutput:
    return RuntimeOutput(exit_code=0, stdout=stdout, stderr="")


def fail(stderr: str = "error", exit_code: int = 1, stdout: str = "") -> RuntimeOutput:
    return RuntimeOutput(exit_code=exit_code, stdout=stdout, stderr=stderr)


class FakeRuntime:
    """
    ContainerRuntime double.

    Responses are matched on the argv prefix (the longest registered prefix
    wins); unmatched calls succeed with empty output. Every call is recorded.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.timeouts: List[Optional[float]] = []
        self._responses: Dict[tuple, List[Response]] = {}

    def on(self, *prefix: str, response: Response) -> "FakeRuntime":
        self._responses.setdefault(tuple(prefix), []).append(response)
        return self

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> RuntimeOutput:
        args = list(args)
        self.calls.append(args)
        self.timeouts.append(timeout)

        matches = [p for p in self._responses if tuple(args[: len(p)]) == p]
        if not matches:
            return ok()
        queue = self._responses[max(matches, key=len)]
        response = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(args)
        return response

    def called(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


class RecordingLogger:
    """CommandLogger double that keeps every message."""

    def __init__(self):
        self.infos: List[str] = []
        self.errors: List[str] = []
        self.commands: List[str] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def command(self, message: str) -> None:
        self.commands.append(message)

    @property
    def everything(self) -> List[str]:
        return self.infos + self.errors + self.commands


class ScriptedTransport:
    """CommandTransport returning queued results (or raising queued exceptions)."""

    def __init__(self, *results: Union[CommandResult, Exception]):
        self.results = list(results)
        self.calls: List[dict] = []

    async def run(self, command_line, *, cwd=None, env=None, timeout=None) -> CommandResult:
        self.calls.append({"command_line": command_line, "cwd": cwd, "env": env, "timeout": timeout})
        if not self.results:
            return CommandResult(success=True, output="", exit_code=0)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def command_lines(self) -> List[str]:
        return [c["command_line"] for c in self.calls]


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def registry():
    return ContainerRegistry()


@pytest.fixture
def engine_config():
    return DockerEngineConfig(
        image="coding-agent-sandbox:test",
        network_name="test-network",
        memory_limit="1g",
        cpu_limit="1",
    )
