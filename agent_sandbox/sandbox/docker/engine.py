"""
Container sandbox engine.

Each DockerSandbox owns one container plus its workspace volume, attached to a
shared network. Lifecycle::

    uninitialized -> creating -> running -> stopping -> terminated
                         \\-> failed

Provisioning either reaches ``running`` or rolls back into ``failed``; no
caller observes a half-created sandbox.

Active sandboxes are tracked in a ContainerRegistry owned by the caller
(usually DockerSandboxProvider). The registry lives in memory only: after a
process restart, containers labelled ``agent-sandbox.id`` may still be
running and can be reattached with ``DockerSandbox.get``.
"""

import logging
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

from agent_sandbox.sandbox.config import DockerEngineConfig, SandboxConfig, SandboxSource
from agent_sandbox.sandbox.docker.parsing import (
    PORTS_FORMAT,
    STATS_FORMAT,
    parse_disk_usage,
    parse_port_bindings,
    parse_stats_line,
)
from agent_sandbox.sandbox.docker.runtime import ContainerRuntime, RuntimeOutput
from agent_sandbox.sandbox.exceptions import (
    ExecutionError,
    MetricsFieldError,
    NotFoundError,
    ProvisioningError,
    SandboxError,
    SandboxNotInitializedError,
    TeardownError,
)
from agent_sandbox.sandbox.protocol import (
    NOT_INITIALIZED_ERROR,
    CommandResult,
    ResourceMetrics,
    join_command,
)
from agent_sandbox.sandbox.quoting import escape_double_quotes, quote_argument
from agent_sandbox.sandbox.redaction import redact_sensitive_info

logger = logging.getLogger(__name__)

SANDBOX_LABEL = "agent-sandbox.id"
IDLE_COMMAND = "tail -f /dev/null"
HOST_GATEWAY = "host.docker.internal:host-gateway"

# Timeouts (seconds) for lifecycle calls to the runtime
LIFECYCLE_TIMEOUT = 60.0
RUN_TIMEOUT = 300.0


class SandboxState(str, Enum):
    """Engine lifecycle states."""

    UNINITIALIZED = "uninitialized"
    CREATING = "creating"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"
    FAILED = "failed"


@dataclass
class ContainerRecord:
    """Runtime resources backing one sandbox."""

    sandbox_id: str
    container_id: str
    ports: List[int]
    project_dir: str
    network_name: str
    volume_name: Optional[str] = None


@dataclass
class ContainerRegistry:
    """In-memory map of sandbox id to ContainerRecord."""

    _records: Dict[str, ContainerRecord] = field(default_factory=dict)

    def get(self, sandbox_id: str) -> Optional[ContainerRecord]:
        return self._records.get(sandbox_id)

    def register(self, record: ContainerRecord) -> None:
        self._records[record.sandbox_id] = record

    def remove(self, sandbox_id: str) -> None:
        self._records.pop(sandbox_id, None)

    def __contains__(self, sandbox_id: object) -> bool:
        return sandbox_id in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)


def generate_sandbox_id() -> str:
    return f"sandbox-{secrets.token_hex(8)}"


def volume_name_for(sandbox_id: str) -> str:
    return f"{sandbox_id}-data"


def _is_already_exists(output: RuntimeOutput) -> bool:
    return "already exists" in output.stderr.lower()


class DockerSandbox:
    """
    A sandbox backed by one local container.

    Use ``create`` or ``get`` to obtain an instance; the constructor only
    wraps an existing record.

    Example:
        >>> runtime = DockerCLI()
        >>> registry = ContainerRegistry()
        >>> sandbox = await DockerSandbox.create(
        ...     SandboxConfig(ports=[3000]),
        ...     runtime=runtime, engine_config=DockerEngineConfig(), registry=registry,
        ... )
        >>> await sandbox.run_command("npm", ["install"])
        >>> await sandbox.stop()
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        engine_config: DockerEngineConfig,
        registry: ContainerRegistry,
        record: Optional[ContainerRecord] = None,
    ):
        self.runtime = runtime
        self.engine_config = engine_config
        self.registry = registry
        self.record = record
        self.state = SandboxState.RUNNING if record else SandboxState.UNINITIALIZED

    @property
    def sandbox_id(self) -> Optional[str]:
        return self.record.sandbox_id if self.record else None

    @property
    def ports(self) -> List[int]:
        return list(self.record.ports) if self.record else []

    def domain(self, port: int) -> str:
        return f"localhost:{port}"

    @classmethod
    async def create(
        cls,
        config: SandboxConfig,
        *,
        runtime: ContainerRuntime,
        engine_config: DockerEngineConfig,
        registry: ContainerRegistry,
    ) -> "DockerSandbox":
        """
        Provision volume, network and container for a new sandbox.

        Raises:
            ProvisioningError: If any step fails (the volume and any
                half-created container are removed first)
        """
        sandbox = cls(runtime, engine_config, registry)
        await sandbox._provision(config)
        return sandbox

    @classmethod
    async def get(
        cls,
        sandbox_id: str,
        *,
        runtime: ContainerRuntime,
        engine_config: DockerEngineConfig,
        registry: ContainerRegistry,
    ) -> "DockerSandbox":
        """
        Look up a running sandbox, reattaching to its container if the
        registry does not know it.

        Raises:
            NotFoundError: If no running container matches ``sandbox_id``
        """
        record = registry.get(sandbox_id)
        if record is not None:
            return cls(runtime, engine_config, registry, record)

        ps = await runtime.run(
            ["ps", "-q", "--filter", f"name=^/?{sandbox_id}$"], timeout=LIFECYCLE_TIMEOUT
        )
        if not ps.ok:
            raise ExecutionError(f"Failed to query containers: {ps.stderr.strip()}")
        container_ids = ps.stdout.split()
        if not container_ids:
            raise NotFoundError(f"Container {sandbox_id} not found")
        container_id = container_ids[0]

        inspect = await runtime.run(
            ["inspect", "--format", PORTS_FORMAT, container_id], timeout=LIFECYCLE_TIMEOUT
        )
        ports = parse_port_bindings(inspect.stdout) if inspect.ok else []

        record = ContainerRecord(
            sandbox_id=sandbox_id,
            container_id=container_id,
            ports=ports or [engine_config.default_port],
            project_dir=engine_config.project_dir,
            network_name=engine_config.network_name,
            volume_name=await _find_workspace_volume(runtime, container_id, engine_config),
        )
        registry.register(record)
        logger.info(f"Reattached to container {container_id[:12]} for {sandbox_id}")
        return cls(runtime, engine_config, registry, record)

    async def _provision(self, config: SandboxConfig) -> None:
        self.state = SandboxState.CREATING
        sandbox_id = generate_sandbox_id()
        volume_name = volume_name_for(sandbox_id)
        ports = self.engine_config.resolve_ports(config)

        logger.info(f"Creating Docker sandbox {sandbox_id} (ports: {ports})")

        try:
            await self._ensure_volume(volume_name)
            await self._ensure_network(self.engine_config.network_name)

            run = await self.runtime.run(
                self._build_run_args(sandbox_id, volume_name, ports, config),
                timeout=RUN_TIMEOUT,
            )
            if not run.ok:
                raise ProvisioningError(
                    f"Failed to start container: {run.stderr.strip() or 'docker run failed'}"
                )
            container_id = run.stdout.strip().splitlines()[-1] if run.stdout.strip() else ""
            if not container_id:
                raise ProvisioningError("Container runtime returned no container id")
        except Exception as e:
            self.state = SandboxState.FAILED
            await self._rollback(sandbox_id, volume_name)
            if isinstance(e, ProvisioningError):
                raise
            raise ProvisioningError(f"Failed to create Docker sandbox: {e}") from e

        self.record = ContainerRecord(
            sandbox_id=sandbox_id,
            container_id=container_id,
            ports=ports,
            project_dir=self.engine_config.project_dir,
            network_name=self.engine_config.network_name,
            volume_name=volume_name,
        )
        self.registry.register(self.record)
        self.state = SandboxState.RUNNING
        logger.info(f"Docker sandbox {sandbox_id} running (container: {container_id[:12]})")

    async def _ensure_volume(self, volume_name: str) -> None:
        result = await self.runtime.run(["volume", "create", volume_name], timeout=LIFECYCLE_TIMEOUT)
        if not result.ok and not _is_already_exists(result):
            raise ProvisioningError(
                f"Failed to create volume '{volume_name}': {result.stderr.strip()}"
            )

    async def _ensure_network(self, network_name: str) -> None:
        """
        Ensure the shared network exists.

        Another process may create it between the inspect and the create, so
        an "already exists" failure, or a failed create followed by a
        successful inspect, counts as success.
        """
        inspect = await self.runtime.run(["network", "inspect", network_name], timeout=LIFECYCLE_TIMEOUT)
        if inspect.ok:
            return

        create = await self.runtime.run(["network", "create", network_name], timeout=LIFECYCLE_TIMEOUT)
        if create.ok or _is_already_exists(create):
            return

        verify = await self.runtime.run(["network", "inspect", network_name], timeout=LIFECYCLE_TIMEOUT)
        if not verify.ok:
            raise ProvisioningError(
                f"Failed to create network '{network_name}': {create.stderr.strip()}"
            )

    def _build_run_args(
        self,
        sandbox_id: str,
        volume_name: str,
        ports: Sequence[int],
        config: SandboxConfig,
    ) -> List[str]:
        engine = self.engine_config
        args = [
            "run",
            "-d",
            "--name",
            sandbox_id,
            "--label",
            f"{SANDBOX_LABEL}={sandbox_id}",
            "--network",
            engine.network_name,
        ]
        for port in ports:
            args.extend(["-p", f"{port}:{port}"])
        args.extend(
            [
                f"--memory={engine.memory_limit}",
                f"--cpus={engine.resolve_cpu_limit(config)}",
                "-v",
                f"{volume_name}:{engine.workspace_mount}",
                "-w",
                engine.workspace_mount,
            ]
        )
        if engine.host_gateway:
            args.append(f"--add-host={HOST_GATEWAY}")

        env = dict(engine.environment)
        if config.source:
            env["GIT_URL"] = config.source.url
            if config.source.revision:
                env["GIT_BRANCH"] = config.source.revision
            if config.source.depth:
                env["GIT_DEPTH"] = str(config.source.depth)
        for key, value in env.items():
            args.extend(["-e", f"{key}={value}"])

        args.append(engine.image)
        args.extend(["/bin/sh", "-c", self._entrypoint_script(config.source)])
        return args

    def _entrypoint_script(self, source: Optional[SandboxSource]) -> str:
        project_dir = quote_argument(self.engine_config.project_dir)
        if source is None:
            return f"mkdir -p {project_dir} && {IDLE_COMMAND}"
        return (
            f"git clone --depth {int(source.depth or 1)} "
            f"-b {quote_argument(source.revision or 'main')} "
            f"{quote_argument(source.url)} {project_dir} && {IDLE_COMMAND}"
        )

    async def _rollback(self, sandbox_id: str, volume_name: str) -> None:
        for args in (["rm", "-f", sandbox_id], ["volume", "rm", volume_name]):
            try:
                result = await self.runtime.run(args, timeout=LIFECYCLE_TIMEOUT)
            except SandboxError as e:
                logger.warning(f"Rollback step '{' '.join(args[:2])}' failed: {e}")
                continue
            if not result.ok and "no such" not in result.stderr.lower():
                logger.warning(
                    f"Rollback step '{' '.join(args[:2])}' failed: {result.stderr.strip()}"
                )

    async def run_command(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run ``command args...`` through ``/bin/sh -c`` inside the container.

        The joined string is passed to the runtime as a single argv element,
        which is what the container shell would receive from the escaped
        form ``/bin/sh -c "<escaped>"`` after host-side unquoting. Output is
        returned raw; redaction is SafeCommandExecutor's job.
        """
        if self.state != SandboxState.RUNNING or self.record is None:
            return CommandResult(success=False, output="", error=NOT_INITIALIZED_ERROR)

        work_dir = cwd or self.record.project_dir
        full_command = join_command(command, args)
        logger.debug(
            redact_sensitive_info(
                f'{self.record.sandbox_id}: /bin/sh -c "{escape_double_quotes(full_command)}"'
            )
        )

        exec_args = ["exec", "-w", work_dir]
        for key, value in (env or {}).items():
            exec_args.extend(["-e", f"{key}={value}"])
        exec_args.extend([self.record.container_id, "/bin/sh", "-c", full_command])

        try:
            result = await self.runtime.run(
                exec_args, timeout=timeout or self.engine_config.command_timeout
            )
        except ExecutionError as e:
            return CommandResult(success=False, output="", error=str(e))

        if result.ok:
            return CommandResult(success=True, output=result.stdout, exit_code=0)
        return CommandResult(
            success=False,
            output=result.stdout,
            error=result.stderr or "Command execution failed",
            exit_code=result.exit_code,
        )

    async def stop(self) -> None:
        """
        Stop and remove the container, then its volume unless
        ``keep_volume`` is set. Never raises; failures are logged.
        """
        if self.state != SandboxState.RUNNING or self.record is None:
            return

        self.state = SandboxState.STOPPING
        record = self.record
        steps = [["stop", record.container_id], ["rm", record.container_id]]
        if record.volume_name and not self.engine_config.keep_volume:
            steps.append(["volume", "rm", record.volume_name])

        for args in steps:
            try:
                await self._teardown_step(args)
            except TeardownError as e:
                logger.error(f"Failed to clean up sandbox {record.sandbox_id}: {e}")

        self.registry.remove(record.sandbox_id)
        self.state = SandboxState.TERMINATED
        logger.info(f"Docker sandbox {record.sandbox_id} terminated")

    async def _teardown_step(self, args: List[str]) -> None:
        try:
            result = await self.runtime.run(args, timeout=LIFECYCLE_TIMEOUT)
        except SandboxError as e:
            raise TeardownError(f"docker {' '.join(args)}: {e}") from e
        if not result.ok:
            raise TeardownError(f"docker {' '.join(args)}: {result.stderr.strip()}")

    async def get_metrics(self) -> ResourceMetrics:
        """
        Take one resource usage snapshot.

        Unreadable fields default to zero.

        Raises:
            SandboxNotInitializedError: If the sandbox is not running
            ExecutionError: If the runtime cannot report stats at all
        """
        if self.state != SandboxState.RUNNING or self.record is None:
            raise SandboxNotInitializedError("Container not initialized")

        stats = await self.runtime.run(
            ["stats", self.record.container_id, "--no-stream", "--format", STATS_FORMAT],
            timeout=LIFECYCLE_TIMEOUT,
        )
        if not stats.ok:
            raise ExecutionError(f"Failed to get metrics: {stats.stderr.strip()}")

        snapshot = parse_stats_line(stats.stdout.strip().splitlines()[0] if stats.stdout.strip() else "")
        return ResourceMetrics(
            cpu=snapshot.cpu,
            memory=snapshot.memory,
            memory_limit=snapshot.memory_limit,
            disk_usage=await self._disk_usage(),
            network_rx=snapshot.network_rx,
            network_tx=snapshot.network_tx,
        )

    async def _disk_usage(self) -> float:
        try:
            result = await self.runtime.run(
                ["exec", self.record.container_id, "du", "-sm", self.engine_config.workspace_mount],
                timeout=LIFECYCLE_TIMEOUT,
            )
        except ExecutionError as e:
            logger.warning(f"Disk usage query failed: {e}")
            return 0.0
        try:
            return parse_disk_usage(result.stdout)
        except MetricsFieldError as e:
            logger.warning(str(e))
            return 0.0


async def _find_workspace_volume(
    runtime: ContainerRuntime, container_id: str, engine_config: DockerEngineConfig
) -> Optional[str]:
    template = (
        "{{range .Mounts}}{{if eq .Destination \"%s\"}}{{.Name}}{{end}}{{end}}"
        % engine_config.workspace_mount
    )
    result = await runtime.run(["inspect", "--format", template, container_id], timeout=LIFECYCLE_TIMEOUT)
    name = result.stdout.strip() if result.ok else ""
    return name or None
