"""Container runtimes for distpack.

A container runtime is an opaque command executor: it receives one composed
shell script and returns an exit status and captured output. distpack talks
to real runtimes through their CLI via subprocess (no SDK dependency), which
works the same for Docker, Podman and any CLI-compatible runtime.

Key Concepts:
    ContainerRuntime: Protocol, ``identifier`` + ``invoke(script, ...)``.
        Tests inject in-memory fakes implementing it.
    RuntimeSpec: Frozen dataclass describing a CLI runtime.
    RUNTIMES: Registry dict mapping name → RuntimeSpec.
    CliRuntime: subprocess-backed implementation.

Mount layout inside the container::

    /src   read-only bind of the project workspace
    /out   writable bind receiving built artifacts

Tags:
    container, docker, podman, subprocess, runtime
"""

from __future__ import annotations

import shutil
import subprocess
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from distpack.build.results import InvocationResult
from distpack.core.errors import RuntimeInvocationError
from distpack.core.logging import get_logger

logger = get_logger(__name__)

SOURCE_MOUNT = "/src"
OUTPUT_MOUNT = "/out"
TIMEOUT_EXIT_CODE = 124
CONTAINER_PREFIX = "distpack"


@runtime_checkable
class ContainerRuntime(Protocol):
    """Anything that can run a build script in an isolated environment."""

    identifier: str

    def invoke(
        self,
        script: str,
        *,
        image: str,
        workspace: Path,
        output_dir: Path,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> InvocationResult: ...


@dataclass(frozen=True)
class RuntimeSpec:
    """Specification of a CLI container runtime."""

    name: str
    executable: str
    run_args: list[str] = field(default_factory=lambda: ["run", "--rm"])
    info_args: list[str] = field(default_factory=lambda: ["info"])
    remove_args: list[str] = field(default_factory=lambda: ["rm", "--force"])
    volume_options: str = ""
    """Extra bind-mount options (e.g. SELinux relabel ``z`` for podman)."""


DOCKER = RuntimeSpec(name="docker", executable="docker")
PODMAN = RuntimeSpec(name="podman", executable="podman", volume_options="z")

RUNTIMES: dict[str, RuntimeSpec] = {
    "docker": DOCKER,
    "podman": PODMAN,
}


def get_runtime(name: str) -> RuntimeSpec:
    """Look up a runtime spec by name (case-insensitive).

    Raises
    ------
    ValueError
        If the runtime name is not recognized.
    """
    key = name.lower().strip()
    if key not in RUNTIMES:
        available = ", ".join(sorted(RUNTIMES.keys()))
        raise ValueError(f"Unknown container runtime: {name!r}. Available: {available}")
    return RUNTIMES[key]


class CliRuntime:
    """Runs build scripts through a container runtime's CLI.

    Parameters
    ----------
    spec
        Runtime specification (``DOCKER``, ``PODMAN``, ...).

    Example::

        runtime = CliRuntime(DOCKER)
        result = runtime.invoke(
            "echo hello", image="archlinux:latest",
            workspace=Path("."), output_dir=Path("dist"),
        )
    """

    def __init__(self, spec: RuntimeSpec) -> None:
        self.spec = spec
        self.identifier = spec.name

    def is_available(self) -> bool:
        """Check if the CLI is installed and its daemon/service responds."""
        executable = shutil.which(self.spec.executable)
        if executable is None:
            return False
        try:
            result = subprocess.run(
                [executable, *self.spec.info_args],
                capture_output=True,
                timeout=10,
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, OSError):
            return False

    def _volume(self, host: Path, target: str, readonly: bool) -> str:
        options = [o for o in ("ro" if readonly else "", self.spec.volume_options) if o]
        suffix = f":{','.join(options)}" if options else ""
        return f"{host.resolve()}:{target}{suffix}"

    def build_command(
        self,
        script: str,
        *,
        image: str,
        workspace: Path,
        output_dir: Path,
        env: dict[str, str] | None = None,
        name: str | None = None,
    ) -> list[str]:
        """Compose the argument vector for one invocation (no shell=True)."""
        cmd = [self.spec.executable, *self.spec.run_args]
        if name:
            cmd.extend(["--name", name])
        cmd += [
            "--volume", self._volume(workspace, SOURCE_MOUNT, readonly=True),
            "--volume", self._volume(output_dir, OUTPUT_MOUNT, readonly=False),
        ]
        for key, value in (env or {}).items():
            cmd.extend(["--env", f"{key}={value}"])
        cmd.extend([image, "bash", "-c", script])
        return cmd

    def invoke(
        self,
        script: str,
        *,
        image: str,
        workspace: Path,
        output_dir: Path,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> InvocationResult:
        """Run ``script`` in a fresh container and wait for it to exit.

        Every container gets a unique ``distpack-<hex>`` name. A timeout
        kills the CLI client, force-removes the named container so it cannot
        keep writing to ``/out``, and is reported as an
        :class:`InvocationResult` with ``timed_out=True`` so the captured
        output is kept.

        Raises
        ------
        RuntimeInvocationError
            If the runtime CLI is missing or cannot be executed.
        """
        if shutil.which(self.spec.executable) is None:
            raise RuntimeInvocationError(
                f"{self.spec.executable} CLI not found on PATH"
            ).with_context(runtime=self.identifier)

        output_dir.mkdir(parents=True, exist_ok=True)
        container_name = f"{CONTAINER_PREFIX}-{uuid.uuid4().hex[:12]}"
        cmd = self.build_command(
            script, image=image, workspace=workspace, output_dir=output_dir, env=env,
            name=container_name,
        )
        logger.debug("runtime.exec", runtime=self.identifier, image=image, container=container_name)
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning(
                "runtime.timeout", runtime=self.identifier, timeout=timeout, container=container_name
            )
            self.remove_container(container_name)
            return InvocationResult(
                exit_code=TIMEOUT_EXIT_CODE,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr) + f"\n{self.identifier} run timed out after {timeout}s\n",
                timed_out=True,
            )
        except OSError as exc:
            raise RuntimeInvocationError(
                f"Cannot execute {self.spec.executable}: {exc}", cause=exc,
            ).with_context(runtime=self.identifier)

        return InvocationResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def remove_container(self, name: str, timeout: float = 60) -> bool:
        """Force-remove container ``name``; returns whether the runtime confirmed it."""
        try:
            result = subprocess.run(
                [self.spec.executable, *self.spec.remove_args, name],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (subprocess.TimeoutExpired, OSError) as exc:
            logger.warning("container.remove_failed", container=name, error=str(exc))
            return False
        if result.returncode != 0:
            logger.warning("container.remove_failed", container=name, error=(result.stderr or "").strip())
            return False
        logger.info("container.removed", container=name)
        return True


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def create_runtime(name: str) -> CliRuntime:
    """Build a :class:`CliRuntime` for a registered runtime name."""
    return CliRuntime(get_runtime(name))
