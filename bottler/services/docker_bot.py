"""Building and uploading bottles inside a Docker container.

The container runs `brew test-bot` followed by the upload step and exits
with the build's status, so an upload failure never hides a failed build.
The produced bottle JSON is copied out and merged into the formulae.
Removing the container and the copied directory is left to the operator.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path

from bottler.core.config import Config, DockerConfig
from bottler.core.result import Err, Ok, Result
from bottler.output.console import ConsoleProtocol, Style
from bottler.platform.process import run_silent
from bottler.services.errors import BottleError
from bottler.services.ports import BottleMerger

__all__ = [
    "DockerRunOutcome",
    "DockerTestBotService",
    "container_script",
    "docker_run_command",
    "print_plan",
]

CREDENTIAL_VARS = ("HOMEBREW_BINTRAY_USER", "HOMEBREW_BINTRAY_KEY")


@dataclass(frozen=True, slots=True)
class DockerRunOutcome:
    artifact_dir: Path
    merged: tuple[Path, ...]


def container_script(docker: DockerConfig, test_bot_args: list[str]) -> str:
    """Shell script run inside the container; exits with test-bot's status."""
    lines = [
        f"git config --global user.name {shlex.quote(docker.git_name)}",
        f"git config --global user.email {shlex.quote(docker.git_email)}",
        "sudo apt-get install -y python",
        f"brew tap {shlex.quote(docker.extra_tap)}",
        f"mkdir {shlex.quote(docker.workdir)}",
        f"cd {shlex.quote(docker.workdir)}",
        " ".join(["brew test-bot", *[shlex.quote(a) for a in test_bot_args]]),
        "status=$?",
        "ls",
        "brew test-bot --ci-upload",
        "head *.json",
        "exit $status",
    ]
    return "\n".join(lines) + "\n"


def docker_run_command(docker: DockerConfig, test_bot_args: list[str]) -> list[str]:
    cmd = ["docker", "run", f"--name={docker.container}"]
    for var in CREDENTIAL_VARS:
        cmd += ["-e", var]
    cmd += [docker.image, "sh", "-c", container_script(docker, test_bot_args)]
    return cmd


class DockerTestBotService:
    def __init__(
        self,
        *,
        config: Config,
        console: ConsoleProtocol,
        merger: BottleMerger,
        cwd: Path,
    ) -> None:
        self._config = config
        self._console = console
        self._merger = merger
        self._cwd = cwd

    def check_credentials(self) -> Result[None, BottleError]:
        env = self._config.env
        if env.bintray_user is None or env.bintray_key is None:
            return Err(
                BottleError(
                    kind="missing_credentials",
                    message="Missing HOMEBREW_BINTRAY_USER or HOMEBREW_BINTRAY_KEY variables!",
                )
            )
        return Ok(None)

    def run(self, test_bot_args: list[str]) -> Result[DockerRunOutcome, BottleError]:
        credentials = self.check_credentials()
        if isinstance(credentials, Err):
            return credentials

        docker = self._config.docker
        built = run_silent(docker_run_command(docker, test_bot_args), cwd=self._cwd)
        if isinstance(built, Err):
            return Err(
                BottleError(
                    kind="build_failed",
                    message=f"brew test-bot failed in container {docker.container} "
                    f"(exit {built.error.returncode})",
                    hint=f"Inspect with: docker logs {docker.container}",
                    details=self._cleanup_lines(),
                )
            )

        source = f"{docker.container}:{docker.home}/{docker.workdir}"
        copied = run_silent(["docker", "cp", source, "."], cwd=self._cwd)
        if isinstance(copied, Err):
            return Err(
                BottleError(
                    kind="command_failed",
                    message=f"docker cp {source} failed",
                    details=self._cleanup_lines(),
                )
            )

        artifact_dir = self._cwd / docker.workdir
        json_files = sorted(artifact_dir.glob("*.json"))
        if not json_files:
            return Err(
                BottleError(
                    kind="no_bottle_metadata",
                    message=f"No bottle JSON files in {artifact_dir}",
                    details=self._cleanup_lines(),
                )
            )

        merged = self._merger.bottle_merge_write(json_files, cwd=artifact_dir)
        if isinstance(merged, Err):
            return merged

        self._console.header("Done!")
        self._console.print("To clean up, run")
        for line in self._cleanup_lines()[1:]:
            self._console.print(line)
        return Ok(DockerRunOutcome(artifact_dir=artifact_dir, merged=tuple(json_files)))

    def _cleanup_lines(self) -> tuple[str, ...]:
        docker = self._config.docker
        return (
            "To clean up, run",
            f"  docker rm {docker.container}",
            f"  rm -rf {docker.workdir}",
        )


def print_plan(console: ConsoleProtocol, config: Config, test_bot_args: list[str]) -> None:
    """Echo the docker command and the script it runs."""
    cmd = docker_run_command(config.docker, test_bot_args)
    console.print(shlex.join(cmd[:-1]) + " <script>", Style.DIM)
    console.print(cmd[-1].rstrip(), Style.DIM)
