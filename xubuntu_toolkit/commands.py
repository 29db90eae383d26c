"""
Command execution helpers.

Every external tool is invoked through ``run_command``, which never raises on
a non-zero exit. The caller decides what a failure means: ``require()`` turns
it into ``MutationFailed``, while optional steps log it and carry on.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from xubuntu_toolkit.errors import MutationFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single external command."""

    command: List[str]
    returncode: int
    stdout: Union[str, bytes] = ""
    stderr: Union[str, bytes] = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def require(self, description: Optional[str] = None) -> "CommandResult":
        """Return self on success, otherwise raise MutationFailed."""
        if not self.ok:
            what = description or " ".join(self.command)
            detail = self.stderr.strip() if isinstance(self.stderr, str) else ""
            message = f"{what} failed with exit code {self.returncode}"
            if detail:
                message = f"{message}: {detail.splitlines()[-1]}"
            raise MutationFailed(message, self.command, self.returncode)
        return self


def run_command(
    command: Sequence[str],
    capture_output: bool = True,
    text: bool = True,
    input: Optional[Union[str, bytes]] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[int] = None,
) -> CommandResult:
    """
    Run a command and report its exit status instead of raising.

    A missing executable or a timeout is reported as exit code 127 or 124,
    mirroring what a shell would return.
    """
    cmd = [str(part) for part in command]
    logger.debug(f"Executing: {' '.join(cmd)}")
    try:
        completed = subprocess.run(
            cmd,
            capture_output=capture_output,
            text=text,
            input=input,
            env=env,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError:
        logger.warning(f"Command not found: {cmd[0]}")
        return CommandResult(cmd, 127, "", f"{cmd[0]}: command not found")
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        return CommandResult(cmd, 124, "", "timed out")

    result = CommandResult(
        cmd,
        completed.returncode,
        completed.stdout if completed.stdout is not None else "",
        completed.stderr if completed.stderr is not None else "",
    )
    if not result.ok:
        logger.debug(f"Exit code {result.returncode}: {' '.join(cmd)}")
    return result


def command_exists(command: str) -> bool:
    """Check if a command exists in the system."""
    return shutil.which(command) is not None


class Apt:
    """Thin facade over apt and dpkg for package installation and removal."""

    def __init__(self) -> None:
        self.env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")

    def _apt(self, *args: str) -> CommandResult:
        return run_command(["apt-get", *args], env=self.env)

    def is_installed(self, package: str) -> bool:
        result = run_command(["dpkg-query", "-W", "-f=${Status}", package])
        return result.ok and "install ok installed" in str(result.stdout)

    def missing(self, packages: Sequence[str]) -> List[str]:
        return [p for p in packages if not self.is_installed(p)]

    def update(self) -> CommandResult:
        return self._apt("update")

    def install(self, packages: Sequence[str], reinstall: bool = False) -> CommandResult:
        args = ["install", "-y"]
        if reinstall:
            args.append("--reinstall")
        return self._apt(*args, *packages)

    def remove(self, packages: Sequence[str]) -> CommandResult:
        return self._apt("remove", "-y", *packages)

    def purge(self, packages: Sequence[str]) -> CommandResult:
        return self._apt("purge", "-y", *packages)

    def autoremove(self, purge: bool = False) -> CommandResult:
        args = ["autoremove", "-y"]
        if purge:
            args.append("--purge")
        return self._apt(*args)

    def clean(self) -> CommandResult:
        return self._apt("clean")

    def autoclean(self) -> CommandResult:
        return self._apt("autoclean")

    def fix_broken(self) -> CommandResult:
        return self._apt("--fix-broken", "install", "-y")

    def full_upgrade(self) -> CommandResult:
        return self._apt("full-upgrade", "-y")

    def configure_pending(self) -> CommandResult:
        return run_command(["dpkg", "--configure", "-a"], env=self.env)
