# ----------------------------------------------------------------
# Preflight Checks
# ----------------------------------------------------------------
import logging
import os
import shlex
import shutil
from pathlib import Path
from typing import Dict, Tuple

from xubuntu_toolkit.commands import command_exists, run_command
from xubuntu_toolkit.config import Config
from xubuntu_toolkit.errors import PreconditionFailed

logger = logging.getLogger(__name__)


def check_root() -> None:
    """Ensure the toolkit is run as root."""
    if os.geteuid() != 0:
        raise PreconditionFailed("This operation must be run as root (e.g., using sudo).")


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse the KEY=value lines of an os-release file."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        values[key.strip()] = parts[0] if parts else ""
    return values


def detect_distribution(config: Config) -> Tuple[str, str]:
    """Return (distributor id, release), preferring lsb_release."""
    if command_exists("lsb_release"):
        distro = run_command(["lsb_release", "-is"])
        release = run_command(["lsb_release", "-rs"])
        if distro.ok and release.ok:
            return str(distro.stdout).strip(), str(release.stdout).strip()
        logger.debug("lsb_release failed; falling back to os-release")

    try:
        info = parse_os_release(config.OS_RELEASE_FILE.read_text())
    except OSError as e:
        raise PreconditionFailed(f"Cannot determine distribution: {e}") from e
    return info.get("NAME", "").split(" ")[0], info.get("VERSION_ID", "")


def check_distribution(config: Config) -> None:
    distro, release = detect_distribution(config)
    logger.info(f"Detected distribution: {distro} {release}")
    if distro != config.DISTRIBUTION or release != config.RELEASE:
        raise PreconditionFailed(
            f"This toolkit targets {config.DISTRIBUTION} {config.RELEASE} "
            f"(Xubuntu Minimal); found {distro or 'unknown'} {release or 'unknown'}."
        )


def check_disk_space(path: Path, required_gb: int) -> None:
    """Require ``required_gb`` plus 1 GiB of headroom free on ``path``."""
    free_gb = shutil.disk_usage(str(path)).free // (1024**3)
    if free_gb < required_gb + 1:
        raise PreconditionFailed(
            f"Insufficient disk space. Required: {required_gb}G + 1G free. "
            f"Available: {free_gb}G"
        )


def run_preflight(config: Config) -> None:
    check_root()
    check_distribution(config)
