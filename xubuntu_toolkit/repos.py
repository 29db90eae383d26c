"""
Repository cleanup after an in-place upgrade from jammy to noble.
"""

import logging
from pathlib import Path
from typing import List, Optional

from xubuntu_toolkit.commands import Apt
from xubuntu_toolkit.config import Config
from xubuntu_toolkit.preflight import run_preflight
from xubuntu_toolkit.procedure import ProcedureReport, Step, run_procedure
from xubuntu_toolkit.snapshot import SnapshotStore

logger = logging.getLogger(__name__)


def remove_stale_sources(sources_dir: Path, codename: str) -> List[Path]:
    """Delete source files whose name mentions ``codename``."""
    if not sources_dir.is_dir():
        return []
    removed = []
    for entry in sorted(sources_dir.iterdir()):
        if codename in entry.name and (entry.is_file() or entry.is_symlink()):
            entry.unlink()
            removed.append(entry)
            logger.info(f"Removed {entry}")
    return removed


def strip_codename_lines(sources_list: Path, codename: str) -> int:
    """Drop every line of ``sources_list`` that mentions ``codename``."""
    try:
        lines = sources_list.read_text().splitlines()
    except FileNotFoundError:
        return 0
    kept = [line for line in lines if codename not in line]
    dropped = len(lines) - len(kept)
    if dropped:
        sources_list.write_text("\n".join(kept) + ("\n" if kept else ""))
        logger.info(f"Dropped {dropped} {codename} line(s) from {sources_list}")
    return dropped


class RepositoryCleanup:
    def __init__(self, config: Config, apt: Optional[Apt] = None):
        self.config = config
        self.apt = apt or Apt()

    def fix_sources(self) -> None:
        stale = self.config.STALE_CODENAME
        remove_stale_sources(self.config.sources_dir, stale)
        strip_codename_lines(self.config.sources_list, stale)

    def refresh(self) -> None:
        self.apt.update().require("apt update")
        self.apt.clean().require("apt clean")
        self.apt.autoclean().require("apt autoclean")

    def repair(self) -> None:
        self.apt.configure_pending().require("dpkg --configure -a")
        self.apt.fix_broken().require("apt --fix-broken install")

    def reinstall(self) -> None:
        self.apt.install(self.config.REINSTALL_PACKAGES, reinstall=True).require(
            "Reinstalling packages with broken dependencies"
        )

    def remove_legacy(self) -> None:
        result = self.apt.remove(self.config.LEGACY_PACKAGES)
        if not result.ok:
            logger.warning(
                f"Removing legacy packages exited with {result.returncode}; "
                "they may already be gone."
            )

    def upgrade(self) -> None:
        self.apt.update().require("apt update")
        self.apt.full_upgrade().require("apt full-upgrade")

    def tidy(self) -> None:
        self.apt.autoremove().require("apt autoremove")
        self.apt.autoclean().require("apt autoclean")

    def steps(self) -> List[Step]:
        stale, codename = self.config.STALE_CODENAME, self.config.CODENAME
        return [
            (f"Remove {stale} repositories", self.fix_sources),
            ("Refresh and clean package cache", self.refresh),
            ("Repair broken packages", self.repair),
            ("Reinstall packages with corrupted dependencies", self.reinstall),
            ("Remove conflicting legacy packages", self.remove_legacy),
            (f"Full upgrade on {codename}", self.upgrade),
            ("Remove orphaned packages", self.tidy),
        ]


def clean_repositories(
    config: Config, store: SnapshotStore, apt: Optional[Apt] = None
) -> ProcedureReport:
    run_preflight(config)
    return run_procedure(
        "Repository Cleanup",
        config,
        store,
        [str(config.APT_DIR)],
        RepositoryCleanup(config, apt).steps(),
    )
