"""
XFCE/LightDM to KDE Plasma/SDDM migration for Xubuntu Minimal 24.04.

If SDDM is already the display manager only the environment is adjusted;
otherwise the KDE packages are installed, SDDM is made the default and XFCE
and LightDM are purged once the system logs look clean.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

from xubuntu_toolkit.commands import Apt, run_command
from xubuntu_toolkit.config import Config
from xubuntu_toolkit.errors import MutationFailed
from xubuntu_toolkit.preflight import run_preflight
from xubuntu_toolkit.procedure import ProcedureReport, Step, run_procedure
from xubuntu_toolkit.snapshot import SnapshotStore

logger = logging.getLogger(__name__)

SDDM_KEYBOARD_CONF = "00-disable-virtual-keyboard.conf"
SDDM_KEYBOARD_CONTENT = """[General]
InputMethod=

[Users]
MaximumUid=65000
"""


def current_display_manager(config: Config) -> str:
    try:
        return config.DISPLAY_MANAGER_FILE.read_text().strip()
    except OSError:
        return ""


def filter_journal_errors(output: str, ignore: List[str]) -> List[str]:
    """Journal error lines that do not mention any ignored unit."""
    if not ignore:
        return [line for line in output.splitlines() if line.strip()]
    pattern = re.compile("|".join(re.escape(term) for term in ignore))
    return [
        line
        for line in output.splitlines()
        if line.strip() and not pattern.search(line)
    ]


def apt_log_errors(log_files: List[Path]) -> List[str]:
    errors = []
    for log_file in log_files:
        try:
            text = log_file.read_text(errors="replace")
        except OSError:
            continue
        errors.extend(
            f"{log_file}: {line}" for line in text.splitlines() if "error" in line.lower()
        )
    return errors


class DesktopMigration:
    """Steps of the KDE migration, bound to one configuration."""

    def __init__(self, config: Config, apt: Optional[Apt] = None):
        self.config = config
        self.apt = apt or Apt()
        self.previous_dm = current_display_manager(config)
        self.already_sddm = self.previous_dm == config.SDDM_BINARY

    def require_packages(self) -> None:
        missing = self.apt.missing(self.config.KDE_PACKAGES)
        if missing:
            raise MutationFailed(f"Packages not installed: {', '.join(missing)}")
        logger.info("All KDE packages are installed.")

    def install_packages(self) -> None:
        missing = self.apt.missing(self.config.KDE_PACKAGES)
        if not missing:
            logger.info("All required packages are already installed.")
            return
        logger.info(f"Missing packages: {', '.join(missing)}")
        self.apt.update().require("apt update")
        self.apt.install(missing).require(f"Installing {', '.join(missing)}")
        self.require_packages()

    def set_default_display_manager(self) -> None:
        dm_file = self.config.DISPLAY_MANAGER_FILE
        dm_file.parent.mkdir(parents=True, exist_ok=True)
        dm_file.write_text(f"{self.config.SDDM_BINARY}\n")
        run_command(
            ["dpkg-reconfigure", "sddm", "--frontend=noninteractive"],
            env=self.apt.env,
        ).require("dpkg-reconfigure sddm")

    def configure_sddm(self) -> None:
        self.config.SDDM_CONF_DIR.mkdir(parents=True, exist_ok=True)
        conf = self.config.SDDM_CONF_DIR / SDDM_KEYBOARD_CONF
        conf.write_text(SDDM_KEYBOARD_CONTENT)
        logger.info(f"Virtual keyboard disabled in {conf}")

    def check_system_logs(self) -> None:
        if not self.config.CHECK_SYSTEM_LOGS:
            logger.info("System log check disabled.")
            return

        journal = run_command(["journalctl", "-p", "err", "-b", "--no-pager"])
        if journal.ok:
            errors = filter_journal_errors(str(journal.stdout), self.config.JOURNAL_IGNORE)
            if errors:
                for line in errors:
                    logger.error(line)
                raise MutationFailed(f"{len(errors)} error(s) found in the system journal")
        else:
            logger.warning("journalctl unavailable; skipping journal check.")

        errors = apt_log_errors(self.config.APT_LOG_FILES)
        if errors:
            for line in errors:
                logger.error(line)
            raise MutationFailed(f"{len(errors)} error(s) found in the apt logs")

    def remove_xfce(self) -> None:
        # Leftover or absent XFCE packages must not fail the migration
        purged = self.apt.purge(self.config.XFCE_PURGE_PACKAGES)
        if not purged.ok:
            logger.warning(f"Purging XFCE/LightDM exited with {purged.returncode}; ignoring.")
        cleaned = self.apt.autoremove(purge=True)
        if not cleaned.ok:
            logger.warning(f"apt autoremove exited with {cleaned.returncode}; ignoring.")

    def update_boot(self) -> None:
        run_command(["update-initramfs", "-u"]).require("update-initramfs")
        run_command(["update-grub"]).require("update-grub")

    def steps(self) -> List[Step]:
        if self.already_sddm:
            steps: List[Step] = [("Verify KDE packages", self.require_packages)]
        else:
            steps = [
                ("Install KDE packages", self.install_packages),
                ("Set SDDM as default display manager", self.set_default_display_manager),
            ]
        steps += [
            ("Disable SDDM virtual keyboard", self.configure_sddm),
            ("Check system logs for errors", self.check_system_logs),
        ]
        if not self.already_sddm:
            steps.append(("Remove XFCE and LightDM", self.remove_xfce))
        steps.append(("Update initramfs and GRUB", self.update_boot))
        return steps


def migrate_to_kde(
    config: Config, store: SnapshotStore, apt: Optional[Apt] = None
) -> ProcedureReport:
    run_preflight(config)
    migration = DesktopMigration(config, apt)
    logger.info(f"Current display manager: {migration.previous_dm or 'unknown'}")
    report = run_procedure(
        "KDE Migration",
        config,
        store,
        config.DESKTOP_BACKUP_PATHS,
        migration.steps(),
    )
    if report.succeeded:
        logger.info("Migration to KDE complete. Reboot to apply the changes.")
    return report
