# ----------------------------------------------------------------
# Configuration Dataclass
# ----------------------------------------------------------------
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass
class Config:
    """Configuration settings passed explicitly to every procedure."""

    # Target release
    DISTRIBUTION: str = "Ubuntu"
    RELEASE: str = "24.04"
    CODENAME: str = "noble"
    STALE_CODENAME: str = "jammy"

    # File paths
    LOG_FILE: Path = field(
        default_factory=lambda: Path("/var/log/xubuntu-toolkit/toolkit.log")
    )
    BACKUP_ROOT: Path = field(
        default_factory=lambda: Path("/var/backups/xubuntu-toolkit")
    )
    OS_RELEASE_FILE: Path = field(default_factory=lambda: Path("/etc/os-release"))

    # Snapshot retention
    MAX_SNAPSHOTS: int = 5

    # Behaviour
    ASSUME_YES: bool = False
    CHECK_SYSTEM_LOGS: bool = True

    # Desktop migration
    DISPLAY_MANAGER_FILE: Path = field(
        default_factory=lambda: Path("/etc/X11/default-display-manager")
    )
    SDDM_BINARY: str = "/usr/bin/sddm"
    SDDM_CONF_DIR: Path = field(default_factory=lambda: Path("/etc/sddm.conf.d"))
    KDE_PACKAGES: List[str] = field(
        default_factory=lambda: ["kubuntu-desktop", "plasma-desktop", "sddm"]
    )
    XFCE_PURGE_PACKAGES: List[str] = field(
        default_factory=lambda: ["xubuntu-desktop", "xfce4*", "lightdm*"]
    )
    DESKTOP_BACKUP_PATHS: List[str] = field(
        default_factory=lambda: [
            "/etc/apt",
            "/etc/X11",
            "/etc/sddm.conf.d",
            "/etc/lightdm",
            "/etc/default",
            "/etc/environment",
            "/var/log/apt",
        ]
    )
    JOURNAL_IGNORE: List[str] = field(
        default_factory=lambda: [
            "ufw",
            "apport",
            "audit",
            "systemd-coredump",
            "kernel",
        ]
    )
    APT_LOG_FILES: List[Path] = field(
        default_factory=lambda: [
            Path("/var/log/apt/history.log"),
            Path("/var/log/apt/term.log"),
        ]
    )

    # Apt layout
    APT_DIR: Path = field(default_factory=lambda: Path("/etc/apt"))
    KEYRING_DIR: Path = field(default_factory=lambda: Path("/etc/apt/keyrings"))

    # Software
    DATABASE_PACKAGES: List[str] = field(
        default_factory=lambda: ["postgresql-client", "sqlite3", "mysql-client"]
    )
    KEYSERVERS: List[str] = field(
        default_factory=lambda: [
            "hkps://keyserver.ubuntu.com",
            "hkps://keys.openpgp.org",
        ]
    )
    DOWNLOAD_TIMEOUT: int = 30

    # Repository cleanup
    REINSTALL_PACKAGES: List[str] = field(
        default_factory=lambda: [
            "fonts-liberation2",
            "libcurl4",
            "libgs-common",
            "libgtk2.0-0",
            "libcups2",
            "libtirpc3",
            "libparted2",
            "ubuntu-advantage-tools",
        ]
    )
    LEGACY_PACKAGES: List[str] = field(
        default_factory=lambda: [
            "fonts-liberation",
            "libgs9-common",
            "libgail18",
            "libext2fs2",
            "libcurl4",
            "libtirpc3",
            "libgtk2.0-0",
            "libparted2",
            "libcups2",
            "ubuntu-advantage-tools",
        ]
    )

    # Swap
    SWAPFILE_PATH: Path = field(default_factory=lambda: Path("/swapfile"))
    FSTAB_PATH: Path = field(default_factory=lambda: Path("/etc/fstab"))
    SWAPPINESS_PATH: Path = field(
        default_factory=lambda: Path("/proc/sys/vm/swappiness")
    )
    SYSCTL_SWAPPINESS_FILE: Path = field(
        default_factory=lambda: Path("/etc/sysctl.d/99-swappiness.conf")
    )
    MIN_SWAP_GB: int = 1
    MAX_SWAP_GB: int = 32

    def __post_init__(self) -> None:
        """Normalise path fields passed as strings."""
        self.LOG_FILE = Path(self.LOG_FILE)
        self.BACKUP_ROOT = Path(self.BACKUP_ROOT)

    @property
    def sources_list(self) -> Path:
        return self.APT_DIR / "sources.list"

    @property
    def sources_dir(self) -> Path:
        return self.APT_DIR / "sources.list.d"
