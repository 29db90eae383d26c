from datetime import datetime, timedelta

import pytest

from xubuntu_toolkit.config import Config
from xubuntu_toolkit.snapshot import SnapshotStore


class FakeClock:
    """Returns strictly increasing timestamps, one second apart."""

    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.current = start

    def __call__(self):
        now = self.current
        self.current += timedelta(seconds=1)
        return now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def live(tmp_path):
    root = tmp_path / "live"
    root.mkdir()
    return root


@pytest.fixture
def store(tmp_path, clock):
    return SnapshotStore(tmp_path / "backups", max_count=3, clock=clock)


@pytest.fixture
def config(tmp_path, live):
    etc = live / "etc"
    return Config(
        LOG_FILE=tmp_path / "log" / "toolkit.log",
        BACKUP_ROOT=tmp_path / "backups",
        OS_RELEASE_FILE=etc / "os-release",
        ASSUME_YES=True,
        CHECK_SYSTEM_LOGS=False,
        DISPLAY_MANAGER_FILE=etc / "X11" / "default-display-manager",
        SDDM_CONF_DIR=etc / "sddm.conf.d",
        DESKTOP_BACKUP_PATHS=[str(etc / "X11"), str(etc / "sddm.conf.d")],
        APT_LOG_FILES=[live / "var" / "log" / "apt" / "history.log"],
        APT_DIR=etc / "apt",
        KEYRING_DIR=etc / "apt" / "keyrings",
        SWAPFILE_PATH=live / "swapfile",
        FSTAB_PATH=etc / "fstab",
        SWAPPINESS_PATH=live / "proc" / "swappiness",
        SYSCTL_SWAPPINESS_FILE=etc / "sysctl.d" / "99-swappiness.conf",
    )
