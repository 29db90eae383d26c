from unittest.mock import MagicMock

import pytest

from xubuntu_toolkit import desktop
from xubuntu_toolkit.commands import CommandResult
from xubuntu_toolkit.errors import MutationFailed
from xubuntu_toolkit.procedure import ProcedureStatus


@pytest.fixture(autouse=True)
def no_preflight(monkeypatch):
    monkeypatch.setattr(desktop, "run_preflight", MagicMock())


@pytest.fixture
def commands_run(monkeypatch):
    run = MagicMock(return_value=CommandResult(["ok"], 0, "", ""))
    monkeypatch.setattr(desktop, "run_command", run)
    return run


@pytest.fixture
def lightdm_host(config):
    config.DISPLAY_MANAGER_FILE.parent.mkdir(parents=True)
    config.DISPLAY_MANAGER_FILE.write_text("/usr/sbin/lightdm\n")
    return config


@pytest.fixture
def apt():
    mock = MagicMock()
    mock.env = {}
    mock.missing.side_effect = [["sddm", "plasma-desktop"], []]
    mock.update.return_value = CommandResult(["apt-get", "update"], 0)
    mock.install.return_value = CommandResult(["apt-get", "install"], 0)
    mock.purge.return_value = CommandResult(["apt-get", "purge"], 100)
    mock.autoremove.return_value = CommandResult(["apt-get", "autoremove"], 0)
    return mock


def test_filter_journal_errors():
    output = "kernel: oops\nsddm[12]: failed to start\n\nufw: blocked\n"

    assert desktop.filter_journal_errors(output, ["ufw", "kernel"]) == ["sddm[12]: failed to start"]


def test_apt_log_errors(tmp_path):
    log = tmp_path / "term.log"
    log.write_text("Setting up sddm\nE: Sub-process returned an error code\n")

    errors = desktop.apt_log_errors([log, tmp_path / "missing.log"])

    assert len(errors) == 1
    assert "error code" in errors[0]


def test_migration_from_lightdm(lightdm_host, store, apt, commands_run):
    config = lightdm_host

    report = desktop.migrate_to_kde(config, store, apt)

    assert report.status is ProcedureStatus.SUCCEEDED
    apt.install.assert_called_once_with(["sddm", "plasma-desktop"])
    apt.purge.assert_called_once_with(config.XFCE_PURGE_PACKAGES)
    assert config.DISPLAY_MANAGER_FILE.read_text() == "/usr/bin/sddm\n"
    conf = config.SDDM_CONF_DIR / desktop.SDDM_KEYBOARD_CONF
    assert "InputMethod=" in conf.read_text()


def test_already_sddm_only_adjusts_environment(config, store, apt, commands_run):
    config.DISPLAY_MANAGER_FILE.parent.mkdir(parents=True)
    config.DISPLAY_MANAGER_FILE.write_text("/usr/bin/sddm\n")
    apt.missing.side_effect = None
    apt.missing.return_value = []

    report = desktop.migrate_to_kde(config, store, apt)

    assert report.status is ProcedureStatus.SUCCEEDED
    apt.install.assert_not_called()
    apt.purge.assert_not_called()


def test_log_errors_trigger_rollback(lightdm_host, store, apt, commands_run):
    config = lightdm_host
    config.CHECK_SYSTEM_LOGS = True
    commands_run.return_value = CommandResult(["journalctl"], 0, "sddm: crashed\n", "")

    report = desktop.migrate_to_kde(config, store, apt)

    assert report.status is ProcedureStatus.ROLLED_BACK
    assert config.DISPLAY_MANAGER_FILE.read_text() == "/usr/sbin/lightdm\n"
    assert not config.SDDM_CONF_DIR.exists()
    apt.purge.assert_not_called()


def test_require_packages_reports_missing(config):
    apt = MagicMock()
    apt.missing.return_value = ["sddm"]

    with pytest.raises(MutationFailed, match="sddm"):
        desktop.DesktopMigration(config, apt).require_packages()
