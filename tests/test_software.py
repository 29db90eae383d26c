from unittest.mock import MagicMock

import pytest

from xubuntu_toolkit import software
from xubuntu_toolkit.acquire import AcquisitionResult
from xubuntu_toolkit.commands import CommandResult
from xubuntu_toolkit.procedure import ProcedureStatus


@pytest.fixture
def fake_key(monkeypatch):
    def install_key(url, dest, **kwargs):
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"\x99key")
        return AcquisitionResult(url, True, "https", ["https"])

    mock = MagicMock(side_effect=install_key)
    monkeypatch.setattr(software, "install_key", mock)
    return mock


@pytest.fixture
def apt():
    mock = MagicMock()
    mock.update.return_value = CommandResult(["apt-get", "update"], 0)
    mock.install.return_value = CommandResult(["apt-get", "install"], 0)
    return mock


@pytest.fixture(autouse=True)
def no_preflight(monkeypatch):
    monkeypatch.setattr(software, "run_preflight", MagicMock())


def test_source_line_uses_signed_by_keyring(config):
    line = software.PGADMIN.source_line(config)

    assert line == (
        f"deb [arch=amd64 signed-by={config.KEYRING_DIR / 'pgadmin4.gpg'}] "
        "https://ftp.postgresql.org/pub/pgadmin/pgadmin4/apt/noble pgadmin4 main"
    )


def test_flat_repository_source_line(config):
    assert software.DBEAVER.source_line(config).endswith("https://dbeaver.io/debs/dbeaver-ce /")


def test_add_repository_writes_key_and_source(config, fake_key):
    software.add_repository(config, software.VSCODE)

    assert software.VSCODE.keyring_path(config).read_bytes() == b"\x99key"
    source = software.VSCODE.source_path(config).read_text()
    assert "packages.microsoft.com/repos/code stable main" in source
    assert fake_key.call_args.kwargs["fingerprint"] == software.VSCODE.fingerprint
    assert fake_key.call_args.kwargs["keyservers"] == config.KEYSERVERS


def test_install_editor_installs_code(config, store, fake_key, apt):
    report = software.install_editor(config, store, apt)

    assert report.status is ProcedureStatus.SUCCEEDED
    apt.install.assert_called_once_with(["code"])


def test_install_database_tools_includes_archive_clients(config, store, fake_key, apt):
    software.install_database_tools(config, store, apt)

    packages = apt.install.call_args.args[0]
    assert packages == ["pgadmin4-desktop", "dbeaver-ce"] + config.DATABASE_PACKAGES


def test_failed_install_rolls_back_sources(config, store, fake_key, apt):
    config.sources_dir.mkdir(parents=True)
    (config.sources_dir / "existing.list").write_text("deb http://archive noble main\n")
    apt.install.return_value = CommandResult(["apt-get", "install"], 100, "", "E: broken\n")

    report = software.install_editor(config, store, apt)

    assert report.status is ProcedureStatus.ROLLED_BACK
    assert not software.VSCODE.source_path(config).exists()
    assert not software.VSCODE.keyring_path(config).exists()
    assert (config.sources_dir / "existing.list").exists()
