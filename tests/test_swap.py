from unittest.mock import MagicMock

import pytest

from xubuntu_toolkit import swap
from xubuntu_toolkit.commands import CommandResult
from xubuntu_toolkit.errors import ValidationError
from xubuntu_toolkit.procedure import ProcedureStatus


@pytest.fixture(autouse=True)
def as_root(monkeypatch):
    monkeypatch.setattr(swap, "check_root", MagicMock())
    monkeypatch.setattr(swap, "check_disk_space", MagicMock())


@pytest.mark.parametrize(
    "text, expected_mb",
    [("4G", 4096), ("4g", 4096), ("8", 8192), ("2048M", 2048), ("32G", 32768), ("1G", 1024)],
)
def test_parse_swap_size(config, text, expected_mb):
    assert swap.parse_swap_size(text, config) == expected_mb


@pytest.mark.parametrize("text", ["512M", "0", "33G", "4T", "abc", "", "4.5G"])
def test_parse_swap_size_rejects(config, text):
    with pytest.raises(ValidationError):
        swap.parse_swap_size(text, config)


def test_update_fstab_appends_entry(tmp_path):
    fstab = tmp_path / "fstab"
    fstab.write_text("UUID=abc / ext4 defaults 0 1\n")

    replaced = swap.update_fstab(fstab, tmp_path / "swapfile")

    assert not replaced
    assert fstab.read_text().splitlines() == [
        "UUID=abc / ext4 defaults 0 1",
        f"{tmp_path / 'swapfile'} none swap sw 0 0",
    ]


def test_update_fstab_replaces_existing_entry(tmp_path):
    swapfile = tmp_path / "swapfile"
    fstab = tmp_path / "fstab"
    fstab.write_text(
        f"# {swapfile} old comment\n"
        "UUID=abc / ext4 defaults 0 1\n"
        f"{swapfile} none swap defaults 0 0\n"
    )

    replaced = swap.update_fstab(fstab, swapfile)

    assert replaced
    lines = fstab.read_text().splitlines()
    assert lines[0].startswith("#")
    assert lines[2] == f"{swapfile} none swap sw 0 0"
    assert len(lines) == 3


@pytest.fixture
def commands_run(monkeypatch):
    """Fake command runner; fallocate fails so dd has to create the file."""
    calls = []

    def fake_run(command, **kwargs):
        calls.append(command[0])
        if command[0] == "fallocate":
            return CommandResult(list(command), 1, "", "fallocate: not supported")
        if command[0] == "dd":
            target = next(arg[3:] for arg in command if arg.startswith("of="))
            with open(target, "wb") as f:
                f.write(b"\0" * 16)
        return CommandResult(list(command), 0, "", "")

    monkeypatch.setattr(swap, "run_command", fake_run)
    return calls


def test_resize_swap_falls_back_to_dd(config, store, commands_run):
    config.FSTAB_PATH.parent.mkdir(parents=True, exist_ok=True)
    config.FSTAB_PATH.write_text("UUID=abc / ext4 defaults 0 1\n")
    config.SWAPFILE_PATH.write_bytes(b"old")

    report = swap.resize_swap(config, store, "2G")

    assert report.status is ProcedureStatus.SUCCEEDED
    assert commands_run == ["swapoff", "fallocate", "dd", "mkswap", "swapon"]
    assert config.SWAPFILE_PATH.stat().st_mode & 0o777 == 0o600
    assert f"{config.SWAPFILE_PATH} none swap sw 0 0" in config.FSTAB_PATH.read_text()


def test_resize_swap_restores_fstab_when_allocation_fails(config, store, monkeypatch):
    monkeypatch.setattr(
        swap, "run_command", MagicMock(return_value=CommandResult(["x"], 1, "", ""))
    )
    config.FSTAB_PATH.parent.mkdir(parents=True, exist_ok=True)
    config.FSTAB_PATH.write_text("original\n")

    report = swap.resize_swap(config, store, "2G")

    assert report.status is ProcedureStatus.ROLLED_BACK
    assert config.FSTAB_PATH.read_text() == "original\n"


def test_set_swappiness_persists(config, store):
    config.SWAPPINESS_PATH.parent.mkdir(parents=True)
    config.SWAPPINESS_PATH.write_text("60\n")

    report = swap.set_swappiness(config, store, 10, persist=True)

    assert report.status is ProcedureStatus.SUCCEEDED
    assert report.snapshot is not None
    assert swap.read_swappiness(config) == 10
    assert config.SYSCTL_SWAPPINESS_FILE.read_text() == "vm.swappiness = 10\n"


@pytest.mark.parametrize("value", [-1, 101])
def test_set_swappiness_rejects_out_of_range(config, store, value):
    with pytest.raises(ValidationError):
        swap.set_swappiness(config, store, value)


def test_clear_swap_without_active_swap_does_nothing(config, monkeypatch):
    run = MagicMock(return_value=CommandResult(["swapon"], 0, "", ""))
    monkeypatch.setattr(swap, "run_command", run)

    assert not swap.clear_swap(config)
    assert run.call_count == 1


def test_set_swappiness_runtime_only_takes_no_snapshot(config, store):
    config.SWAPPINESS_PATH.parent.mkdir(parents=True)
    config.SWAPPINESS_PATH.write_text("60\n")

    assert swap.set_swappiness(config, store, 30) is None

    assert swap.read_swappiness(config) == 30
    assert not config.SYSCTL_SWAPPINESS_FILE.exists()
    assert store.list_snapshots() == []


def test_set_swappiness_rolls_back_sysctl_file_when_apply_fails(config, store):
    config.SYSCTL_SWAPPINESS_FILE.parent.mkdir(parents=True)
    config.SYSCTL_SWAPPINESS_FILE.write_text("vm.swappiness = 60\n")

    report = swap.set_swappiness(config, store, 10, persist=True)

    assert report.status is ProcedureStatus.ROLLED_BACK
    assert config.SYSCTL_SWAPPINESS_FILE.read_text() == "vm.swappiness = 60\n"
