"""
Swap management: status, clearing, swapfile resizing and swappiness tuning.
"""

import logging
import math
import re
from pathlib import Path
from typing import List, Optional

import psutil

from xubuntu_toolkit.acquire import AcquisitionRequest, Strategy, acquire_or_raise
from xubuntu_toolkit.commands import run_command
from xubuntu_toolkit.config import Config
from xubuntu_toolkit.errors import MutationFailed, ValidationError
from xubuntu_toolkit.preflight import check_disk_space, check_root
from xubuntu_toolkit.procedure import ProcedureReport, Step, run_procedure
from xubuntu_toolkit.snapshot import SnapshotStore
from xubuntu_toolkit.ui import (
    confirm,
    console,
    print_section,
    print_success,
    print_table,
    print_warning,
)

logger = logging.getLogger(__name__)

SIZE_PATTERN = re.compile(r"^([0-9]+)([GgMm]?)$")


def _format_size(bytes_val: float) -> str:
    """Convert a byte count into a human-readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if bytes_val < 1024:
            return f"{bytes_val:.1f} {unit}"
        bytes_val /= 1024
    return f"{bytes_val:.1f} PB"


def read_swappiness(config: Config) -> Optional[int]:
    try:
        return int(config.SWAPPINESS_PATH.read_text().strip())
    except (OSError, ValueError):
        return None


def swap_active() -> bool:
    result = run_command(["swapon", "--show", "--noheadings"])
    return result.ok and bool(str(result.stdout).strip())


def show_status(config: Config) -> None:
    """Display active swap devices, memory usage and swappiness."""
    print_section("Swap Status")
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    print_table(
        "Memory Usage",
        ["", "Total", "Used", "Free", "Percent"],
        [
            ["Memory", _format_size(mem.total), _format_size(mem.used),
             _format_size(mem.available), f"{mem.percent:.1f}%"],
            ["Swap", _format_size(swap.total), _format_size(swap.used),
             _format_size(swap.free), f"{swap.percent:.1f}%"],
        ],
    )

    devices = run_command(["swapon", "--show=NAME,SIZE,USED,PRIO,TYPE"])
    if devices.ok and str(devices.stdout).strip():
        console.print(str(devices.stdout).rstrip())
    else:
        print_warning("No swap is active.")

    swappiness = read_swappiness(config)
    console.print(f"Swappiness: [bold]{swappiness if swappiness is not None else 'N/A'}[/]")
    if config.SWAPFILE_PATH.is_file():
        size = config.SWAPFILE_PATH.stat().st_size
        console.print(f"Swap file: {config.SWAPFILE_PATH} ({_format_size(size)})")


def clear_swap(config: Config) -> bool:
    """Cycle all swap off and on again to flush it back into RAM."""
    check_root()
    if not swap_active():
        print_warning("No active swap to clear.")
        return False

    print_warning("All swap will be disabled temporarily. Make sure enough RAM is free.")
    if not confirm("Continue clearing swap?", config.ASSUME_YES):
        logger.info("Swap clear cancelled by user.")
        return False

    logger.info("Disabling swap...")
    run_command(["swapoff", "-a"]).require("swapoff -a")
    logger.info("Re-enabling swap...")
    run_command(["swapon", "-a"]).require("swapon -a")
    print_success("Swap cleared and re-enabled.")
    return True


def parse_swap_size(text: str, config: Config) -> int:
    """
    Parse a size such as ``4G``, ``512M`` or ``8`` (gigabytes).

    Returns:
        The size in MiB
    """
    match = SIZE_PATTERN.match(text.strip())
    if not match:
        raise ValidationError(f"Invalid size '{text}'. Use e.g. 4G or 2048M.")
    number, unit = int(match.group(1)), match.group(2).lower()
    size_mb = number if unit == "m" else number * 1024

    size_gb = size_mb // 1024
    if size_gb < config.MIN_SWAP_GB:
        raise ValidationError(f"Minimum swap size is {config.MIN_SWAP_GB}G")
    if size_mb > config.MAX_SWAP_GB * 1024:
        raise ValidationError(f"Maximum swap size is {config.MAX_SWAP_GB}G")
    return size_mb


def fstab_entry(swapfile: Path) -> str:
    return f"{swapfile} none swap sw 0 0"


def update_fstab(fstab: Path, swapfile: Path) -> bool:
    """
    Point the fstab swap entry for ``swapfile`` at the standard options.

    Returns:
        True if an existing entry was replaced, False if one was appended
    """
    try:
        lines = fstab.read_text().splitlines()
    except FileNotFoundError:
        lines = []

    entry = fstab_entry(swapfile)
    replaced = False
    updated: List[str] = []
    for line in lines:
        fields = line.split()
        if fields and not line.lstrip().startswith("#") and fields[0] == str(swapfile):
            if not replaced:
                updated.append(entry)
            replaced = True
        else:
            updated.append(line)
    if not replaced:
        updated.append(entry)

    fstab.write_text("\n".join(updated) + "\n")
    logger.info(f"Swap entry {'updated in' if replaced else 'added to'} {fstab}")
    return replaced


def allocation_strategies(swapfile: Path, size_mb: int) -> List[Strategy]:
    return [
        Strategy(
            "fallocate",
            lambda: run_command(["fallocate", "-l", f"{size_mb}M", str(swapfile)]).ok,
        ),
        Strategy(
            "dd",
            lambda: run_command(
                [
                    "dd",
                    "if=/dev/zero",
                    f"of={swapfile}",
                    "bs=1M",
                    f"count={size_mb}",
                    "status=none",
                ]
            ).ok,
        ),
    ]


class SwapResize:
    """Steps that replace the swapfile with one of a new size."""

    def __init__(self, config: Config, size_mb: int):
        self.config = config
        self.size_mb = size_mb
        self.swapfile = config.SWAPFILE_PATH

    def disable_swap(self) -> None:
        result = run_command(["swapoff", "-a"])
        if not result.ok:
            logger.warning(f"swapoff -a exited with {result.returncode}; continuing.")

    def remove_old(self) -> None:
        if self.swapfile.exists():
            self.swapfile.unlink()
            logger.info(f"Removed {self.swapfile}")

    def allocate(self) -> None:
        acquire_or_raise(
            AcquisitionRequest(
                str(self.swapfile),
                tuple(allocation_strategies(self.swapfile, self.size_mb)),
            )
        )

    def enable(self) -> None:
        self.swapfile.chmod(0o600)
        run_command(["mkswap", str(self.swapfile)]).require("mkswap")
        run_command(["swapon", str(self.swapfile)]).require("swapon")

    def persist(self) -> None:
        update_fstab(self.config.FSTAB_PATH, self.swapfile)

    def steps(self) -> List[Step]:
        return [
            ("Disable active swap", self.disable_swap),
            ("Remove old swap file", self.remove_old),
            (f"Allocate {self.size_mb}M swap file", self.allocate),
            ("Format and enable swap file", self.enable),
            ("Update /etc/fstab", self.persist),
        ]


def resize_swap(
    config: Config, store: SnapshotStore, size_text: str
) -> Optional[ProcedureReport]:
    check_root()
    size_mb = parse_swap_size(size_text, config)
    check_disk_space(config.SWAPFILE_PATH.parent, math.ceil(size_mb / 1024))

    print_warning("The current swap will be removed and a new one created.")
    if not confirm(f"Resize swap to {size_text}?", config.ASSUME_YES):
        logger.info("Swap resize cancelled by user.")
        return None

    return run_procedure(
        "Swap Resize",
        config,
        store,
        [str(config.FSTAB_PATH)],
        SwapResize(config, size_mb).steps(),
    )


class SwappinessChange:
    """Steps that persist and apply a new swappiness value."""

    def __init__(self, config: Config, value: int):
        self.config = config
        self.value = value

    def persist(self) -> None:
        sysctl_file = self.config.SYSCTL_SWAPPINESS_FILE
        sysctl_file.parent.mkdir(parents=True, exist_ok=True)
        sysctl_file.write_text(f"vm.swappiness = {self.value}\n")
        logger.info(f"Swappiness persisted in {sysctl_file}")

    def apply(self) -> None:
        try:
            self.config.SWAPPINESS_PATH.write_text(f"{self.value}\n")
        except OSError as e:
            raise MutationFailed(
                f"Failed to write {self.config.SWAPPINESS_PATH}: {e}"
            ) from e
        logger.info(f"Swappiness set to {self.value}")

    def steps(self) -> List[Step]:
        return [
            (f"Write {self.config.SYSCTL_SWAPPINESS_FILE}", self.persist),
            (f"Apply swappiness {self.value}", self.apply),
        ]


def set_swappiness(
    config: Config, store: SnapshotStore, value: int, persist: bool = False
) -> Optional[ProcedureReport]:
    """
    Change vm.swappiness, optionally persisting it under /etc/sysctl.d.

    The persisted variant runs as a procedure so the sysctl file is snapshotted
    first; the runtime-only value lives in /proc and has nothing to snapshot.
    """
    check_root()
    if not 0 <= value <= 100:
        raise ValidationError("Swappiness must be a number between 0 and 100.")
    if not confirm(f"Set swappiness to {value}?", config.ASSUME_YES, default=True):
        logger.info("Swappiness unchanged.")
        return None

    change = SwappinessChange(config, value)
    if persist:
        report = run_procedure(
            "Swappiness",
            config,
            store,
            [str(config.SYSCTL_SWAPPINESS_FILE)],
            change.steps(),
        )
        if report.succeeded:
            print_success(f"Swappiness changed to {value}")
        return report

    change.apply()
    print_warning(
        f"Not persistent across reboots; rerun with --persist to write "
        f"{config.SYSCTL_SWAPPINESS_FILE}"
    )
    print_success(f"Swappiness changed to {value}")
    return None
