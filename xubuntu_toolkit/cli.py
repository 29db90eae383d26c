"""
Command line entry point.

One operation is selected per invocation, either as an argument (number or
name) or from the menu shown when no argument is given:

    sudo xubuntu-toolkit desktop --yes
    sudo xubuntu-toolkit 6 --swap-size 8G
    sudo xubuntu-toolkit
"""

import logging
import signal
import sys
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional

import click
from rich.prompt import Prompt

from xubuntu_toolkit import __version__
from xubuntu_toolkit.config import Config
from xubuntu_toolkit.desktop import migrate_to_kde
from xubuntu_toolkit.errors import PreconditionFailed, ToolkitError, ValidationError
from xubuntu_toolkit.logger import LOGGER_NAME, setup_logger
from xubuntu_toolkit.preflight import check_root
from xubuntu_toolkit.procedure import ProcedureReport
from xubuntu_toolkit.repos import clean_repositories
from xubuntu_toolkit.snapshot import SnapshotStore
from xubuntu_toolkit.software import install_database_tools, install_editor
from xubuntu_toolkit.swap import (
    clear_swap,
    read_swappiness,
    resize_swap,
    set_swappiness,
    show_status,
)
from xubuntu_toolkit.ui import (
    NordColors,
    confirm,
    console,
    print_error,
    print_header,
    print_success,
    print_table,
    print_warning,
)

logger = logging.getLogger(LOGGER_NAME)


class Operation(str, Enum):
    """Operations in menu order; the menu number is the 1-based position."""

    DESKTOP = "desktop"
    EDITOR = "editor"
    DATABASE_TOOLS = "database-tools"
    SWAP_STATUS = "swap-status"
    SWAP_CLEAR = "swap-clear"
    SWAP_RESIZE = "swap-resize"
    SWAPPINESS = "swappiness"
    CLEAN_REPOS = "clean-repos"
    SNAPSHOTS = "snapshots"
    RESTORE = "restore"

    @property
    def number(self) -> int:
        return list(Operation).index(self) + 1

    @classmethod
    def parse(cls, value: str) -> "Operation":
        value = value.strip().lower()
        if value.isdigit():
            index = int(value) - 1
            members = list(cls)
            if 0 <= index < len(members):
                return members[index]
        else:
            for member in cls:
                if value in (member.value, member.name.lower()):
                    return member
        raise ValueError(f"Unknown operation: {value}")


DESCRIPTIONS: Dict[Operation, str] = {
    Operation.DESKTOP: "Switch desktop from XFCE to KDE Plasma",
    Operation.EDITOR: "Install Visual Studio Code",
    Operation.DATABASE_TOOLS: "Install database tools (pgAdmin, DBeaver, clients)",
    Operation.SWAP_STATUS: "Show swap status",
    Operation.SWAP_CLEAR: "Clear swap",
    Operation.SWAP_RESIZE: "Resize swap file",
    Operation.SWAPPINESS: "Adjust swappiness",
    Operation.CLEAN_REPOS: "Clean up repositories and repair packages",
    Operation.SNAPSHOTS: "List configuration snapshots",
    Operation.RESTORE: "Restore the latest valid snapshot",
}


# ----------------------------------------------------------------
# Signal Handling
# ----------------------------------------------------------------
def signal_handler(signum, frame) -> None:
    sig_name = signal.Signals(signum).name
    logger.error(f"Interrupted by {sig_name}.")
    print_warning(f"Interrupted by {sig_name}.")
    sys.exit(128 + signum)


# ----------------------------------------------------------------
# Operation Handlers
# ----------------------------------------------------------------
class Session:
    """Everything an operation handler needs for one invocation."""

    def __init__(
        self,
        config: Config,
        store: SnapshotStore,
        swap_size: Optional[str] = None,
        swappiness: Optional[int] = None,
        persist: bool = False,
    ):
        self.config = config
        self.store = store
        self.swap_size = swap_size
        self.swappiness = swappiness
        self.persist = persist


def _report_ok(report: Optional[ProcedureReport]) -> bool:
    return report is None or report.succeeded


def do_desktop(session: Session) -> bool:
    return _report_ok(migrate_to_kde(session.config, session.store))


def do_editor(session: Session) -> bool:
    return _report_ok(install_editor(session.config, session.store))


def do_database_tools(session: Session) -> bool:
    return _report_ok(install_database_tools(session.config, session.store))


def do_swap_status(session: Session) -> bool:
    show_status(session.config)
    return True


def do_swap_clear(session: Session) -> bool:
    clear_swap(session.config)
    return True


def do_swap_resize(session: Session) -> bool:
    size = session.swap_size
    if size is None:
        if session.config.ASSUME_YES:
            raise ValidationError("--swap-size is required when running non-interactively")
        console.print("Suggested sizes:")
        console.print("  • Up to 2GB RAM: 2x RAM")
        console.print("  • 2-8GB RAM: equal to RAM")
        console.print("  • More than 8GB RAM: 4-8GB")
        size = Prompt.ask("New swap size (e.g. 4G, 2048M)")
    return _report_ok(resize_swap(session.config, session.store, size))


def do_swappiness(session: Session) -> bool:
    value = session.swappiness
    if value is None:
        if session.config.ASSUME_YES:
            raise ValidationError("--swappiness is required when running non-interactively")
        console.print(f"Current swappiness: {read_swappiness(session.config)}")
        console.print("  0-10: servers | 30-50: desktops | 60-100: aggressive swapping")
        answer = Prompt.ask("New swappiness (0-100), Enter to keep", default="")
        if not answer.strip():
            logger.info("Swappiness unchanged.")
            return True
        try:
            value = int(answer)
        except ValueError as e:
            raise ValidationError("Swappiness must be a number between 0 and 100.") from e
    return _report_ok(set_swappiness(session.config, session.store, value, session.persist))


def do_clean_repos(session: Session) -> bool:
    return _report_ok(clean_repositories(session.config, session.store))


def do_snapshots(session: Session) -> bool:
    snapshots = session.store.list_snapshots()
    if not snapshots:
        print_warning(f"No snapshots in {session.store.root}")
        return True
    latest = session.store.latest()
    rows = []
    for snap in snapshots:
        valid = session.store.verify(snap)
        status = f"[{NordColors.GREEN}]valid[/]" if valid else f"[{NordColors.RED}]incomplete[/]"
        if latest and latest.snapshot_id == snap.snapshot_id:
            status += " (latest)"
        rows.append(
            [
                snap.snapshot_id,
                snap.created.strftime("%Y-%m-%d %H:%M:%S"),
                str(len(snap.sources)),
                status,
            ]
        )
    print_table("Snapshots", ["ID", "Created", "Paths", "Status"], rows)
    return True


def do_restore(session: Session) -> bool:
    check_root()
    snapshot = session.store.latest_valid()
    if snapshot is None:
        print_error(f"No valid snapshot in {session.store.root}")
        return False
    console.print(f"Snapshot {snapshot.snapshot_id} covers:")
    for source in snapshot.sources:
        console.print(f"  • {source}")
    if not confirm("Overwrite these paths with the snapshot?", session.config.ASSUME_YES):
        logger.info("Restore cancelled by user.")
        return True
    session.store.restore(snapshot)
    print_success(f"Snapshot {snapshot.snapshot_id} restored.")
    return True


HANDLERS: Dict[Operation, Callable[[Session], bool]] = {
    Operation.DESKTOP: do_desktop,
    Operation.EDITOR: do_editor,
    Operation.DATABASE_TOOLS: do_database_tools,
    Operation.SWAP_STATUS: do_swap_status,
    Operation.SWAP_CLEAR: do_swap_clear,
    Operation.SWAP_RESIZE: do_swap_resize,
    Operation.SWAPPINESS: do_swappiness,
    Operation.CLEAN_REPOS: do_clean_repos,
    Operation.SNAPSHOTS: do_snapshots,
    Operation.RESTORE: do_restore,
}


def prompt_operation() -> Operation:
    """Show the menu once and ask for a single operation."""
    print_header("Xubuntu Toolkit")
    print_table(
        "Operations",
        ["Option", "Name", "Description"],
        [[str(op.number), op.value, DESCRIPTIONS[op]] for op in Operation],
    )
    choices = [str(op.number) for op in Operation] + [op.value for op in Operation]
    answer = Prompt.ask("Choose an operation", choices=choices, show_choices=False)
    return Operation.parse(answer)


def _parse_operation(ctx, param, value: Optional[str]) -> Optional[Operation]:
    if value is None:
        return None
    try:
        return Operation.parse(value)
    except ValueError:
        valid = ", ".join(f"{op.number}/{op.value}" for op in Operation)
        raise click.BadParameter(f"'{value}'. Choose one of: {valid}")


# ----------------------------------------------------------------
# Main CLI Entry Point with Click
# ----------------------------------------------------------------
@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("operation", required=False, callback=_parse_operation)
@click.option("-y", "--yes", "assume_yes", is_flag=True, help="Run without prompts")
@click.option(
    "--backup-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding configuration snapshots",
)
@click.option(
    "--max-snapshots",
    type=click.IntRange(min=1),
    default=None,
    help="Number of snapshots to retain",
)
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--swap-size", default=None, help="New swap size for swap-resize (e.g. 4G)")
@click.option(
    "--swappiness", type=click.IntRange(0, 100), default=None, help="New swappiness value"
)
@click.option("--persist", is_flag=True, help="Persist swappiness in /etc/sysctl.d")
@click.option(
    "--skip-log-check",
    is_flag=True,
    help="Do not roll back the desktop migration on journal or apt log errors",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="xubuntu-toolkit")
def main(
    operation: Optional[Operation],
    assume_yes: bool,
    backup_root: Optional[Path],
    max_snapshots: Optional[int],
    log_file: Optional[Path],
    swap_size: Optional[str],
    swappiness: Optional[int],
    persist: bool,
    skip_log_check: bool,
    debug: bool,
) -> None:
    """Xubuntu 24.04 desktop, software, swap and repository toolkit."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, signal_handler)

    overrides = {"ASSUME_YES": assume_yes, "CHECK_SYSTEM_LOGS": not skip_log_check}
    if backup_root is not None:
        overrides["BACKUP_ROOT"] = backup_root
    if max_snapshots is not None:
        overrides["MAX_SNAPSHOTS"] = max_snapshots
    if log_file is not None:
        overrides["LOG_FILE"] = log_file
    config = Config(**overrides)
    setup_logger(config.LOG_FILE, debug)

    if operation is None:
        if assume_yes:
            raise click.UsageError("OPERATION is required with --yes")
        operation = prompt_operation()

    store = SnapshotStore(config.BACKUP_ROOT, config.MAX_SNAPSHOTS)
    session = Session(config, store, swap_size, swappiness, persist)
    logger.info(f"Operation: {operation.value}")

    try:
        ok = HANDLERS[operation](session)
    except PreconditionFailed as e:
        logger.error(str(e))
        print_error(str(e))
        sys.exit(2)
    except ToolkitError as e:
        logger.error(str(e))
        print_error(str(e))
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
