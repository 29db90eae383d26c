"""
Procedure orchestration: snapshot, run steps, restore on failure.

A procedure is a straight line. Its state is ``in_progress`` until it reaches
``terminal``; the only branch is failure, which restores the snapshot taken for
the run before terminating. A failed restore is reported, never retried. Every
terminal path that published a snapshot rotates the store.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from xubuntu_toolkit.config import Config
from xubuntu_toolkit.errors import SnapshotError, ToolkitError
from xubuntu_toolkit.snapshot import Snapshot, SnapshotStore
from xubuntu_toolkit.ui import (
    print_error,
    print_header,
    print_status_report,
    print_step,
    print_success,
    print_warning,
)

logger = logging.getLogger(__name__)

Step = Tuple[str, Callable[[], None]]


class ProcedureState(str, Enum):
    IN_PROGRESS = "in_progress"
    TERMINAL = "terminal"


class ProcedureStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"


@dataclass
class StepOutcome:
    description: str
    status: str = "pending"
    message: str = ""


@dataclass
class ProcedureReport:
    name: str
    state: ProcedureState = ProcedureState.IN_PROGRESS
    status: Optional[ProcedureStatus] = None
    error: Optional[BaseException] = None
    snapshot: Optional[Snapshot] = None
    restored_from: Optional[Snapshot] = None
    steps: List[StepOutcome] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is ProcedureStatus.SUCCEEDED


def _rollback_target(store: SnapshotStore, report: ProcedureReport) -> Optional[Snapshot]:
    if report.snapshot is not None and store.verify(report.snapshot):
        return report.snapshot
    fallback = store.latest_valid()
    if fallback is not None:
        logger.critical(
            f"{report.name}: snapshot "
            f"{report.snapshot.snapshot_id if report.snapshot else '(none)'} "
            f"failed verification; falling back to older snapshot {fallback.snapshot_id} "
            f"covering {', '.join(fallback.sources) or 'no paths'}"
        )
        print_error(
            f"This run's snapshot is invalid. Restoring older snapshot {fallback.snapshot_id}."
        )
    return fallback


def _rollback(store: SnapshotStore, report: ProcedureReport) -> None:
    print_warning("Rolling back to the snapshot taken before this run...")
    try:
        snapshot = _rollback_target(store, report)
        if snapshot is None:
            raise SnapshotError("No valid snapshot available for rollback")
        store.restore(snapshot)
    except SnapshotError as e:
        logger.critical(f"Rollback failed: {e}. Manual intervention required.")
        print_error(f"Rollback failed: {e}. Manual intervention required.")
        report.status = ProcedureStatus.ROLLBACK_FAILED
        return

    report.restored_from = snapshot
    report.status = ProcedureStatus.ROLLED_BACK
    logger.warning(f"{report.name}: rolled back to snapshot {snapshot.snapshot_id}")
    print_warning(f"Restored snapshot {snapshot.snapshot_id}. Reboot if the desktop was changed.")


def run_procedure(
    name: str,
    config: Config,
    store: SnapshotStore,
    paths: Sequence[str],
    steps: Iterable[Step],
) -> ProcedureReport:
    """
    Snapshot ``paths``, run ``steps`` in order and restore on the first failure.

    Args:
        name: Human readable procedure name
        config: Toolkit configuration
        store: Snapshot store used for backup and rollback
        paths: Paths to capture before anything is mutated
        steps: (description, callable) pairs; a callable signals failure by raising

    Returns:
        ProcedureReport in the terminal state
    """
    steps = list(steps)
    report = ProcedureReport(name, steps=[StepOutcome(d) for d, _ in steps])
    start = time.time()
    print_header(name)
    logger.info(f"--- {name} ---")

    try:
        report.snapshot = store.create_snapshot(paths)
        print_success(f"Snapshot {report.snapshot.snapshot_id} saved to {report.snapshot.path}")
    except SnapshotError as e:
        report.error = e
        report.status = ProcedureStatus.FAILED
        logger.error(f"{name}: snapshot failed, nothing was changed: {e}")
        return _finish(report, start)

    current: Optional[StepOutcome] = None
    try:
        for outcome, (description, action) in zip(report.steps, steps):
            current = outcome
            outcome.status = "in_progress"
            print_step(description)
            logger.info(f"Step: {description}")
            action()
            outcome.status = "success"
        current = None
    except ToolkitError as e:
        _mark_failed(report, current, e)
        logger.error(f"{name}: {current.description if current else 'step'} failed: {e}")
        _rollback(store, report)
        _rotate(store, config)
        return _finish(report, start)
    except Exception as e:
        _mark_failed(report, current, e)
        logger.exception(f"{name}: unexpected error")
        _rollback(store, report)
        _rotate(store, config)
        _finish(report, start)
        raise

    _rotate(store, config)
    report.status = ProcedureStatus.SUCCEEDED
    return _finish(report, start)


def _rotate(store: SnapshotStore, config: Config) -> None:
    """Trim the store to its bound; only the oldest snapshots are removed."""
    try:
        removed = store.rotate(config.MAX_SNAPSHOTS)
    except SnapshotError as e:
        logger.warning(f"Snapshot rotation failed: {e}")
        return
    if removed:
        logger.info(f"Rotated {len(removed)} old snapshot(s)")


def _mark_failed(
    report: ProcedureReport, outcome: Optional[StepOutcome], error: BaseException
) -> None:
    report.error = error
    if outcome is not None:
        outcome.status = "failed"
        outcome.message = str(error)
    for later in report.steps:
        if later.status == "pending":
            later.status = "skipped"


def _finish(report: ProcedureReport, start: float) -> ProcedureReport:
    report.state = ProcedureState.TERMINAL
    report.elapsed = time.time() - start
    print_status_report(
        f"{report.name} Status Report",
        [(s.description, s.status, s.message) for s in report.steps],
    )
    summary = f"{report.name}: {report.status.value.replace('_', ' ')} in {report.elapsed:.1f}s"
    if report.succeeded:
        logger.info(summary)
        print_success(summary)
    else:
        logger.error(summary)
        print_error(summary)
    return report
