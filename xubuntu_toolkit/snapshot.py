"""
Snapshot/restore manager for configuration directories.

A snapshot is a timestamped directory under the backup root. Every captured
source path is stored at its location relative to ``/`` (``/etc/apt`` lands in
``<snapshot>/etc/apt``) next to a ``manifest.json`` recording what was captured
and what was missing at the time. Snapshots are built in a hidden staging
directory and only renamed into place once every copy has succeeded, so a
half-written snapshot is never published. The ``LATEST`` pointer file in the
backup root records the newest published snapshot.
"""

import json
import logging
import os
import platform
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from xubuntu_toolkit.errors import RestoreFailed, SnapshotError, SnapshotIncomplete

logger = logging.getLogger(__name__)

SNAPSHOT_ID_FORMAT = "%Y%m%d-%H%M%S-%f"
MANIFEST_NAME = "manifest.json"
POINTER_NAME = "LATEST"
STAGING_PREFIX = ".staging-"

PathLike = Union[str, Path]


def _absolute(path: PathLike) -> Path:
    return Path(os.path.abspath(str(path)))


def _relative_to_root(path: PathLike) -> Path:
    absolute = _absolute(path)
    return absolute.relative_to(absolute.anchor)


def _lexists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def _copy_path(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir() and not source.is_symlink():
        shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)
    else:
        shutil.copy2(source, dest, follow_symlinks=False)


def _remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


@dataclass
class Snapshot:
    """A published point-in-time copy of a set of paths."""

    snapshot_id: str
    path: Path
    created: datetime
    sources: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_NAME

    def stored_path(self, source: PathLike) -> Path:
        """Where ``source`` lives inside this snapshot."""
        return self.path / _relative_to_root(source)


class SnapshotStore:
    """Timestamped snapshots under a backup root, newest first."""

    def __init__(
        self,
        root: PathLike,
        max_count: int = 5,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if max_count < 1:
            raise ValueError("max_count must be at least 1")
        self.root = Path(root)
        self.max_count = max_count
        self.clock = clock

    @property
    def pointer_path(self) -> Path:
        return self.root / POINTER_NAME

    # --- Creation ---
    def create_snapshot(self, paths: Iterable[PathLike]) -> Snapshot:
        """
        Copy each existing path into a new snapshot.

        Missing paths are skipped with a warning. Any copy error discards the
        staged copy and raises SnapshotError; nothing is published.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        created = self.clock()
        snapshot_id = created.strftime(SNAPSHOT_ID_FORMAT)
        final_path = self.root / snapshot_id
        if _lexists(final_path):
            raise SnapshotError(f"Snapshot {snapshot_id} already exists")

        staging = self.root / f"{STAGING_PREFIX}{snapshot_id}"
        sources: List[str] = []
        skipped: List[str] = []
        current: Optional[Path] = None
        try:
            staging.mkdir()
            for raw in paths:
                current = _absolute(raw)
                if not _lexists(current):
                    logger.warning(f"{current} not found; skipping.")
                    skipped.append(str(current))
                    continue
                _copy_path(current, staging / _relative_to_root(current))
                sources.append(str(current))
            current = None

            manifest = {
                "id": snapshot_id,
                "created": created.isoformat(),
                "host": platform.node(),
                "sources": sources,
                "skipped": skipped,
            }
            (staging / MANIFEST_NAME).write_text(json.dumps(manifest, indent=2) + "\n")
            staging.rename(final_path)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            what = f"copy {current}" if current else f"publish snapshot {snapshot_id}"
            logger.error(f"Failed to {what}: {e}")
            raise SnapshotError(f"Failed to {what}: {e}") from e

        try:
            self._write_pointer(final_path)
        except OSError as e:
            raise SnapshotError(f"Failed to update {self.pointer_path}: {e}") from e
        logger.info(
            f"Snapshot {snapshot_id} created with {len(sources)} path(s) at {final_path}"
        )
        return Snapshot(snapshot_id, final_path, created, sources, skipped)

    # --- Lookup ---
    def _load(self, path: Path) -> Optional[Snapshot]:
        try:
            created = datetime.strptime(path.name, SNAPSHOT_ID_FORMAT)
        except ValueError:
            return None

        snapshot = Snapshot(path.name, path, created)
        try:
            manifest = json.loads((path / MANIFEST_NAME).read_text())
            snapshot.sources = list(manifest.get("sources", []))
            snapshot.skipped = list(manifest.get("skipped", []))
        except (OSError, ValueError) as e:
            logger.debug(f"Unreadable manifest in {path}: {e}")
        return snapshot

    def list_snapshots(self) -> List[Snapshot]:
        """All published snapshots, newest first."""
        if not self.root.is_dir():
            return []
        snapshots = []
        for entry in self.root.iterdir():
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            snapshot = self._load(entry)
            if snapshot is not None:
                snapshots.append(snapshot)
        snapshots.sort(key=lambda s: s.created, reverse=True)
        return snapshots

    def find(self, snapshot_id: str) -> Optional[Snapshot]:
        path = self.root / snapshot_id
        return self._load(path) if path.is_dir() else None

    def latest(self) -> Optional[Snapshot]:
        """The snapshot named by the pointer file, if it still exists."""
        try:
            target = Path(self.pointer_path.read_text().strip())
        except OSError:
            return None
        return self._load(target) if target.is_dir() else None

    def latest_valid(self) -> Optional[Snapshot]:
        """The newest snapshot that passes verification."""
        for snapshot in self.list_snapshots():
            if self.verify(snapshot):
                return snapshot
            logger.warning(f"Snapshot {snapshot.snapshot_id} is incomplete; skipping.")
        return None

    # --- Verification & restore ---
    def verify(
        self, snapshot: Snapshot, expected_paths: Optional[Iterable[PathLike]] = None
    ) -> bool:
        """
        A snapshot is valid iff every expected path exists inside it.

        Without ``expected_paths`` the manifest's captured sources are expected,
        and a snapshot whose manifest is missing is invalid.
        """
        if expected_paths is None:
            if not snapshot.manifest_path.is_file():
                return False
            expected = list(snapshot.sources)
        else:
            expected = list(expected_paths)

        missing = [p for p in expected if not _lexists(snapshot.stored_path(p))]
        for path in missing:
            logger.debug(f"Snapshot {snapshot.snapshot_id} is missing {path}")
        return not missing

    def restore(self, snapshot: Snapshot) -> None:
        """
        Mirror the snapshot back onto the live filesystem.

        Each captured path is replaced wholesale, so anything created since the
        snapshot is removed. Paths that did not exist at snapshot time are
        deleted again.
        """
        if not self.verify(snapshot):
            raise SnapshotIncomplete(
                f"Snapshot {snapshot.snapshot_id} is incomplete; refusing to restore"
            )

        logger.info(f"Restoring snapshot {snapshot.snapshot_id}")
        for source in snapshot.sources:
            target = Path(source)
            try:
                _remove_path(target)
                _copy_path(snapshot.stored_path(source), target)
            except OSError as e:
                raise RestoreFailed(
                    f"Failed to restore {target} from {snapshot.snapshot_id}: {e}"
                ) from e
            logger.debug(f"Restored {target}")

        for source in snapshot.skipped:
            target = Path(source)
            if not _lexists(target):
                continue
            try:
                _remove_path(target)
            except OSError as e:
                raise RestoreFailed(f"Failed to remove {target}: {e}") from e
            logger.info(f"Removed {target} (absent when snapshot was taken)")

        logger.info(f"Snapshot {snapshot.snapshot_id} restored")

    # --- Retention ---
    def rotate(self, max_count: Optional[int] = None) -> List[Snapshot]:
        """Delete the oldest snapshots beyond ``max_count``; returns those removed."""
        keep = self.max_count if max_count is None else max_count
        if keep < 0:
            raise ValueError("max_count cannot be negative")

        snapshots = self.list_snapshots()
        removed = snapshots[keep:]
        for snapshot in removed:
            try:
                shutil.rmtree(snapshot.path)
            except OSError as e:
                raise SnapshotError(
                    f"Failed to delete snapshot {snapshot.snapshot_id}: {e}"
                ) from e
            logger.info(f"Rotated out snapshot {snapshot.snapshot_id}")

        if removed:
            remaining = snapshots[:keep]
            if remaining:
                self._write_pointer(remaining[0].path)
            else:
                self.pointer_path.unlink(missing_ok=True)
        return removed

    def _write_pointer(self, target: Path) -> None:
        tmp = self.pointer_path.with_name(f".{POINTER_NAME}.tmp")
        tmp.write_text(f"{target}\n")
        os.replace(tmp, self.pointer_path)
