import shutil

import pytest

from xubuntu_toolkit.errors import SnapshotError, SnapshotIncomplete
from xubuntu_toolkit.snapshot import MANIFEST_NAME, SnapshotStore


@pytest.fixture
def tree(live):
    """A small configuration tree: a directory, a file and a missing path."""
    conf_dir = live / "etc" / "app"
    conf_dir.mkdir(parents=True)
    (conf_dir / "main.conf").write_text("original\n")
    (conf_dir / "sub").mkdir()
    (conf_dir / "sub" / "nested.conf").write_text("nested\n")
    env = live / "etc" / "environment"
    env.write_text("PATH=/usr/bin\n")
    return {"dir": conf_dir, "file": env, "missing": live / "etc" / "nope"}


def test_create_copies_existing_paths_and_skips_missing(store, tree):
    snapshot = store.create_snapshot([tree["dir"], tree["file"], tree["missing"]])

    assert (snapshot.stored_path(tree["dir"]) / "main.conf").read_text() == "original\n"
    assert (snapshot.stored_path(tree["dir"]) / "sub" / "nested.conf").exists()
    assert snapshot.stored_path(tree["file"]).read_text() == "PATH=/usr/bin\n"
    assert snapshot.sources == [str(tree["dir"]), str(tree["file"])]
    assert snapshot.skipped == [str(tree["missing"])]
    assert (snapshot.path / MANIFEST_NAME).is_file()
    assert store.latest().snapshot_id == snapshot.snapshot_id
    assert store.verify(snapshot)


def test_same_base_name_in_different_directories_does_not_collide(store, live):
    etc_apt = live / "etc" / "apt"
    log_apt = live / "var" / "log" / "apt"
    etc_apt.mkdir(parents=True)
    log_apt.mkdir(parents=True)
    (etc_apt / "sources.list").write_text("deb noble\n")
    (log_apt / "history.log").write_text("Start-Date\n")

    snapshot = store.create_snapshot([etc_apt, log_apt])

    assert (snapshot.stored_path(etc_apt) / "sources.list").exists()
    assert (snapshot.stored_path(log_apt) / "history.log").exists()


def test_verify_invalid_when_expected_path_absent(store, live):
    a = live / "A"
    b = live / "B"
    a.write_text("a")

    snapshot = store.create_snapshot([a])

    assert store.verify(snapshot, [a])
    assert not store.verify(snapshot, [a, b])


def test_verify_invalid_when_captured_copy_removed(store, tree):
    snapshot = store.create_snapshot([tree["dir"], tree["file"]])

    snapshot.stored_path(tree["file"]).unlink()

    assert not store.verify(snapshot)


def test_snapshot_without_manifest_is_invalid(store, tree):
    snapshot = store.create_snapshot([tree["file"]])

    (snapshot.path / MANIFEST_NAME).unlink()

    assert not store.verify(store.find(snapshot.snapshot_id))


def test_restore_mirrors_snapshot_exactly(store, tree):
    snapshot = store.create_snapshot([tree["dir"], tree["file"], tree["missing"]])

    (tree["dir"] / "main.conf").write_text("changed\n")
    (tree["dir"] / "added.conf").write_text("new\n")
    shutil.rmtree(tree["dir"] / "sub")
    tree["file"].unlink()
    tree["missing"].mkdir()

    store.restore(snapshot)

    assert (tree["dir"] / "main.conf").read_text() == "original\n"
    assert not (tree["dir"] / "added.conf").exists()
    assert (tree["dir"] / "sub" / "nested.conf").read_text() == "nested\n"
    assert tree["file"].read_text() == "PATH=/usr/bin\n"
    assert not tree["missing"].exists()


def test_restore_rejects_incomplete_snapshot_without_touching_live(store, tree):
    snapshot = store.create_snapshot([tree["dir"], tree["file"]])
    shutil.rmtree(snapshot.stored_path(tree["dir"]))
    (tree["dir"] / "main.conf").write_text("changed\n")
    tree["file"].write_text("changed\n")

    with pytest.raises(SnapshotIncomplete):
        store.restore(snapshot)

    assert (tree["dir"] / "main.conf").read_text() == "changed\n"
    assert tree["file"].read_text() == "changed\n"


def test_copy_failure_publishes_nothing(store, tree, monkeypatch):
    first = store.create_snapshot([tree["dir"]])

    def broken_copy(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(shutil, "copy2", broken_copy)

    with pytest.raises(SnapshotError):
        store.create_snapshot([tree["dir"], tree["file"]])

    assert [s.snapshot_id for s in store.list_snapshots()] == [first.snapshot_id]
    assert not [p for p in store.root.iterdir() if p.name.startswith(".staging-")]
    assert store.latest().snapshot_id == first.snapshot_id


def test_rotate_four_snapshots_keeps_three(store, tree):
    created = [store.create_snapshot([tree["file"]]) for _ in range(4)]

    removed = store.rotate(3)

    assert [s.snapshot_id for s in removed] == [created[0].snapshot_id]
    remaining = [s.snapshot_id for s in store.list_snapshots()]
    assert remaining == [s.snapshot_id for s in reversed(created[1:])]
    assert not created[0].path.exists()


@pytest.mark.parametrize("total", [0, 1, 3, 6])
@pytest.mark.parametrize("keep", [1, 2, 4])
def test_rotate_keeps_most_recent(tmp_path, clock, tree, total, keep):
    store = SnapshotStore(tmp_path / "rotation", max_count=keep, clock=clock)
    created = [store.create_snapshot([tree["file"]]) for _ in range(total)]

    store.rotate()

    remaining = [s.snapshot_id for s in store.list_snapshots()]
    expected = [s.snapshot_id for s in reversed(created)][: min(keep, total)]
    assert remaining == expected
    if expected:
        assert store.latest().snapshot_id == expected[0]


def test_latest_valid_skips_incomplete_snapshots(store, tree):
    older = store.create_snapshot([tree["file"]])
    newer = store.create_snapshot([tree["file"]])
    (newer.path / MANIFEST_NAME).unlink()

    assert store.latest_valid().snapshot_id == older.snapshot_id


def test_list_ignores_staging_and_foreign_directories(store, tree):
    snapshot = store.create_snapshot([tree["file"]])
    (store.root / ".staging-20260101-000000-000000").mkdir()
    (store.root / "not-a-snapshot").mkdir()

    assert [s.snapshot_id for s in store.list_snapshots()] == [snapshot.snapshot_id]


def test_max_count_must_be_positive(tmp_path):
    with pytest.raises(ValueError):
        SnapshotStore(tmp_path, max_count=0)
