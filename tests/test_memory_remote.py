import threading
from pathlib import Path

import pytest

from ref_store.errors import VcsError
from ref_store.hosted import NamedHostedRepository
from ref_store.hosted_storage import HostedRepositoryStorage
from ref_store.impl.memory import MemoryRemote, create_memory_vcs
from ref_store.impl.objects import Commit
from ref_store.retry import RetryPolicy
from ref_store.serialization import lines_deserializer, lines_serializer


def chain(*contents: bytes) -> tuple[str, dict]:
    commits = {}
    parent = None
    for content in contents:
        commit = Commit(parent=parent, files={"items.txt": content}, message="m")
        parent = commit.hash()
        commits[parent] = commit
    return parent, commits


def run_together(targets) -> None:
    barrier = threading.Barrier(len(targets))

    def start(target):
        barrier.wait()
        target()

    threads = [threading.Thread(target=start, args=(t,)) for t in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
        assert not thread.is_alive()


def test_fast_forward_only():
    remote = MemoryRemote()
    base, commits = chain(b"")
    remote.update_ref("storage", base, commits)

    diverged, diverged_commits = chain(b"", b"y\n")
    remote.update_ref("storage", diverged, diverged_commits)

    other, other_commits = chain(b"", b"z\n")
    with pytest.raises(VcsError, match="non-fast-forward"):
        remote.update_ref("storage", other, other_commits)
    assert remote.resolve("storage") == diverged


def test_racing_updates_from_one_parent_have_one_winner():
    remote = MemoryRemote()
    base, commits = chain(b"")
    remote.update_ref("storage", base, commits)

    candidates = [chain(b"", f"{i}\n".encode()) for i in range(8)]
    won = []
    lost = []

    def update(tip, tip_commits):
        try:
            remote.update_ref("storage", tip, tip_commits)
            won.append(tip)
        except VcsError:
            lost.append(tip)

    run_together([lambda c=c: update(*c) for c in candidates])

    assert len(won) == 1
    assert len(lost) == len(candidates) - 1
    assert remote.resolve("storage") == won[0]


def test_threaded_writers_converge(tmp_path: Path):
    remotes = {}
    storages = [
        HostedRepositoryStorage(
            create_memory_vcs(remotes),
            NamedHostedRepository("shared"),
            tmp_path / f"writer-{i}",
            "storage",
            "items.txt",
            f"Writer {i}",
            f"writer-{i}@test",
            "Update",
            lines_serializer,
            lines_deserializer,
            policy=RetryPolicy(max_attempts=50),
        )
        for i in range(4)
    ]
    errors = []

    def write(i, storage):
        try:
            for n in range(3):
                storage.put({f"item-{i}-{n}"})
        except Exception as e:
            errors.append(e)

    run_together([lambda i=i, s=s: write(i, s) for i, s in enumerate(storages)])

    assert errors == []
    remote = remotes["shared"]
    tip = remote.resolve("storage")
    content = remote.history(tip)[tip].files["items.txt"].decode()
    expected = {f"item-{i}-{n}" for i in range(4) for n in range(3)}
    assert lines_deserializer(content) == expected
