from dataclasses import dataclass
from pathlib import Path

import pytest

from ref_store.errors import MalformedPayloadError, RetryCountExceeded, VcsError
from ref_store.hosted import NamedHostedRepository
from ref_store.hosted_storage import HostedRepositoryStorage
from ref_store.impl.memory import MemoryRemoteData, create_memory_vcs
from ref_store.retry import RetryPolicy
from ref_store.serialization import json_lines, lines_deserializer, lines_serializer


@dataclass(frozen=True)
class Event:
    name: str
    count: int


def create_storage(
    remotes: MemoryRemoteData,
    path: Path,
    policy: RetryPolicy = RetryPolicy(),
    codec=(lines_serializer, lines_deserializer),
) -> HostedRepositoryStorage:
    serializer, deserializer = codec
    return HostedRepositoryStorage(
        create_memory_vcs(remotes),
        NamedHostedRepository("shared"),
        path,
        "storage",
        "items.txt",
        "Test",
        "test@test",
        "Update",
        serializer,
        deserializer,
        policy=policy,
    )


def reject_pushes(monkeypatch, storage) -> list:
    attempts = []

    def push(commit, location, ref):
        attempts.append(commit)
        raise VcsError("rejected")

    monkeypatch.setattr(storage.repository, "push", push)
    return attempts


def test_bound_exhausted_when_remote_never_moves(tmp_path: Path, monkeypatch):
    remotes = {}
    storage = create_storage(remotes, tmp_path / "a", RetryPolicy(max_attempts=4))
    attempts = reject_pushes(monkeypatch, storage)

    with pytest.raises(RetryCountExceeded) as excinfo:
        storage.put({"x"})

    # The first fetch is a new observation and does not count
    assert len(attempts) == 4 + 1
    assert str(excinfo.value.__cause__) == "rejected"


def test_bound_exhausted_when_fetch_fails(tmp_path: Path, monkeypatch):
    remotes = {}
    storage = create_storage(remotes, tmp_path / "a", RetryPolicy(max_attempts=3))
    attempts = reject_pushes(monkeypatch, storage)

    def fetch(location, ref):
        raise VcsError("connection reset")

    monkeypatch.setattr(storage.repository, "fetch", fetch)

    with pytest.raises(RetryCountExceeded) as excinfo:
        storage.put({"x"})

    assert len(attempts) == 3
    assert str(excinfo.value.__cause__) == "connection reset"
    # The item stays committed locally for a later publish
    assert storage.current() == {"x"}
    assert storage.snapshot == set()


def test_catching_up_does_not_use_attempts(tmp_path: Path, monkeypatch):
    remotes = {}
    storage = create_storage(remotes, tmp_path / "a", RetryPolicy(max_attempts=1))
    other = create_storage(remotes, tmp_path / "b")

    original_push = storage.repository.push
    moves = []

    def push(commit, location, ref):
        # Another writer lands right before each of our first five pushes
        if len(moves) < 5:
            moves.append(len(moves))
            other.put({f"other-{len(moves)}"})
        original_push(commit, location, ref)

    monkeypatch.setattr(storage.repository, "push", push)
    storage.put({"mine"})

    expected = {"mine"} | {f"other-{i}" for i in range(1, 6)}
    assert storage.current() == expected
    assert create_storage(remotes, tmp_path / "reader").current() == expected


def test_snapshot_is_replaced_not_mutated(tmp_path: Path):
    storage = create_storage({}, tmp_path / "a")
    before = storage.snapshot

    storage.put({"x"})

    assert before == set()
    assert storage.snapshot == {"x"}


def test_malformed_payload_is_not_retried(tmp_path: Path, monkeypatch):
    remotes = {}
    events = create_storage(remotes, tmp_path / "a", codec=json_lines(Event))
    plain = create_storage(remotes, tmp_path / "b")
    plain.put({"not json"})

    fetches = []
    original_fetch = events.repository.fetch

    def fetch(location, ref):
        fetches.append(ref)
        return original_fetch(location, ref)

    monkeypatch.setattr(events.repository, "fetch", fetch)

    with pytest.raises(MalformedPayloadError):
        events.put({Event("start", 1)})
    assert len(fetches) == 1

    with pytest.raises(MalformedPayloadError):
        create_storage(remotes, tmp_path / "c", codec=json_lines(Event))


def test_refresh_republishes_local_items(tmp_path: Path, monkeypatch):
    remotes = {}
    storage = create_storage(remotes, tmp_path / "a", RetryPolicy(max_attempts=2))
    other = create_storage(remotes, tmp_path / "b")

    reject_pushes(monkeypatch, storage)
    with pytest.raises(RetryCountExceeded):
        storage.put({"pending"})
    monkeypatch.undo()

    other.put({"remote"})
    storage.refresh()

    assert storage.current() == {"pending", "remote"}
    assert create_storage(remotes, tmp_path / "reader").current() == {
        "pending",
        "remote",
    }


def test_refresh_gives_up_after_bound(tmp_path: Path, monkeypatch):
    storage = create_storage({}, tmp_path / "a", RetryPolicy(max_attempts=2))
    calls = []

    def fetch(location, ref):
        calls.append(ref)
        raise VcsError("offline")

    monkeypatch.setattr(storage.repository, "fetch", fetch)

    with pytest.raises(RetryCountExceeded):
        storage.refresh()
    assert len(calls) == 2
