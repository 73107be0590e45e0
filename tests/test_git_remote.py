import subprocess
from pathlib import Path

import pytest

from ref_store.errors import VcsError
from ref_store.impl.git import GitVcs
from tests.storage_common import GitStorageProvider


def git_remote(origin: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "--git-dir", str(origin), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


@pytest.fixture
def provider(tmp_path: Path) -> GitStorageProvider:
    return GitStorageProvider(tmp_path)


def test_ref_is_created_as_branch(provider: GitStorageProvider):
    storage = provider.create("a")
    storage.put({"b", "a"})

    refs = git_remote(provider.origin_path, "for-each-ref", "--format=%(refname)")
    assert refs.split() == ["refs/heads/storage"]
    assert git_remote(provider.origin_path, "show", "storage:items.txt") == "a\nb\n"


def test_commits_use_configured_identity(provider: GitStorageProvider):
    storage = provider.create("alice")
    storage.put({"x"})

    log = git_remote(
        provider.origin_path, "log", "--format=%an <%ae> %cn|%s", "storage"
    ).splitlines()
    assert log == [
        "User alice <alice@test> User alice|Update from alice",
        "User alice <alice@test> User alice|Update from alice",
    ]


def test_history_is_one_snapshot_per_publish(provider: GitStorageProvider):
    storage_a = provider.create("a")
    storage_b = provider.create("b")
    storage_a.put({"1"})
    storage_b.put({"2"})
    storage_b.put({"2"})

    # initial empty payload + one commit per successful publish
    count = git_remote(provider.origin_path, "rev-list", "--count", "storage")
    assert int(count) == 3


def test_push_is_not_forced(provider: GitStorageProvider):
    storage = provider.create("a")
    storage.put({"x"})
    published = storage.repository.head()

    # A commit that does not descend from the remote ref
    repository = GitVcs().init(provider.path / "unrelated")
    (repository.root / "items.txt").write_text("y\n")
    repository.add(repository.root / "items.txt")
    unrelated = repository.commit("Unrelated", "Test", "test@test")

    with pytest.raises(VcsError):
        repository.push(unrelated, str(provider.origin_path), "storage")
    assert repository.fetch(str(provider.origin_path), "storage") == published


def test_fetch_of_missing_ref_fails(provider: GitStorageProvider):
    repository = GitVcs().init(provider.path / "empty")
    with pytest.raises(VcsError, match="fetch"):
        repository.fetch(str(provider.origin_path), "missing")
    assert repository.is_empty()
