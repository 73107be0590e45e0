"""
In-process commit objects and a working copy built on them.

The memory and SQL backends share everything on the local side: a directory
holding the checked out files and a dict of commit objects. They differ only
in where remote refs live, which is the ``CommitRemote`` they are given.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Collection, Mapping

from ref_store.base import Hash, Repository, Vcs
from ref_store.errors import VcsError

logger = logging.getLogger(__name__)


def blob_hash(content: bytes) -> Hash:
    return hashlib.sha1(content).hexdigest()


@dataclass(frozen=True)
class Commit:
    parent: Hash | None
    files: Mapping[str, bytes] = field(default_factory=dict)
    message: str = ""
    author_name: str = ""
    author_email: str = ""

    def hash(self) -> Hash:
        canonical = json.dumps(
            {
                "parent": self.parent,
                "files": {path: blob_hash(data) for path, data in self.files.items()},
                "message": self.message,
                "author": [self.author_name, self.author_email],
            },
            sort_keys=True,
        )
        return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


Commits = dict[Hash, Commit]


def history(
    commits: Mapping[Hash, Commit], tip: Hash, known: Collection[Hash] = ()
) -> Commits:
    """Collect tip and its ancestors, stopping at commits in known."""
    result: Commits = {}
    current: Hash | None = tip
    while current is not None and current not in result:
        if current in known:
            break
        commit = commits.get(current)
        if commit is None:
            raise VcsError(f"Missing commit object {current[:7]}")
        result[current] = commit
        current = commit.parent
    return result


def is_ancestor(commits: Mapping[Hash, Commit], ancestor: Hash, tip: Hash) -> bool:
    current: Hash | None = tip
    while current is not None:
        if current == ancestor:
            return True
        commit = commits.get(current)
        if commit is None:
            return False
        current = commit.parent
    return False


class CommitRemote:
    """
    Remote side of an object backend: a ref table plus the commits it reaches.
    """

    def resolve(self, ref: str) -> Hash | None:
        """Return the commit a ref points at, or None if the ref is absent."""
        raise NotImplementedError()

    def history(self, tip: Hash, known: Collection[Hash] = ()) -> Commits:
        """Return tip and its ancestors, stopping at commits in known."""
        raise NotImplementedError()

    def update_ref(self, ref: str, tip: Hash, commits: Commits) -> None:
        """
        Point ref at tip, storing the given commits.

        Fails with VcsError unless the ref is absent or its current commit is
        an ancestor of tip.
        """
        raise NotImplementedError()


class ObjectRepository(Repository):
    def __init__(
        self, work_path: Path, remote_for: Callable[[str], CommitRemote]
    ) -> None:
        self.work_path = work_path
        self.remote_for = remote_for
        self.objects: Commits = {}
        self.head_hash: Hash | None = None
        self.staged: set[str] = set()

    @property
    def root(self) -> Path:
        return self.work_path

    def _tracked(self) -> Mapping[str, bytes]:
        if self.head_hash is None:
            return {}
        return self.objects[self.head_hash].files

    def is_empty(self) -> bool:
        return not self.objects

    def add(self, path: Path) -> None:
        relative = Path(path).absolute().relative_to(self.work_path)
        self.staged.add(relative.as_posix())

    def commit(self, message: str, author_name: str, author_email: str) -> Hash:
        files = dict(self._tracked())
        for name in sorted(self.staged):
            file_path = self.work_path / name
            if file_path.exists():
                files[name] = file_path.read_bytes()
            else:
                files.pop(name, None)

        commit = Commit(
            parent=self.head_hash,
            files=files,
            message=message,
            author_name=author_name,
            author_email=author_email,
        )
        commit_hash = commit.hash()
        self.objects[commit_hash] = commit
        self.head_hash = commit_hash
        self.staged.clear()
        return commit_hash

    def push(self, commit: Hash, location: str, ref: str) -> None:
        remote = self.remote_for(location)
        remote.update_ref(ref, commit, history(self.objects, commit))

    def fetch(self, location: str, ref: str) -> Hash:
        remote = self.remote_for(location)
        tip = remote.resolve(ref)
        if tip is None:
            raise VcsError(f"Couldn't find remote ref {ref} in {location}")
        self.objects.update(remote.history(tip, known=set(self.objects)))
        return tip

    def checkout(self, commit: Hash, force: bool = False) -> None:
        target = self.objects.get(commit)
        if target is None:
            raise VcsError(f"Unknown commit {commit[:7]}")
        if self.staged and not force:
            raise VcsError("Working copy has staged changes")

        for name in self._tracked():
            if name not in target.files:
                (self.work_path / name).unlink(missing_ok=True)
        for name, data in target.files.items():
            file_path = self.work_path / name
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)

        self.head_hash = commit
        self.staged.clear()

    def head(self) -> Hash:
        if self.head_hash is None:
            raise VcsError("Repository has no commits")
        return self.head_hash

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("ObjectRepository(...)")
        else:
            head = self.head_hash[:7] if self.head_hash else None
            p.text(f"ObjectRepository(path={self.work_path}, head={head})")


class ObjectVcs(Vcs):
    """
    Vcs whose local repositories live in this process.

    Repositories are kept per path so that re-initializing a path sees the
    history left there by an earlier attempt, as it would on disk.
    """

    def __init__(self) -> None:
        self.local: dict[Path, ObjectRepository] = {}

    def remote(self, location: str) -> CommitRemote:
        raise NotImplementedError()

    def init(self, path: Path) -> ObjectRepository:
        work_path = Path(path).absolute()
        repository = self.local.get(work_path)
        if repository is None:
            try:
                work_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise VcsError(f"Cannot initialize {work_path}: {e}") from e
            repository = ObjectRepository(work_path, self.remote)
            self.local[work_path] = repository
        return repository

    def materialize(self, path: Path, location: str, ref: str) -> ObjectRepository:
        repository = self.init(path)
        fetched = repository.fetch(location, ref)
        repository.checkout(fetched, force=True)
        logger.debug("Materialized %s from %s at %s", ref, location, fetched[:7])
        return repository
