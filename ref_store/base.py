from pathlib import Path
from typing import Callable, Collection, Generic, Iterable, TypeVar

T = TypeVar("T")

Hash = str

Serializer = Callable[[Iterable[T]], str]
Deserializer = Callable[[str], set[T]]


class Storage(Generic[T]):
    """
    A set of items persisted somewhere.

    Items are only ever added; the set never shrinks through this interface.
    """

    def current(self) -> set[T]:
        """Return the current set of items."""
        raise NotImplementedError()

    def put(self, items: Collection[T]) -> None:
        """Merge items into the stored set."""
        raise NotImplementedError()


class Repository:
    """
    Local working copy of a version-controlled repository.

    Owned by exactly one storage instance at a time.
    """

    @property
    def root(self) -> Path:
        """Directory holding the checked out files."""
        raise NotImplementedError()

    def is_empty(self) -> bool:
        """Check if the repository has no commits at all."""
        raise NotImplementedError()

    def add(self, path: Path) -> None:
        """Stage a file for the next commit."""
        raise NotImplementedError()

    def commit(self, message: str, author_name: str, author_email: str) -> Hash:
        """Commit staged files on top of head and return the new commit hash."""
        raise NotImplementedError()

    def push(self, commit: Hash, location: str, ref: str) -> None:
        """Publish a commit to a remote ref. Fails unless it fast-forwards the ref."""
        raise NotImplementedError()

    def fetch(self, location: str, ref: str) -> Hash:
        """Retrieve a remote ref and return the commit it points at."""
        raise NotImplementedError()

    def checkout(self, commit: Hash, force: bool = False) -> None:
        """Move head to a commit and update the working files to match."""
        raise NotImplementedError()

    def head(self) -> Hash:
        """Return the commit currently checked out."""
        raise NotImplementedError()


class Vcs:
    """
    Factory for local repositories of one version-control backend.
    """

    def init(self, path: Path) -> Repository:
        """Open the repository at path, creating an empty one if needed."""
        raise NotImplementedError()

    def materialize(self, path: Path, location: str, ref: str) -> Repository:
        """Produce a working copy at path matching the remote ref."""
        raise NotImplementedError()


class HostedRepository:
    """
    A remote repository that storage instances publish to.
    """

    def authenticated_url(self) -> str:
        """Location usable by the Vcs backend, with credentials if any."""
        raise NotImplementedError()
