import logging
from pathlib import Path
from typing import Any, Collection, TypeVar

from ref_store.base import Deserializer, Repository, Serializer, Storage
from ref_store.errors import MalformedPayloadError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RepositoryStorage(Storage[T]):
    """
    Item set stored in one file of a local working copy.

    Every change is a new local commit holding the full set. Nothing is
    published; that is left to HostedRepositoryStorage.
    """

    def __init__(
        self,
        repository: Repository,
        file_name: str,
        author_name: str,
        author_email: str,
        message: str,
        serializer: Serializer[T],
        deserializer: Deserializer[T],
    ) -> None:
        self.repository = repository
        self.file_name = file_name
        self.author_name = author_name
        self.author_email = author_email
        self.message = message
        self.serializer = serializer
        self.deserializer = deserializer

    @property
    def path(self) -> Path:
        return self.repository.root / self.file_name

    def _read(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8")

    def _decode(self, content: str) -> set[T]:
        try:
            return set(self.deserializer(content))
        except ValueError as e:
            raise MalformedPayloadError(
                f"Cannot decode {self.file_name} in {self.repository.root}: {e}"
            ) from e

    def current(self) -> set[T]:
        return self._decode(self._read())

    def put(self, items: Collection[T]) -> None:
        existing_content = self._read()
        updated = self._decode(existing_content) | set(items)
        updated_content = self.serializer(updated)
        if updated_content == existing_content:
            return

        existed = self.path.exists()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(updated_content, encoding="utf-8")
        try:
            self.repository.add(self.path)
            commit = self.repository.commit(
                self.message, self.author_name, self.author_email
            )
        except OSError:
            # The file must never hold items that HEAD does not
            if existed:
                self.path.write_text(existing_content, encoding="utf-8")
            else:
                self.path.unlink(missing_ok=True)
            raise
        logger.debug(
            "Committed %d items to %s as %s", len(updated), self.file_name, commit[:7]
        )

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("RepositoryStorage(...)")
        else:
            with p.group(4, "RepositoryStorage(", ")"):
                p.breakable()
                p.text(f"file={self.path},")
                p.breakable()
                p.text("items=")
                p.pretty(self.current())
                p.breakable()
