from pathlib import Path
from typing import Generic, TypeVar

from ref_store.base import Deserializer, HostedRepository, Serializer, Storage, Vcs
from ref_store.hosted_storage import HostedRepositoryStorage
from ref_store.impl.git import GitVcs
from ref_store.repository_storage import RepositoryStorage
from ref_store.retry import RetryPolicy

T = TypeVar("T")

DEFAULT_AUTHOR_NAME = "ref-store"
DEFAULT_AUTHOR_EMAIL = "ref-store@localhost"
DEFAULT_MESSAGE = "Updated storage"


class StorageBuilder(Generic[T]):
    """
    Collects storage settings and creates the storage.

    Example:
        >>> storage = (
        ...     StorageBuilder[str]("seen.txt")
        ...     .serializer(lines_serializer)
        ...     .deserializer(lines_deserializer)
        ...     .remote_repository(hosted, "storage", "bot", "bot@example.com", "Up")
        ...     .materialize(Path("/var/cache/seen"))
        ... )
    """

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        self._serializer: Serializer[T] | None = None
        self._deserializer: Deserializer[T] | None = None
        self._vcs: Vcs | None = None
        self._policy = RetryPolicy()

        self._hosted: HostedRepository | None = None
        self._ref = ""
        self._author_name = DEFAULT_AUTHOR_NAME
        self._author_email = DEFAULT_AUTHOR_EMAIL
        self._message = DEFAULT_MESSAGE

    def serializer(self, serializer: Serializer[T]) -> "StorageBuilder[T]":
        self._serializer = serializer
        return self

    def deserializer(self, deserializer: Deserializer[T]) -> "StorageBuilder[T]":
        self._deserializer = deserializer
        return self

    def vcs(self, vcs: Vcs) -> "StorageBuilder[T]":
        self._vcs = vcs
        return self

    def retry_policy(self, policy: RetryPolicy) -> "StorageBuilder[T]":
        self._policy = policy
        return self

    def remote_repository(
        self,
        hosted: HostedRepository,
        ref: str,
        author_name: str,
        author_email: str,
        message: str,
    ) -> "StorageBuilder[T]":
        self._hosted = hosted
        self._ref = ref
        self._author_name = author_name
        self._author_email = author_email
        self._message = message
        return self

    def materialize(self, local_path: str | Path) -> Storage[T]:
        if self._serializer is None:
            raise ValueError("No serializer configured")
        if self._deserializer is None:
            raise ValueError("No deserializer configured")

        vcs = self._vcs or GitVcs()
        if self._hosted is None:
            return RepositoryStorage(
                vcs.init(Path(local_path)),
                self.file_name,
                self._author_name,
                self._author_email,
                self._message,
                self._serializer,
                self._deserializer,
            )

        return HostedRepositoryStorage(
            vcs,
            self._hosted,
            local_path,
            self._ref,
            self.file_name,
            self._author_name,
            self._author_email,
            self._message,
            self._serializer,
            self._deserializer,
            policy=self._policy,
        )
