"""
Item set published to a ref of a remote repository.

The remote ref's non-force update is the only synchronization point. A put
commits locally, then tries to push. If the push is rejected because another
writer got there first, the local copy is reset to the remote ref and the
items are applied again on top of it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Collection, Generic, TypeVar

from ref_store.base import (
    Deserializer,
    Hash,
    HostedRepository,
    Serializer,
    Storage,
    Vcs,
)
from ref_store.bootstrap import materialize
from ref_store.errors import RetryCountExceeded
from ref_store.repository_storage import RepositoryStorage
from ref_store.retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Unchanged:
    pass


@dataclass(frozen=True)
class Published(Generic[T]):
    items: set[T]


@dataclass(frozen=True)
class CaughtUp:
    remote_hash: Hash


@dataclass(frozen=True)
class Contended:
    cause: OSError


PutOutcome = Unchanged | Published | CaughtUp | Contended


class HostedRepositoryStorage(Storage[T]):
    def __init__(
        self,
        vcs: Vcs,
        hosted: HostedRepository,
        local_path: str | Path,
        ref: str,
        file_name: str,
        author_name: str,
        author_email: str,
        message: str,
        serializer: Serializer[T],
        deserializer: Deserializer[T],
        policy: RetryPolicy = RetryPolicy(),
    ) -> None:
        self.vcs = vcs
        self.hosted = hosted
        self.ref = ref
        self.file_name = file_name
        self.author_name = author_name
        self.author_email = author_email
        self.message = message
        self.serializer = serializer
        self.deserializer = deserializer
        self.policy = policy

        self.repository = materialize(
            vcs,
            hosted,
            Path(local_path),
            ref,
            file_name,
            author_name,
            author_email,
            message,
            policy=policy,
        )
        self.storage = self._create_storage()
        self._snapshot: set[T] = self.storage.current()

    def _create_storage(self) -> RepositoryStorage[T]:
        return RepositoryStorage(
            self.repository,
            self.file_name,
            self.author_name,
            self.author_email,
            self.message,
            self.serializer,
            self.deserializer,
        )

    @property
    def snapshot(self) -> set[T]:
        """The set as of the last successful publish or catch-up."""
        return set(self._snapshot)

    def current(self) -> set[T]:
        return self.storage.current()

    def _reset_to(self, remote_hash: Hash) -> None:
        self.repository.checkout(remote_hash, force=True)
        self.storage = self._create_storage()
        self._snapshot = self.storage.current()

    def _attempt_put(
        self, items: Collection[T], last_remote: Hash | None
    ) -> PutOutcome:
        self.storage.put(items)
        updated = self.storage.current()
        if updated == self._snapshot:
            return Unchanged()

        location = self.hosted.authenticated_url()
        try:
            self.repository.push(self.repository.head(), location, self.ref)
            return Published(updated)
        except OSError as e:
            push_error = e

        try:
            remote_hash = self.repository.fetch(location, self.ref)
        except OSError as e:
            return Contended(e)
        if remote_hash == last_remote:
            return Contended(push_error)

        try:
            self._reset_to(remote_hash)
        except OSError as e:
            return Contended(e)
        return CaughtUp(remote_hash)

    def put(self, items: Collection[T]) -> None:
        """
        Merge items into the remote set.

        Returns once every item is part of the ref on the remote. Catching up
        with a ref that moved does not use up an attempt; a rejected push with
        no new remote state does.

        Raises:
            RetryCountExceeded: If the policy's bound was reached first.
            MalformedPayloadError: If the payload cannot be decoded.
        """
        attempts = 0
        last_error: OSError | None = None
        last_remote: Hash | None = None

        while attempts < self.policy.max_attempts:
            match self._attempt_put(items, last_remote):
                case Unchanged():
                    return
                case Published(updated):
                    self._snapshot = updated
                    logger.info("Published %d items to %s", len(updated), self.ref)
                    return
                case CaughtUp(remote_hash):
                    logger.info(
                        "Remote %s moved to %s, retrying on top of it",
                        self.ref,
                        remote_hash[:7],
                    )
                    last_remote = remote_hash
                case Contended(cause):
                    logger.warning(
                        "Publishing to %s failed (attempt %d/%d): %s",
                        self.ref,
                        attempts + 1,
                        self.policy.max_attempts,
                        cause,
                    )
                    last_error = cause
                    self.policy.pause(attempts)
                    attempts += 1

        raise RetryCountExceeded(
            f"Retry count exceeded publishing to {self.ref}"
        ) from last_error

    def refresh(self) -> None:
        """
        Catch up with the remote ref.

        Items that only exist locally, left behind by a put that ran out of
        attempts, are published again afterwards.
        """
        pending = self.storage.current() - self._snapshot
        last_error: OSError | None = None

        for attempt in range(self.policy.max_attempts):
            try:
                remote_hash = self.repository.fetch(
                    self.hosted.authenticated_url(), self.ref
                )
                if remote_hash != self.repository.head():
                    self._reset_to(remote_hash)
                else:
                    self._snapshot = self.storage.current()
                break
            except OSError as e:
                logger.warning("Refreshing %s failed: %s", self.ref, e)
                last_error = e
                self.policy.pause(attempt)
        else:
            raise RetryCountExceeded(
                f"Retry count exceeded refreshing {self.ref}"
            ) from last_error

        if pending:
            self.put(pending)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("HostedRepositoryStorage(...)")
        else:
            with p.group(4, "HostedRepositoryStorage(", ")"):
                p.breakable()
                p.text(f"remote={self.hosted!r},")
                p.breakable()
                p.text(f"ref='{self.ref}',")
                p.breakable()
                p.text("snapshot=")
                p.pretty(self._snapshot)
                p.breakable()
