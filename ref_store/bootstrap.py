"""
Bootstrapping a local working copy from a remote ref.

The ref may not exist yet, in which case it is created holding an empty
payload file. Several processes may race to create it; the losers fail to
push and pick up the winner's ref on their next attempt.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from ref_store.base import HostedRepository, Repository, Vcs
from ref_store.errors import RetryCountExceeded
from ref_store.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Found:
    repository: Repository


@dataclass(frozen=True)
class RefAbsent:
    repository: Repository
    cause: OSError


@dataclass(frozen=True)
class TransientFault:
    cause: OSError


MaterializeResult = Found | RefAbsent | TransientFault


def try_materialize(
    vcs: Vcs, location: str, local_path: Path, ref: str
) -> MaterializeResult:
    """Make one attempt at materializing ref into local_path."""
    try:
        return Found(vcs.materialize(local_path, location, ref))
    except OSError as e:
        materialize_error = e

    try:
        repository = vcs.init(local_path)
        if repository.is_empty():
            return RefAbsent(repository, materialize_error)
    except OSError as e:
        return TransientFault(e)

    # History without a materializable ref is left over from an earlier
    # attempt; never initialize the ref on top of it
    return TransientFault(materialize_error)


def create_initial(
    repository: Repository,
    location: str,
    ref: str,
    file_name: str,
    author_name: str,
    author_email: str,
    message: str,
) -> None:
    """Commit an empty payload file and push it as the new ref."""
    logger.info("Creating initial storage for %s", ref)
    payload = repository.root / file_name
    payload.parent.mkdir(parents=True, exist_ok=True)
    payload.write_text("", encoding="utf-8")
    repository.add(payload)
    first_commit = repository.commit(message, author_name, author_email)

    # Fails if the ref exists after all, e.g. another process created it
    repository.push(first_commit, location, ref)


def materialize(
    vcs: Vcs,
    hosted: HostedRepository,
    local_path: Path,
    ref: str,
    file_name: str,
    author_name: str,
    author_email: str,
    message: str,
    policy: RetryPolicy = RetryPolicy(),
) -> Repository:
    """
    Produce a working copy at local_path matching the remote ref.

    Creates the ref with an empty payload file when it does not exist.

    Raises:
        RetryCountExceeded: If no attempt succeeded within the policy's bound.
    """
    last_error: OSError | None = None

    for attempt in range(policy.max_attempts):
        location = hosted.authenticated_url()
        match try_materialize(vcs, location, local_path, ref):
            case Found(repository):
                return repository
            case RefAbsent(repository, cause):
                logger.debug("Ref %s not found at the remote: %s", ref, cause)
                try:
                    create_initial(
                        repository,
                        location,
                        ref,
                        file_name,
                        author_name,
                        author_email,
                        message,
                    )
                    return repository
                except OSError as e:
                    logger.warning("Creating %s failed: %s", ref, e)
                    last_error = e
            case TransientFault(cause):
                logger.warning(
                    "Materialization into %s failed: %s", local_path, cause
                )
                last_error = cause

        logger.debug(
            "Materialize attempt %d/%d failed", attempt + 1, policy.max_attempts
        )
        policy.pause(attempt)

    raise RetryCountExceeded(
        f"Retry count exceeded materializing {ref} into {local_path}"
    ) from last_error
