import logging
import os
import subprocess
from pathlib import Path
from typing import Any

from ref_store.base import Hash, Repository, Vcs
from ref_store.errors import VcsError

logger = logging.getLogger(__name__)


def _run_git(cwd: Path, args: list[str], env: dict[str, str] | None = None) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
        env={**os.environ, **env} if env else None,
    )
    return result.stdout.strip()


def _qualify(ref: str) -> str:
    # A raw commit hash can only be pushed to a fully qualified ref
    if ref.startswith("refs/"):
        return ref
    return f"refs/heads/{ref}"


class GitRepository(Repository):
    def __init__(self, work_path: Path) -> None:
        self.work_path = work_path

    def _git(self, *args: str, env: dict[str, str] | None = None) -> str:
        try:
            return _run_git(self.work_path, list(args), env=env)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise VcsError(f"git {args[0]} failed: {stderr}") from e
        except FileNotFoundError as e:
            raise VcsError(f"Cannot run git in {self.work_path}: {e}") from e

    @property
    def root(self) -> Path:
        return self.work_path

    def is_empty(self) -> bool:
        # --all includes HEAD, so a detached checkout still counts
        return self._git("rev-list", "-n", "1", "--all") == ""

    def add(self, path: Path) -> None:
        self._git("add", "--", str(path))

    def commit(self, message: str, author_name: str, author_email: str) -> Hash:
        identity = {
            "GIT_AUTHOR_NAME": author_name,
            "GIT_AUTHOR_EMAIL": author_email,
            "GIT_COMMITTER_NAME": author_name,
            "GIT_COMMITTER_EMAIL": author_email,
        }
        self._git("commit", "--quiet", "--no-verify", "-m", message, env=identity)
        return self.head()

    def push(self, commit: Hash, location: str, ref: str) -> None:
        self._git("push", "--quiet", location, f"{commit}:{_qualify(ref)}")

    def fetch(self, location: str, ref: str) -> Hash:
        self._git("fetch", "--quiet", location, ref)
        return self._git("rev-parse", "FETCH_HEAD")

    def checkout(self, commit: Hash, force: bool = False) -> None:
        args = ["checkout", "--quiet", "--detach"]
        if force:
            args.append("--force")
        self._git(*args, commit)

    def head(self) -> Hash:
        return self._git("rev-parse", "HEAD")

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("GitRepository(...)")
        else:
            p.text(f"GitRepository(path={self.work_path})")


class GitVcs(Vcs):
    def init(self, path: Path) -> GitRepository:
        work_path = Path(path).absolute()
        try:
            work_path.mkdir(parents=True, exist_ok=True)
            if not (work_path / ".git").exists():
                _run_git(work_path, ["init", "--quiet"])
        except subprocess.CalledProcessError as e:
            raise VcsError(f"git init failed: {(e.stderr or '').strip()}") from e
        except OSError as e:
            raise VcsError(f"Cannot initialize {work_path}: {e}") from e
        return GitRepository(work_path)

    def materialize(self, path: Path, location: str, ref: str) -> GitRepository:
        repository = self.init(path)
        fetched = repository.fetch(location, ref)
        repository.checkout(fetched, force=True)
        logger.debug("Materialized %s from %s at %s", ref, location, fetched[:7])
        return repository
