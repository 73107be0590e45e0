import threading
from typing import Any, Collection

from ref_store.base import Hash
from ref_store.errors import VcsError
from ref_store.impl.objects import (
    CommitRemote,
    Commits,
    ObjectVcs,
    history,
    is_ancestor,
)


class MemoryRemote(CommitRemote):
    def __init__(self) -> None:
        self.objects: Commits = {}
        self.refs: dict[str, Hash] = {}
        self.lock = threading.Lock()

    def resolve(self, ref: str) -> Hash | None:
        with self.lock:
            return self.refs.get(ref)

    def history(self, tip: Hash, known: Collection[Hash] = ()) -> Commits:
        with self.lock:
            return history(self.objects, tip, known)

    def update_ref(self, ref: str, tip: Hash, commits: Commits) -> None:
        with self.lock:
            current = self.refs.get(ref)
            if current is not None and not is_ancestor(commits, current, tip):
                raise VcsError(
                    f"Rejected non-fast-forward update of {ref} "
                    f"({current[:7]} is not an ancestor of {tip[:7]})"
                )
            self.objects.update(commits)
            self.refs[ref] = tip

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryRemote(...)")
        else:
            refs = {name: tip[:7] for name, tip in self.refs.items()}
            with p.group(4, "MemoryRemote(", ")"):
                p.breakable()
                p.text(f"refs={refs},")
                p.breakable()


MemoryRemoteData = dict[str, MemoryRemote]


class MemoryVcs(ObjectVcs):
    """
    Object backend whose remotes are entries of a shared dict.

    Several MemoryVcs instances given the same dict behave like processes
    talking to the same hosting service.
    """

    def __init__(self, remotes: MemoryRemoteData) -> None:
        super().__init__()
        self.remotes = remotes

    def remote(self, location: str) -> MemoryRemote:
        remote = self.remotes.get(location)
        if remote is None:
            remote = self.remotes.setdefault(location, MemoryRemote())
        return remote

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryVcs(...)")
        else:
            with p.group(4, "MemoryVcs(", ")"):
                p.breakable()
                p.text("remotes=")
                p.pretty(self.remotes)
                p.breakable()


def create_memory_vcs(remotes: MemoryRemoteData) -> MemoryVcs:
    return MemoryVcs(remotes)
