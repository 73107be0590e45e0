from typing import Any, Callable, Collection

from sqlalchemy import ForeignKey, LargeBinary, String, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship

from ref_store.base import Hash
from ref_store.errors import VcsError
from ref_store.impl.objects import (
    Commit,
    CommitRemote,
    Commits,
    ObjectVcs,
    blob_hash,
    history,
    is_ancestor,
)


class Base(DeclarativeBase):
    pass


class BlobModel(Base):
    __tablename__ = "blobs"
    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class CommitModel(Base):
    __tablename__ = "commits"
    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("commits.id"), nullable=True
    )
    message: Mapped[str]
    author_name: Mapped[str]
    author_email: Mapped[str]


class CommitFileModel(Base):
    __tablename__ = "commit_files"
    commit_id: Mapped[str] = mapped_column(ForeignKey("commits.id"), primary_key=True)
    path: Mapped[str] = mapped_column(primary_key=True)
    blob_id: Mapped[str] = mapped_column(ForeignKey("blobs.id"))

    blob: Mapped[BlobModel] = relationship(BlobModel)


class RefModel(Base):
    __tablename__ = "refs"
    repository: Mapped[str] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(primary_key=True)
    commit_id: Mapped[str] = mapped_column(ForeignKey("commits.id"))


class SqlRemote(CommitRemote):
    """
    Remote refs stored in a database.

    Ref updates are a conditional UPDATE on the previous commit id, so two
    writers racing from the same parent cannot both win.
    """

    def __init__(
        self, session_maker: Callable[[], Session], repository: str
    ) -> None:
        self.session_maker = session_maker
        self.repository = repository

    def _ref_filter(self, ref: str) -> tuple[Any, ...]:
        return (RefModel.repository == self.repository, RefModel.name == ref)

    def resolve(self, ref: str) -> Hash | None:
        try:
            with self.session_maker() as session:
                stmt = select(RefModel.commit_id).where(*self._ref_filter(ref))
                return session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise VcsError(f"Cannot resolve {ref}: {e}") from e

    def history(self, tip: Hash, known: Collection[Hash] = ()) -> Commits:
        result: Commits = {}
        try:
            with self.session_maker() as session:
                current: Hash | None = tip
                while current is not None and current not in result:
                    if current in known:
                        break
                    row = session.get(CommitModel, current)
                    if row is None:
                        raise VcsError(f"Missing commit object {current[:7]}")

                    files_stmt = select(CommitFileModel).where(
                        CommitFileModel.commit_id == current
                    )
                    files = {
                        item.path: item.blob.content
                        for item in session.execute(files_stmt).scalars()
                    }
                    result[current] = Commit(
                        parent=row.parent_id,
                        files=files,
                        message=row.message,
                        author_name=row.author_name,
                        author_email=row.author_email,
                    )
                    current = row.parent_id
        except SQLAlchemyError as e:
            raise VcsError(f"Cannot read history of {tip[:7]}: {e}") from e
        return result

    def _store(self, session: Session, tip: Hash, commits: Commits) -> None:
        missing = []
        for commit_hash, commit in history(commits, tip).items():
            if session.get(CommitModel, commit_hash) is not None:
                break
            missing.append((commit_hash, commit))
        if not missing:
            return
        # Oldest first so parents exist before their children
        missing.reverse()

        blobs = {
            blob_hash(data): data
            for _, commit in missing
            for data in commit.files.values()
        }
        stored_blobs = set(
            session.execute(
                select(BlobModel.id).where(BlobModel.id.in_(list(blobs)))
            ).scalars()
        )
        for blob_id, data in blobs.items():
            if blob_id not in stored_blobs:
                session.add(BlobModel(id=blob_id, content=data))

        for commit_hash, commit in missing:
            session.add(
                CommitModel(
                    id=commit_hash,
                    parent_id=commit.parent,
                    message=commit.message,
                    author_name=commit.author_name,
                    author_email=commit.author_email,
                )
            )
            for path, data in commit.files.items():
                session.add(
                    CommitFileModel(
                        commit_id=commit_hash, path=path, blob_id=blob_hash(data)
                    )
                )
            session.flush()

    def update_ref(self, ref: str, tip: Hash, commits: Commits) -> None:
        try:
            with self.session_maker() as session, session.begin():
                current = session.execute(
                    select(RefModel.commit_id).where(*self._ref_filter(ref))
                ).scalar_one_or_none()
                if current is not None and not is_ancestor(commits, current, tip):
                    raise VcsError(
                        f"Rejected non-fast-forward update of {ref} "
                        f"({current[:7]} is not an ancestor of {tip[:7]})"
                    )
                if current == tip:
                    return

                self._store(session, tip, commits)

                if current is None:
                    session.add(
                        RefModel(repository=self.repository, name=ref, commit_id=tip)
                    )
                    session.flush()
                else:
                    result = session.execute(
                        update(RefModel)
                        .where(*self._ref_filter(ref), RefModel.commit_id == current)
                        .values(commit_id=tip)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise VcsError(f"Ref {ref} moved during update")
        except IntegrityError as e:
            raise VcsError(f"Ref {ref} was created concurrently") from e
        except SQLAlchemyError as e:
            raise VcsError(f"Cannot update {ref}: {e}") from e

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("SqlRemote(...)")
        else:
            p.text(f"SqlRemote(repository='{self.repository}')")


class SqlVcs(ObjectVcs):
    """Object backend whose remotes are namespaces in one database."""

    def __init__(self, session_maker: Callable[[], Session]) -> None:
        super().__init__()
        self.session_maker = session_maker

    def remote(self, location: str) -> SqlRemote:
        return SqlRemote(self.session_maker, location)


def create_sql_vcs(session_maker: Callable[[], Session]) -> SqlVcs:
    return SqlVcs(session_maker)
