from .base import HostedRepository, Repository, Storage, Vcs
from .bootstrap import materialize
from .builder import StorageBuilder
from .errors import (
    MalformedPayloadError,
    RetryCountExceeded,
    StorageError,
    VcsError,
)
from .hosted import LocalHostedRepository, NamedHostedRepository, UrlHostedRepository
from .hosted_storage import HostedRepositoryStorage
from .impl.git import GitVcs
from .impl.memory import create_memory_vcs
from .impl.sql import create_sql_vcs
from .repository_storage import RepositoryStorage
from .retry import RetryPolicy
from .serialization import (
    json_lines,
    lines_deserializer,
    lines_serializer,
    mapped_lines,
)

__all__ = [
    "Storage",
    "Repository",
    "Vcs",
    "HostedRepository",
    "StorageBuilder",
    "RepositoryStorage",
    "HostedRepositoryStorage",
    "materialize",
    "RetryPolicy",
    "StorageError",
    "VcsError",
    "RetryCountExceeded",
    "MalformedPayloadError",
    "LocalHostedRepository",
    "NamedHostedRepository",
    "UrlHostedRepository",
    "GitVcs",
    "create_memory_vcs",
    "create_sql_vcs",
    "json_lines",
    "lines_serializer",
    "lines_deserializer",
    "mapped_lines",
]
