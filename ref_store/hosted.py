import os
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from ref_store.base import HostedRepository


class LocalHostedRepository(HostedRepository):
    """A repository reachable through the local filesystem, e.g. a bare clone."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).absolute()

    def authenticated_url(self) -> str:
        return str(self.path)

    def __repr__(self) -> str:
        return f"LocalHostedRepository({str(self.path)!r})"


class NamedHostedRepository(HostedRepository):
    """A logical repository name, resolved by the memory and SQL backends."""

    def __init__(self, name: str) -> None:
        self.name = name

    def authenticated_url(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"NamedHostedRepository({self.name!r})"


class UrlHostedRepository(HostedRepository):
    """
    A repository behind a URL.

    For http(s) URLs the credentials are placed in the URL's userinfo, which
    is how git accepts a token without a credential helper.
    """

    def __init__(
        self,
        url: str,
        username: str | None = None,
        token: str | None = None,
        token_env_var: str | None = None,
    ) -> None:
        self.url = url
        self.username = username
        self.token = token
        self.token_env_var = token_env_var

    def _token(self) -> str | None:
        if self.token:
            return self.token
        if self.token_env_var:
            return os.environ.get(self.token_env_var) or None
        return None

    def authenticated_url(self) -> str:
        parts = urlsplit(self.url)
        token = self._token()
        if parts.scheme not in ("http", "https") or token is None:
            return self.url

        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        username = quote(self.username or "git", safe="")
        netloc = f"{username}:{quote(token, safe='')}@{host}"
        return urlunsplit(
            (parts.scheme, netloc, parts.path, parts.query, parts.fragment)
        )

    def __repr__(self) -> str:
        # Never show the token
        return f"UrlHostedRepository({self.url!r})"
