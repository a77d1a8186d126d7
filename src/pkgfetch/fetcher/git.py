"""Git backend: resolve a committish to a sha and package the checkout."""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar
from urllib.parse import urlsplit, urlunsplit

from pkgfetch.core.errors import SpecifierError
from pkgfetch.fetcher.base import Fetcher
from pkgfetch.fetcher.dir import DirFetcher
from pkgfetch.fetcher.file import read_tarball_manifest
from pkgfetch.fetcher.remote import RemoteFetcher
from pkgfetch.git import COMMIT_PATTERN, RefDoc, clone, revs
from pkgfetch.npm import run_npm
from pkgfetch.package_json import has_install_scripts, read_package_json
from pkgfetch.pick_manifest import pick_manifest
from pkgfetch.spec import repo_url
from pkgfetch.spec.hosted import from_url
from pkgfetch.stream import TarballStream

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_fragment(url: str, fragment: str) -> str:
    """Replace the ``#fragment`` of ``url`` without touching auth or query."""
    parts = urlsplit(url)
    base = urlunsplit(parts._replace(fragment=""))
    prefix = f"{parts.scheme}://"
    # urlunsplit drops an empty authority for schemes it does not know
    if parts.scheme and url.startswith(prefix) and not base.startswith(prefix):
        base = prefix + base[len(parts.scheme) + 1:]
    return f"{base}#{fragment}"


class GitFetcher(Fetcher):
    """Fetcher for git specifiers.

    Resolution order:
        1. a full 40-hex committish is pinned at construction, no network
        2. otherwise list remote refs and pick by range, committish or HEAD
        3. if that yields no sha (``HEAD~3``), clone and read HEAD

    Hosted repositories resolve to the provider's tarball URL so that
    tarball and manifest can download instead of cloning.
    """

    types = ("git",)

    def __init__(self, spec, opts=None):
        super().__init__(spec, opts)
        self.resolved_ref: Optional[RefDoc] = None
        self.resolved_sha = ""
        committish = self.spec.git_committish
        if committish and COMMIT_PATTERN.match(committish):
            self.resolved_sha = committish
            if not self.resolved:
                self._add_git_sha(committish)

    # -- resolution ------------------------------------------------------

    def _resolve(self) -> str:
        if self.resolved:
            return self.resolved
        hosted = self.spec.hosted
        remote = repo_url(hosted) if hosted else self.spec.fetch_spec
        return self._resolved_from_repo(remote)

    def _resolved_from_repo(self, remote: Optional[str]) -> str:
        if not remote:
            raise SpecifierError(f"No git url for {self.spec}")

        remote_refs = revs(remote, self.opts)
        if self.spec.git_range:
            doc = pick_manifest(
                {
                    "name": self.spec.name,
                    "versions": remote_refs.versions,
                    "dist-tags": remote_refs.dist_tags,
                },
                self.spec.git_range,
            )
        elif self.spec.git_committish:
            doc = remote_refs.find(self.spec.git_committish)
        else:
            doc = remote_refs.refs.get("HEAD")

        if doc is None or not doc.sha:
            # HEAD~3, @{yesterday} and friends only resolve in a clone
            logger.debug(f"{self.spec.git_committish} not in ref list of {remote}, cloning")
            return self._resolved_from_clone()

        self.resolved_ref = doc
        self._pin_sha(doc.sha)
        self._add_git_sha(doc.sha)
        return self.resolved

    def _resolved_from_clone(self) -> str:
        return self._clone(lambda tmp: self.resolved)

    def _pin_sha(self, sha: str) -> None:
        if not self.resolved_sha:
            self.resolved_sha = sha
        elif self.resolved_sha != sha:
            logger.warning(
                f"Resolved commit mismatch for {self.spec}: keeping {self.resolved_sha} over {sha}"
            )

    def _add_git_sha(self, sha: str) -> None:
        """Set ``resolved`` to a git URL or tarball URL pinned at ``sha``."""
        hosted = self.spec.hosted
        if hosted is not None:
            with_sha = f"{hosted.shortcut(no_committish=True)}#{sha}"
        else:
            with_sha = with_fragment(self.spec.raw_spec, sha)
        self._set_resolved_with_sha(with_sha)

    def _set_resolved_with_sha(self, with_sha: str) -> None:
        # Not cloned yet, so a tarball download is still cheaper
        if self.spec.hosted is None:
            self.resolved = with_sha
        else:
            self.resolved = from_url(with_sha).tarball()

    def _is_hosted_tarball(self) -> bool:
        hosted = self.spec.hosted
        if hosted is None or not self.resolved or not self.resolved_sha:
            return False
        return self.resolved == hosted.with_committish(self.resolved_sha).tarball()

    # -- checkout --------------------------------------------------------

    def _clone(self, handler: Callable[[Path], T]) -> T:
        """Check the repo out into a scoped temp dir and call ``handler``.

        When already resolved to a hosted tarball URL the tarball is
        downloaded and unpacked instead of cloning. The directory is removed
        when this returns or raises.
        """
        hosted = self.spec.hosted
        ref = self.resolved_sha or self.spec.git_committish

        with self.cache.tmp("git-clone") as tmp:
            if self._is_hosted_tarball():
                nameat = f"{self.spec.name}@" if self.spec.name else ""
                logger.info(f"Fetching git:{nameat}{self.resolved} as a tarball")
                RemoteFetcher(
                    self.resolved,
                    self._child_opts(resolved=self.resolved, integrity=None),
                ).extract(tmp)
                return handler(tmp)

            if hosted is not None and not self.spec.fetch_spec:
                repo = repo_url(hosted)
            else:
                repo = self.spec.fetch_spec
            if not repo:
                raise SpecifierError(f"No git url for {self.spec}")

            shallow = hosted is not None and hosted.supports_shallow
            sha = clone(repo, ref, tmp, shallow=shallow, opts=self.opts)
            self._pin_sha(sha)
            if not self.resolved:
                self._add_git_sha(sha)
            return handler(tmp)

    def _prepare_dir(self, path: Path) -> None:
        mani = read_package_json(path)
        if not has_install_scripts(mani):
            return
        # The packer runs prepare itself; deps just have to be in place
        run_npm(
            self.opts.npm_bin,
            [*self.opts.npm_install_cmd, *self.opts.npm_cli_config],
            path,
            "git dep preparation failed",
        )

    # -- contract --------------------------------------------------------

    def _tarball_from_resolved(self, sink: TarballStream) -> None:
        def pack(path: Path) -> None:
            self._prepare_dir(path)
            packer = DirFetcher(f"file:{path}", self._child_opts(resolved=None, integrity=None))
            packer._tarball_from_resolved(sink)

        self._clone(pack)

    def _manifest(self) -> Dict[str, Any]:
        self.resolve()
        if self._is_hosted_tarball():
            return read_tarball_manifest(self)
        return self._clone(lambda path: self._decorate(read_package_json(path)))
