"""Directory backend: package a local directory."""
import logging
from pathlib import Path
from typing import Any, Dict

from pkgfetch.core.errors import SpecifierError
from pkgfetch.fetcher.base import Fetcher
from pkgfetch.npm import run_npm
from pkgfetch.package_json import read_package_json
from pkgfetch.packer import pack_directory
from pkgfetch.stream import TarballStream

logger = logging.getLogger(__name__)


class DirFetcher(Fetcher):
    """Fetcher for ``file:`` directories.

    The resolved identifier is the absolute directory path. Tarballs are
    produced by the deterministic packer after running the package's own
    ``prepare`` script (unless scripts are disabled).
    """

    types = ("directory",)

    @property
    def path(self) -> Path:
        if not self.spec.fetch_spec:
            raise SpecifierError(f"No directory for {self.spec}")
        return Path(self.spec.fetch_spec)

    def _resolve(self) -> str:
        return str(self.path)

    def _manifest(self) -> Dict[str, Any]:
        self.resolve()
        return self._decorate(read_package_json(self.path))

    def _prepare_dir(self) -> None:
        mani = read_package_json(self.path)
        scripts = mani.get("scripts") or {}
        if self.opts.ignore_scripts or not scripts.get("prepare"):
            return
        run_npm(
            self.opts.npm_bin,
            ["run", "prepare"],
            self.path,
            "prepare script failed",
        )

    def _tarball_from_resolved(self, sink: TarballStream) -> None:
        self._prepare_dir()
        pack_directory(self.path, sink)
