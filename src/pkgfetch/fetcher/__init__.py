"""Fetchers for every supported source type."""
from typing import Dict, Optional, Type, Union

from pkgfetch.core.config import FetchOptions
from pkgfetch.core.errors import SpecifierError
from pkgfetch.fetcher.base import Fetcher
from pkgfetch.fetcher.dir import DirFetcher
from pkgfetch.fetcher.file import FileFetcher
from pkgfetch.fetcher.git import GitFetcher
from pkgfetch.fetcher.registry import RegistryFetcher
from pkgfetch.fetcher.remote import RemoteFetcher
from pkgfetch.spec import Specifier, parse_spec

FETCHERS: Dict[str, Type[Fetcher]] = {
    "git": GitFetcher,
    "directory": DirFetcher,
    "file": FileFetcher,
    "remote": RemoteFetcher,
    "version": RegistryFetcher,
    "range": RegistryFetcher,
    "tag": RegistryFetcher,
}


def get_fetcher(
    spec: Union[str, Specifier],
    opts: Optional[FetchOptions] = None,
) -> Fetcher:
    """Construct the fetcher matching the specifier's type."""
    opts = opts or FetchOptions()
    parsed = parse_spec(spec, where=opts.where)
    fetcher_cls = FETCHERS.get(parsed.type)
    if fetcher_cls is None:
        raise SpecifierError(f"Unsupported specifier type {parsed.type!r} for '{parsed}'")
    return fetcher_cls(parsed, opts)


__all__ = [
    "DirFetcher",
    "FETCHERS",
    "Fetcher",
    "FileFetcher",
    "GitFetcher",
    "RegistryFetcher",
    "RemoteFetcher",
    "get_fetcher",
]
